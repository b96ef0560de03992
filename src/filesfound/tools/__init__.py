"""
Search tools for Files Found.

This module contains the components that perform a search: variable
expansion, execution contexts, the Ant-style pattern matcher and the search
orchestrator.
"""
