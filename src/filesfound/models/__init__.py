"""
Data models for Files Found.

This module contains the core data structures used throughout the system.
"""

from .search_config import SearchConfig, ExpandedSearchConfig, SearchConfigSchema
from .search_results import SearchResult, SearchVerdict, ConfigurationTest

__all__ = [
    'SearchConfig',
    'ExpandedSearchConfig',
    'SearchConfigSchema',
    'SearchResult',
    'SearchVerdict',
    'ConfigurationTest'
]
