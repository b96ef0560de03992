"""
Files Found - Core Package

Locates files matching Ant-style patterns under a base directory, on the local
host or on a remote node, for build triggers and interactive configuration
tests.
"""

__version__ = "0.1.0"
__author__ = "Files Found Team"
