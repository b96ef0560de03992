"""
Search configuration data models for Files Found.

This module defines the immutable search configuration (node, base directory,
files pattern and ignored files pattern), its expanded form, and the separate
schema used when reading configurations from a settings file.
"""

from typing import Dict, Optional, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..tools.variables import VariableMap


MASTER_NODE = "master"


def normalize_node(node: Optional[str]) -> Optional[str]:
    """
    Normalize a node name.

    Args:
        node: Node name as entered by the user

    Returns:
        The trimmed node name, or None when the search should run locally
        (no name, a blank name, or any case variant of "master")
    """
    if node is None:
        return None
    node = node.strip()
    if not node or node.lower() == MASTER_NODE:
        return None
    return node


class SearchConfig(BaseModel):
    """
    Pattern of files to locate within a single directory.

    Instances are immutable; ``expand`` returns a new configuration.

    Attributes:
        node: Node on which to look for files, or None for the local host
        directory: Base directory to use when locating files
        files: Pattern of files to locate under the base directory
        ignored_files: Pattern of files to ignore under the base directory
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    node: Optional[str] = Field(None, description="Node on which to look for files")
    directory: str = Field("", description="Base directory to use when locating files")
    files: str = Field("", description="Pattern of files to locate")
    ignored_files: str = Field("", alias="ignoredFiles", description="Pattern of files to ignore")

    @field_validator('node', mode='before')
    @classmethod
    def validate_node(cls, v: Optional[str]) -> Optional[str]:
        """Map blank and "master" node names to the local host."""
        return normalize_node(None if v is None else str(v))

    @field_validator('directory', 'files', 'ignored_files', mode='before')
    @classmethod
    def validate_text(cls, v: Optional[str]) -> str:
        """Replace missing values with the empty string and trim."""
        if v is None:
            return ""
        return str(v).strip()

    def is_local(self) -> bool:
        """Check if this configuration searches on the local host."""
        return self.node is None

    def expand(self, variables: VariableMap) -> "ExpandedSearchConfig":
        """
        Expand environment variables and global properties in each field.

        Args:
            variables: Variables to substitute into the placeholders

        Returns:
            A new, expanded configuration
        """
        return ExpandedSearchConfig(
            node=None if self.node is None else variables.expand(self.node),
            directory=variables.expand(self.directory),
            files=variables.expand(self.files),
            ignored_files=variables.expand(self.ignored_files),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the dictionary form used in settings files."""
        return self.model_dump(by_alias=True)

    def __str__(self) -> str:
        return (
            f"{self.__class__.__name__}{{node={self.node}, directory={self.directory}, "
            f"files={self.files}, ignoredFiles={self.ignored_files}}}"
        )


class ExpandedSearchConfig(SearchConfig):
    """A search configuration whose placeholders have all been substituted."""

    def expand(self, variables: VariableMap) -> "ExpandedSearchConfig":
        # Values may legitimately contain '$' once expanded
        return self


class SearchConfigSchema(BaseModel):
    """
    Serialized form of a search configuration.

    Missing fields are tolerated and unknown fields ignored. The schema is
    converted explicitly into a ``SearchConfig`` and never used in its place.
    """

    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    node: Optional[str] = None
    directory: Optional[str] = None
    files: Optional[str] = None
    ignored_files: Optional[str] = Field(None, alias="ignoredFiles")

    def to_search_config(self) -> SearchConfig:
        """Convert into the immutable domain value."""
        return SearchConfig(
            node=self.node,
            directory=self.directory,
            files=self.files,
            ignored_files=self.ignored_files,
        )

    @classmethod
    def from_search_config(cls, config: SearchConfig) -> "SearchConfigSchema":
        return cls(
            node=config.node,
            directory=config.directory,
            files=config.files,
            ignored_files=config.ignored_files,
        )
