"""
Configuration data models for Files Found.

This module defines the settings read from a Files Found configuration file:
global environment properties, remote nodes, search behavior and the search
configurations of the trigger.
"""

from typing import Dict, List, Optional, Any
from pydantic import BaseModel, Field, field_validator, model_validator

from .search_config import MASTER_NODE, SearchConfig, SearchConfigSchema
from ..tools.ant_matcher import MatchError, compile_pattern, split_patterns


KNOWN_SECTIONS = ('global_properties', 'nodes', 'search', 'triggers')


class GlobalPropertyConfig(BaseModel):
    """
    A block of environment variables applied to every search.

    Attributes:
        env: Variable bindings; values are converted to strings
    """

    env: Dict[str, str] = Field(default_factory=dict, description="Environment variable bindings")

    @field_validator('env', mode='before')
    @classmethod
    def validate_env(cls, v) -> Dict[str, str]:
        """Convert YAML scalars to strings."""
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("Global property 'env' must be a mapping")
        return {str(key): "" if value is None else str(value) for key, value in v.items()}

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class NodeConfig(BaseModel):
    """
    Configuration of a remote node reached over SSH.

    Attributes:
        host: Host name or address of the node
        user: Login user (SSH default when None)
        port: SSH port
        python: Python interpreter to run on the node
        offline: Whether the node is marked offline
        ssh_options: Extra options passed to the ssh command
    """

    host: str = Field(..., min_length=1, description="Host name or address of the node")
    user: Optional[str] = Field(None, description="Login user")
    port: int = Field(22, gt=0, le=65535, description="SSH port")
    python: str = Field("python3", min_length=1, description="Python interpreter on the node")
    offline: bool = Field(False, description="Whether the node is marked offline")
    ssh_options: List[str] = Field(default_factory=list, description="Extra ssh command options")

    @field_validator('host', 'python')
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Value cannot be blank")
        return v.strip()

    def get_target(self) -> str:
        """Get the ssh destination (``user@host`` or ``host``)."""
        if self.user:
            return f"{self.user}@{self.host}"
        return self.host

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class SearchSettings(BaseModel):
    """
    Settings controlling how searches are performed.

    Attributes:
        empty_include_matches_all: Whether an empty files pattern matches every
            file (otherwise it matches nothing)
        default_excludes: Whether Ant's default excludes are applied
        case_sensitive: Override the executing host's case sensitivity
        remote_timeout_seconds: Timeout for a search on a remote node
        max_concurrent: Maximum searches run at the same time
    """

    empty_include_matches_all: bool = Field(False, description="Empty files pattern matches every file")
    default_excludes: bool = Field(False, description="Apply Ant's default excludes")
    case_sensitive: Optional[bool] = Field(None, description="Override the host's case sensitivity")
    remote_timeout_seconds: int = Field(300, gt=0, description="Timeout for a remote search")
    max_concurrent: int = Field(4, gt=0, description="Maximum concurrent searches")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class FilesFoundSettings(BaseModel):
    """
    Main configuration class for Files Found.

    Attributes:
        global_properties: Environment blocks applied after the process
            environment, in order
        nodes: Remote nodes by name
        search: Search behavior settings
        triggers: Search configurations checked by the trigger
    """

    global_properties: List[GlobalPropertyConfig] = Field(
        default_factory=list, description="Global environment properties"
    )
    nodes: Dict[str, NodeConfig] = Field(default_factory=dict, description="Remote nodes by name")
    search: SearchSettings = Field(default_factory=SearchSettings, description="Search behavior settings")
    triggers: List[SearchConfigSchema] = Field(default_factory=list, description="Search configurations")

    @field_validator('global_properties', 'triggers', mode='before')
    @classmethod
    def validate_list(cls, v) -> List[Any]:
        """Treat an empty YAML section as an empty list."""
        return [] if v is None else v

    @field_validator('search', mode='before')
    @classmethod
    def validate_search(cls, v) -> Any:
        return {} if v is None else v

    @field_validator('nodes', mode='before')
    @classmethod
    def validate_nodes(cls, v) -> Dict[str, Any]:
        """Validate node names."""
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("'nodes' must be a mapping of node name to node settings")

        normalized = {}
        for name, node in v.items():
            name = str(name).strip()
            if not name:
                raise ValueError("Node names cannot be blank")
            if name.lower() == MASTER_NODE:
                raise ValueError(f"Node name '{name}' is reserved for the local host")
            if name in normalized:
                raise ValueError(f"Duplicate node name: {name}")
            normalized[name] = node
        return normalized

    @model_validator(mode='after')
    def validate_triggers(self):
        """Validate trigger patterns eagerly where they hold no placeholders."""
        for schema in self.triggers:
            for pattern in (schema.files, schema.ignored_files):
                if pattern and '$' not in pattern:
                    for part in split_patterns(pattern):
                        try:
                            compile_pattern(part)
                        except MatchError as e:
                            raise ValueError(e.message)
        return self

    def get_search_configs(self) -> List[SearchConfig]:
        """Convert the trigger entries into search configurations."""
        return [schema.to_search_config() for schema in self.triggers]

    def get_node_names(self) -> List[str]:
        return list(self.nodes)

    def validate_configuration(self) -> List[str]:
        """Validate the complete configuration and return any warnings."""
        warnings = []

        for index, config in enumerate(self.get_search_configs(), 1):
            if not config.directory:
                warnings.append(f"Trigger {index} has no directory")
            if not config.files:
                if self.search.empty_include_matches_all:
                    warnings.append(f"Trigger {index} has no files pattern and will match every file")
                else:
                    warnings.append(f"Trigger {index} has no files pattern and will never find files")
            if config.node and '$' not in config.node and config.node not in self.nodes:
                warnings.append(f"Trigger {index} refers to an unknown node: {config.node}")

        offline = [name for name, node in self.nodes.items() if node.offline]
        if offline:
            warnings.append(f"Nodes marked offline: {', '.join(offline)}")

        return warnings

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary representation."""
        return {
            'global_properties': [prop.to_dict() for prop in self.global_properties],
            'nodes': {name: node.to_dict() for name, node in self.nodes.items()},
            'search': self.search.to_dict(),
            'triggers': [schema.to_search_config().to_dict() for schema in self.triggers],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FilesFoundSettings':
        """Create configuration from dictionary representation."""
        return cls.model_validate(data)

    def __str__(self) -> str:
        parts = [f"Triggers: {len(self.triggers)}"]
        parts.append(f"Nodes: {len(self.nodes)}")
        parts.append(f"Global properties: {len(self.global_properties)}")
        return " | ".join(parts)


def validate_config_dict(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a configuration dictionary using Pydantic.

    Args:
        config_data: Dictionary containing configuration data

    Returns:
        Validated and normalized configuration dictionary

    Raises:
        ValueError: If configuration is invalid
    """
    unknown = [key for key in config_data if key not in KNOWN_SECTIONS]
    if unknown:
        raise ValueError(
            f"Unknown configuration sections: {', '.join(sorted(map(str, unknown)))}. "
            f"Valid sections are: {', '.join(KNOWN_SECTIONS)}"
        )

    try:
        settings = FilesFoundSettings.model_validate(config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e

    return settings.to_dict()
