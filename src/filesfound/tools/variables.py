"""
Variable expansion for Files Found configurations.

Configuration fields may reference environment variables and global node
properties with ``${NAME}`` or ``$NAME`` placeholders. Variables are layered:
the process environment first, then every global property block in order,
each block overriding the keys it defines.
"""

import os
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Iterable, Iterator, Mapping, Tuple


# $$ (literal dollar), ${NAME} or $NAME
_PLACEHOLDER = re.compile(r"\$(?:(\$)|\{([^}]+)\}|([A-Za-z_][A-Za-z0-9_]*))")


class VariableMap:
    """
    Ordered overlay of string variable bindings.

    Names are looked up case-insensitively; the most recent binding of a name
    wins and keeps the spelling it was written with.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._vars: Dict[str, Tuple[str, str]] = {}
        if initial:
            self.override_all(initial)

    def override(self, name: str, value: str) -> None:
        """Bind a single variable, replacing any earlier binding."""
        self._vars[name.upper()] = (name, value)

    def override_all(self, variables: Mapping[str, str]) -> "VariableMap":
        """
        Overlay a layer of bindings on top of the current ones.

        Args:
            variables: Bindings to apply; every key replaces an earlier value

        Returns:
            This map, to allow chaining
        """
        for name, value in variables.items():
            self.override(name, "" if value is None else str(value))
        return self

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        entry = self._vars.get(name.upper())
        return entry[1] if entry is not None else default

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.upper() in self._vars

    def __len__(self) -> int:
        return len(self._vars)

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._vars.values())

    def expand(self, text: Optional[str]) -> str:
        """
        Substitute every placeholder in the text.

        Placeholders naming an unbound variable expand to the empty string,
        the way an unset shell variable does. ``$$`` produces a literal ``$``.

        Args:
            text: Text containing placeholders (``None`` is treated as empty)

        Returns:
            The text with all placeholders replaced
        """
        if not text:
            return ""

        def replace(match: "re.Match") -> str:
            if match.group(1):
                return "$"
            name = match.group(2) or match.group(3)
            return self.get(name.strip(), "")

        return _PLACEHOLDER.sub(replace, text)

    def to_dict(self) -> Dict[str, str]:
        """Convert to a plain dictionary using each variable's latest spelling."""
        return {name: value for name, value in self._vars.values()}


class VariableSource(ABC):
    """Supplies the variables used to expand a search configuration."""

    @abstractmethod
    def variables(self) -> VariableMap:
        """Build a fresh variable map from the current state of the source."""


class EnvironmentVariableSource(VariableSource):
    """
    Variables from the process environment overlaid by global node properties.

    Attributes:
        global_properties: Environment blocks applied in order after the
            process environment
        environ: Environment to start from (``os.environ`` when None, read at
            every call)
    """

    def __init__(self, global_properties: Iterable[Mapping[str, str]] = (),
                 environ: Optional[Mapping[str, str]] = None):
        self.global_properties: List[Mapping[str, str]] = list(global_properties)
        self.environ = environ

    @classmethod
    def from_settings(cls, settings, environ: Optional[Mapping[str, str]] = None) -> "EnvironmentVariableSource":
        """Create a source from the ``global_properties`` of loaded settings."""
        return cls(
            [prop.env for prop in settings.global_properties],
            environ=environ,
        )

    def variables(self) -> VariableMap:
        variables = VariableMap(os.environ if self.environ is None else self.environ)
        for block in self.global_properties:
            variables.override_all(block)
        return variables
