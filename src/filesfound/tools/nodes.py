"""
Execution contexts for Files Found searches.

An execution context runs a complete traversal and match on one host: the
local process, or a remote node reached over SSH. Both run the same
``ant_matcher`` code; the remote context ships the matcher source to the node
and only the resulting path list comes back.
"""

import json
import logging
import shlex
import subprocess
import threading
import time
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Any, Tuple

from pydantic import BaseModel, ConfigDict, Field

from . import ant_matcher
from ..errors import (
    IOFailureError,
    NodeNotFoundError,
    NodeOfflineError,
    SearchInterruptedError,
    error_from_code,
)
from ..models.config import NodeConfig, SearchSettings
from ..models.search_config import MASTER_NODE, SearchConfig, normalize_node


logger = logging.getLogger(__name__)

# ssh exits with 255 when the connection itself fails
SSH_CONNECTION_FAILURE = 255


class MatchRequest(BaseModel):
    """
    Everything an execution context needs to run one match.

    Attributes:
        directory: Base directory on the executing host
        files: Include pattern
        ignored_files: Exclude pattern
        empty_include_matches_all: Treat an empty include pattern as ``**``
        default_excludes: Apply Ant's default excludes
        case_sensitive: Override the executing host's case sensitivity
    """

    model_config = ConfigDict(frozen=True)

    directory: str = Field(..., description="Base directory on the executing host")
    files: str = Field("", description="Include pattern")
    ignored_files: str = Field("", description="Exclude pattern")
    empty_include_matches_all: bool = Field(False, description="Empty include pattern matches every file")
    default_excludes: bool = Field(False, description="Apply Ant's default excludes")
    case_sensitive: Optional[bool] = Field(None, description="Override the host's case sensitivity")

    @classmethod
    def from_config(cls, config: SearchConfig, settings: Optional[SearchSettings] = None) -> "MatchRequest":
        """Build the request for an (expanded) search configuration."""
        settings = settings or SearchSettings()
        return cls(
            directory=config.directory,
            files=config.files,
            ignored_files=config.ignored_files,
            empty_include_matches_all=settings.empty_include_matches_all,
            default_excludes=settings.default_excludes,
            case_sensitive=settings.case_sensitive,
        )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump()


def files_from_reply(reply: Dict[str, Any]) -> List[str]:
    """
    Extract the file list from a matcher reply.

    Raises:
        FileSearchError: The classified error carried by the reply
    """
    if reply.get("error"):
        raise error_from_code(reply["error"], reply.get("message") or reply["error"])
    files = reply.get("files")
    if not isinstance(files, list):
        raise IOFailureError("Malformed reply from the file matcher")
    return [str(f) for f in files]


class ExecutionContext(ABC):
    """Somewhere a search can run."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the node this context runs on."""

    @abstractmethod
    def run_match(self, request: MatchRequest,
                  cancel_event: Optional[threading.Event] = None) -> List[str]:
        """
        Run the traversal and match on this context.

        Args:
            request: What to match
            cancel_event: Event that, once set, interrupts the search

        Returns:
            Relative paths of the matching files

        Raises:
            DirectoryNotFoundError: If the base directory does not exist
            PatternSyntaxError: If a pattern is malformed
            IOFailureError: If the directory tree cannot be read
            NodeOfflineError: If the node cannot be reached
            SearchInterruptedError: If ``cancel_event`` is set during the search
        """

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.name})"


class LocalExecutionContext(ExecutionContext):
    """Runs searches in the current process."""

    @property
    def name(self) -> str:
        return MASTER_NODE

    def run_match(self, request: MatchRequest,
                  cancel_event: Optional[threading.Event] = None) -> List[str]:
        if cancel_event is not None and cancel_event.is_set():
            raise SearchInterruptedError("Search interrupted before it started")
        return files_from_reply(ant_matcher.run_request(request.to_payload()))


@lru_cache(maxsize=1)
def get_matcher_source() -> str:
    """Get the source of the matcher module shipped to remote nodes."""
    return Path(ant_matcher.__file__).read_text(encoding="utf-8")


class RemoteExecutionContext(ExecutionContext):
    """
    Runs searches on a remote node over SSH.

    The matcher source is piped to ``python -`` on the node and the request is
    passed as a JSON argument, so nothing needs to be installed remotely apart
    from a Python 3 interpreter. The round trip is waited on in short slices so
    that a cancellation event is honored promptly.
    """

    def __init__(self, node_name: str, node: NodeConfig,
                 timeout_seconds: float = 300, poll_interval: float = 0.1):
        """
        Initialize the remote context.

        Args:
            node_name: Name of the node
            node: Connection settings of the node
            timeout_seconds: Maximum duration of a search round trip
            poll_interval: How often cancellation is checked while waiting
        """
        self._name = node_name
        self.node = node
        self.timeout_seconds = timeout_seconds
        self.poll_interval = poll_interval

    @property
    def name(self) -> str:
        return self._name

    def build_command(self, request: MatchRequest) -> List[str]:
        """Build the ssh command running the matcher for a request."""
        return [
            "ssh",
            "-o", "BatchMode=yes",
            *self.node.ssh_options,
            "-p", str(self.node.port),
            self.node.get_target(),
            self.node.python,
            "-",
            shlex.quote(json.dumps(request.to_payload())),
        ]

    def run_match(self, request: MatchRequest,
                  cancel_event: Optional[threading.Event] = None) -> List[str]:
        if self.node.offline:
            raise NodeOfflineError(self.name)
        if cancel_event is not None and cancel_event.is_set():
            raise SearchInterruptedError(f"Search on {self.name} interrupted before it started")

        command = self.build_command(request)
        logger.debug(f"Running remote search on {self.name}: {' '.join(command)}")

        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            raise NodeOfflineError(self.name, f"cannot start ssh: {e}") from e

        stdout, stderr = self._wait(process, cancel_event)

        if process.returncode == SSH_CONNECTION_FAILURE:
            raise NodeOfflineError(self.name, stderr.strip() or None)
        if process.returncode != 0:
            raise IOFailureError(
                f"Search on {self.name} failed with exit code {process.returncode}: {stderr.strip()}"
            )

        try:
            reply = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise IOFailureError(f"Invalid reply from {self.name}: {e}") from e
        if not isinstance(reply, dict):
            raise IOFailureError(f"Invalid reply from {self.name}")

        return files_from_reply(reply)

    def _wait(self, process: subprocess.Popen,
              cancel_event: Optional[threading.Event]) -> Tuple[str, str]:
        """Wait for the remote process, honoring cancellation and the timeout."""
        deadline = time.monotonic() + self.timeout_seconds
        payload: Optional[str] = get_matcher_source()

        while True:
            try:
                stdout, stderr = process.communicate(input=payload, timeout=self.poll_interval)
                return stdout or "", stderr or ""
            except subprocess.TimeoutExpired:
                # Input is only sent on the first call
                payload = None

            if cancel_event is not None and cancel_event.is_set():
                self._kill(process)
                raise SearchInterruptedError(f"Search on {self.name} interrupted")

            if time.monotonic() >= deadline:
                self._kill(process)
                raise NodeOfflineError(
                    self.name, f"no reply within {self.timeout_seconds} seconds"
                )

    @staticmethod
    def _kill(process: subprocess.Popen) -> None:
        process.kill()
        process.communicate()


class NodeRegistry(ABC):
    """Looks up execution contexts by node name."""

    @abstractmethod
    def get(self, name: str) -> Optional[ExecutionContext]:
        """Get the context of a node by exact name, or None if it is unknown."""

    @abstractmethod
    def names(self) -> List[str]:
        """Get the names of every registered node."""

    def get_node_items(self) -> List[str]:
        """Get the node names offered for selection, the local host first."""
        return [MASTER_NODE] + self.names()


class StaticNodeRegistry(NodeRegistry):
    """Node registry backed by a fixed mapping of names to contexts."""

    def __init__(self, contexts: Optional[Dict[str, ExecutionContext]] = None):
        self._contexts: Dict[str, ExecutionContext] = dict(contexts or {})

    @classmethod
    def from_settings(cls, settings) -> "StaticNodeRegistry":
        """
        Create a registry with a remote context for every configured node.

        Args:
            settings: Loaded ``FilesFoundSettings``

        Returns:
            Registry of the configured nodes
        """
        timeout = settings.search.remote_timeout_seconds
        return cls({
            name: RemoteExecutionContext(name, node, timeout_seconds=timeout)
            for name, node in settings.nodes.items()
        })

    def register(self, name: str, context: ExecutionContext) -> None:
        self._contexts[name] = context

    def get(self, name: str) -> Optional[ExecutionContext]:
        return self._contexts.get(name)

    def names(self) -> List[str]:
        return list(self._contexts)


LOCAL_CONTEXT = LocalExecutionContext()


def resolve_context(registry: NodeRegistry, node_name: Optional[str]) -> ExecutionContext:
    """
    Resolve a node name to the context that searches on it.

    Args:
        registry: Registry of known nodes
        node_name: Node name, or None for the local host

    Returns:
        The local context, or the registered context of the node

    Raises:
        NodeNotFoundError: If a node name is given and not registered
    """
    node_name = normalize_node(node_name)
    if node_name is None:
        return LOCAL_CONTEXT

    context = registry.get(node_name)
    if context is None:
        raise NodeNotFoundError(node_name)
    return context
