"""
Error types for Files Found searches.

Matcher failures cross the execution boundary as plain error codes (see
``tools.ant_matcher``) and are turned back into these exceptions by the
execution context that ran the search.
"""

from typing import Optional

from .tools import ant_matcher


class FileSearchError(Exception):
    """Base class for all errors raised while performing a file search."""
    pass


class NodeNotFoundError(FileSearchError):
    """Raised when a configuration names a node that is not registered."""

    def __init__(self, node: str):
        super().__init__(f"The node does not exist: {node}")
        self.node = node


class NodeOfflineError(FileSearchError):
    """Raised when a registered node cannot be reached."""

    def __init__(self, node: str, reason: Optional[str] = None):
        message = f"The node is offline: {node}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.node = node
        self.reason = reason


class DirectoryNotFoundError(FileSearchError):
    """Raised when the base directory does not exist on the executing host."""
    pass


class PatternSyntaxError(FileSearchError):
    """Raised when an include or exclude pattern is malformed."""
    pass


class IOFailureError(FileSearchError):
    """Raised when the directory tree cannot be read."""
    pass


class SearchInterruptedError(FileSearchError):
    """Raised when a search is cancelled while waiting on its execution context."""
    pass


_ERRORS_BY_CODE = {
    ant_matcher.DIRECTORY_NOT_FOUND: DirectoryNotFoundError,
    ant_matcher.PATTERN_SYNTAX: PatternSyntaxError,
    ant_matcher.IO_FAILURE: IOFailureError,
}


def error_from_code(code: str, message: str) -> FileSearchError:
    """
    Build the exception matching a matcher error code.

    Unknown codes map to ``IOFailureError`` so that a newer matcher on a remote
    node never produces an unclassified failure.
    """
    error_class = _ERRORS_BY_CODE.get(code, IOFailureError)
    return error_class(message)
