#!/usr/bin/env python3
"""
Ant-style file pattern matcher for Files Found.

This module walks a base directory and returns the relative paths of the files
that match an include pattern and none of the exclude patterns. It only depends
on the standard library so that the very same source can be shipped to a
remote node and executed there with ``python3 -``.

Pattern syntax:
- ``*`` matches any sequence of characters except ``/``
- ``?`` matches exactly one character except ``/``
- ``**`` matches any number of directories (whole path segment only)
- A pattern ending with ``/`` matches everything below that directory
- Several patterns may be given separated by ``,`` or ``;``

Usage on a remote node:
    echo '{"directory": "/data/in", "files": "*.csv"}' | python3 ant_matcher.py

Input (JSON, first argument or stdin):
    {
        "directory": "/data/in",
        "files": "**/*.csv",
        "ignored_files": "tmp_*.csv",
        "empty_include_matches_all": false,
        "default_excludes": false,
        "case_sensitive": null
    }

Output (JSON on stdout):
    {"files": ["a.csv", "sub/b.csv"]}
    or
    {"error": "directory_not_found", "message": "The directory does not exist: /data/in"}
"""

import json
import os
import re
import sys
from typing import Dict, List, Optional, Any, Iterator


DIRECTORY_NOT_FOUND = "directory_not_found"
PATTERN_SYNTAX = "pattern_syntax"
IO_FAILURE = "io_failure"

# Ant's default excludes (version control metadata and editor leftovers)
DEFAULT_EXCLUDES = [
    "**/*~",
    "**/#*#",
    "**/.#*",
    "**/%*%",
    "**/._*",
    "**/CVS",
    "**/CVS/**",
    "**/.cvsignore",
    "**/SCCS",
    "**/SCCS/**",
    "**/vssver.scc",
    "**/.svn",
    "**/.svn/**",
    "**/.DS_Store",
    "**/.git",
    "**/.git/**",
    "**/.gitattributes",
    "**/.gitignore",
    "**/.gitmodules",
    "**/.hg",
    "**/.hg/**",
    "**/.hgignore",
    "**/.hgsub",
    "**/.hgsubstate",
    "**/.hgtags",
    "**/.bzr",
    "**/.bzr/**",
    "**/.bzrignore",
]

_PATTERN_SEPARATORS = re.compile(r"[,;]")


class MatchError(Exception):
    """
    Raised when a match cannot be performed.

    The ``code`` attribute classifies the failure so that it can cross an
    execution boundary as plain JSON.
    """

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def split_patterns(pattern: Optional[str]) -> List[str]:
    """
    Split a pattern string into its individual patterns.

    Args:
        pattern: One or more patterns separated by commas or semicolons

    Returns:
        List of non-empty, normalized patterns in their original order
    """
    if not pattern:
        return []

    patterns = []
    for part in _PATTERN_SEPARATORS.split(pattern):
        part = part.strip()
        if part:
            patterns.append(normalize_pattern(part))
    return patterns


def normalize_pattern(pattern: str) -> str:
    """
    Normalize a single pattern to the canonical ``/`` separated form.

    Backslashes become slashes, leading ``/`` and ``./`` are removed, repeated
    slashes collapse, and a trailing ``/`` is turned into ``/**``.
    """
    pattern = pattern.replace("\\", "/")
    pattern = re.sub(r"/{2,}", "/", pattern)

    while pattern.startswith("./"):
        pattern = pattern[2:]
    pattern = pattern.lstrip("/")

    if pattern.endswith("/"):
        pattern += "**"

    return pattern


def pattern_to_regex(pattern: str) -> str:
    """
    Convert a normalized Ant-style pattern to a regex string.

    Args:
        pattern: Normalized pattern (see ``normalize_pattern``)

    Returns:
        Regex string matching complete relative paths

    Raises:
        MatchError: If ``**`` is combined with other characters in a segment
    """
    segments = pattern.split("/")
    regex_parts = []

    for index, segment in enumerate(segments):
        is_last = index == len(segments) - 1

        if segment == "**":
            # Zero or more directories, or anything at all when trailing
            regex_parts.append(".*" if is_last else "(?:[^/]*/)*")
            continue

        if "**" in segment:
            raise MatchError(
                PATTERN_SYNTAX,
                f"Invalid pattern '{pattern}': '**' must be a whole path segment"
            )

        regex_parts.append(_segment_to_regex(segment))
        if not is_last:
            regex_parts.append("/")

    return "".join(regex_parts)


def _segment_to_regex(segment: str) -> str:
    parts = []
    for char in segment:
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(char))
    return "".join(parts)


def compile_pattern(pattern: str, case_sensitive: bool = True) -> "re.Pattern":
    """Compile a normalized pattern to a regex matching whole relative paths."""
    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        return re.compile(r"(?s:" + pattern_to_regex(pattern) + r")\Z", flags)
    except re.error as e:
        raise MatchError(PATTERN_SYNTAX, f"Invalid pattern '{pattern}': {e}") from e


def is_case_sensitive_platform() -> bool:
    """Check whether the executing host compares file names case-sensitively."""
    return os.path.normcase("A") == "A"


class AntPatternMatcher:
    """
    Matches files under a base directory against include/exclude patterns.

    Exclude patterns always win over include patterns. Directories that are
    entirely covered by an exclude pattern ending in ``/**`` are not descended
    into.
    """

    def __init__(self, include_pattern: str, exclude_pattern: str = "",
                 empty_include_matches_all: bool = False,
                 default_excludes: bool = False,
                 case_sensitive: Optional[bool] = None):
        """
        Initialize the matcher and compile all patterns eagerly.

        Args:
            include_pattern: Patterns of files to find
            exclude_pattern: Patterns of files to ignore (empty excludes nothing)
            empty_include_matches_all: Treat an empty include pattern as ``**``
            default_excludes: Also apply Ant's default excludes
            case_sensitive: Override the platform's case sensitivity

        Raises:
            MatchError: If any pattern is malformed
        """
        if case_sensitive is None:
            case_sensitive = is_case_sensitive_platform()
        self.case_sensitive = case_sensitive

        includes = split_patterns(include_pattern)
        if not includes and empty_include_matches_all:
            includes = ["**"]
        excludes = split_patterns(exclude_pattern)
        if default_excludes:
            excludes.extend(DEFAULT_EXCLUDES)

        self.includes = includes
        self.excludes = excludes
        self._include_regexes = [compile_pattern(p, case_sensitive) for p in includes]
        self._exclude_regexes = [compile_pattern(p, case_sensitive) for p in excludes]

        # Prefixes of "dir/**" excludes; a matching directory is never walked
        self._pruned_dir_regexes = [
            compile_pattern(p[:-3], case_sensitive)
            for p in excludes
            if p.endswith("/**") and len(p) > 3
        ]

    def is_match(self, relative_path: str) -> bool:
        """
        Check if a relative path is selected by the patterns.

        Args:
            relative_path: ``/`` separated path relative to the base directory

        Returns:
            True if the path matches an include and no exclude pattern
        """
        if not any(regex.match(relative_path) for regex in self._include_regexes):
            return False
        return not any(regex.match(relative_path) for regex in self._exclude_regexes)

    def is_pruned(self, relative_dir: str) -> bool:
        """Check if everything below a directory is excluded."""
        return any(regex.match(relative_dir) for regex in self._pruned_dir_regexes)

    def match(self, base_directory: str) -> List[str]:
        """
        Walk the base directory and collect matching files.

        Args:
            base_directory: Directory to search under

        Returns:
            Relative ``/`` separated paths in traversal order, without duplicates

        Raises:
            MatchError: If the directory does not exist or cannot be read
        """
        if not os.path.isdir(base_directory):
            raise MatchError(
                DIRECTORY_NOT_FOUND,
                f"The directory does not exist: {base_directory}"
            )

        if not self._include_regexes:
            return []

        seen = set()
        found = []
        for relative_path in self._walk(base_directory):
            if relative_path in seen:
                continue
            seen.add(relative_path)
            if self.is_match(relative_path):
                found.append(relative_path)
        return found

    def _walk(self, base_directory: str) -> Iterator[str]:
        def on_error(error: OSError) -> None:
            raise MatchError(
                IO_FAILURE,
                f"Unable to read {error.filename or base_directory}: {error.strerror or error}"
            )

        for current_dir, subdirs, files in os.walk(base_directory, onerror=on_error):
            relative_dir = os.path.relpath(current_dir, base_directory)
            if relative_dir == os.curdir:
                relative_dir = ""
            else:
                relative_dir = relative_dir.replace(os.sep, "/")

            subdirs.sort()
            subdirs[:] = [
                d for d in subdirs
                if not self.is_pruned(_join(relative_dir, d))
            ]

            for filename in sorted(files):
                yield _join(relative_dir, filename)


def _join(relative_dir: str, name: str) -> str:
    return f"{relative_dir}/{name}" if relative_dir else name


def match_files(base_directory: str, include_pattern: str, exclude_pattern: str = "",
                empty_include_matches_all: bool = False,
                default_excludes: bool = False,
                case_sensitive: Optional[bool] = None) -> List[str]:
    """
    Find the files under a base directory that match the given patterns.

    The directory is checked before the patterns are compiled, so a missing
    directory is reported even when the patterns are also invalid.

    Args:
        base_directory: Directory to search under
        include_pattern: Patterns of files to find
        exclude_pattern: Patterns of files to ignore
        empty_include_matches_all: Treat an empty include pattern as ``**``
        default_excludes: Also apply Ant's default excludes
        case_sensitive: Override the platform's case sensitivity

    Returns:
        Relative ``/`` separated paths of the matching files

    Raises:
        MatchError: On a missing directory, malformed pattern or read failure
    """
    if not os.path.isdir(base_directory):
        raise MatchError(
            DIRECTORY_NOT_FOUND,
            f"The directory does not exist: {base_directory}"
        )

    matcher = AntPatternMatcher(
        include_pattern,
        exclude_pattern,
        empty_include_matches_all=empty_include_matches_all,
        default_excludes=default_excludes,
        case_sensitive=case_sensitive,
    )
    return matcher.match(base_directory)


def run_request(request: Dict[str, Any]) -> Dict[str, Any]:
    """
    Run a match request and return a JSON-serializable reply.

    This is the single entry point used by every execution context, local or
    remote.

    Args:
        request: Dictionary with ``directory``, ``files``, ``ignored_files`` and
            the optional matcher switches

    Returns:
        ``{"files": [...]}`` on success, ``{"error": code, "message": text}``
        otherwise
    """
    try:
        files = match_files(
            request.get("directory") or "",
            request.get("files") or "",
            request.get("ignored_files") or "",
            empty_include_matches_all=bool(request.get("empty_include_matches_all", False)),
            default_excludes=bool(request.get("default_excludes", False)),
            case_sensitive=request.get("case_sensitive"),
        )
    except MatchError as e:
        return {"error": e.code, "message": e.message}
    return {"files": files}


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    raw = argv[0] if argv else sys.stdin.read()
    reply = run_request(json.loads(raw))
    json.dump(reply, sys.stdout)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
