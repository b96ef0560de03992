#!/usr/bin/env python3
"""
Files Found: locate files for build triggers

Common usage:
  filesfound test --directory /data/in --files '*.csv' --ignored-files 'tmp_*.csv'
  filesfound test --node builder-1 --directory /var/spool --files '**/*.xml'
  filesfound poll -c filesfound.yaml
  filesfound nodes
  filesfound init filesfound.yaml
"""

from __future__ import annotations

import argparse
import importlib.metadata
import logging
import sys

from filesfound.config.parser import ConfigurationError, create_config_template, load_config
from filesfound.models.search_config import SearchConfig
from filesfound.models.search_results import ValidationStatus
from filesfound.tools.file_search import FileSearch
from filesfound.tools.nodes import StaticNodeRegistry
from filesfound.trigger import FilesFoundTrigger


_EXIT_CODES = {
    ValidationStatus.OK: 0,
    ValidationStatus.WARNING: 1,
    ValidationStatus.ERROR: 2,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="filesfound",
        description="Locate files matching a pattern, locally or on a remote node.",
    )
    parser.add_argument("--version", action="store_true", help="show version and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument(
        "-c", "--config", default=None,
        help="configuration file (default: search the usual locations)",
    )

    subparsers = parser.add_subparsers(dest="command")

    test = subparsers.add_parser("test", help="test a search configuration")
    test.add_argument("--node", default=None, help="node to search on (default: master)")
    test.add_argument("--directory", default="", help="base directory")
    test.add_argument("--files", default="", help="pattern of files to locate")
    test.add_argument("--ignored-files", default="", help="pattern of files to ignore")

    subparsers.add_parser("poll", help="search for the files of every configured trigger")
    subparsers.add_parser("nodes", help="list the nodes that can be searched")

    init = subparsers.add_parser("init", help="write a template configuration file")
    init.add_argument("path", help="where to write the template")

    return parser


def main(args: list[str] | None = None) -> int:
    """
    Main entry point for the filesfound CLI.

    Args:
        args: Command-line arguments (uses sys.argv if None)

    Returns:
        Exit code (0 for success, non-zero for warnings or errors)
    """
    parser = _build_parser()
    options = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if options.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if options.version:
        try:
            print(f"v{importlib.metadata.version('filesfound')}")
        except importlib.metadata.PackageNotFoundError:
            print("unknown (package not installed)")
        return 0

    if options.command is None:
        parser.print_help()
        return 2

    try:
        if options.command == "init":
            create_config_template(options.path)
            print(f"Template written to {options.path}")
            return 0

        settings = load_config(options.config).config
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if options.command == "test":
        config = SearchConfig(
            node=options.node,
            directory=options.directory,
            files=options.files,
            ignored_files=options.ignored_files,
        )
        outcome = FileSearch.from_settings(settings).test_configuration(config)
        print(outcome)
        return _EXIT_CODES[outcome.status]

    if options.command == "poll":
        found = FilesFoundTrigger.from_settings(settings).poll()
        for path in found:
            print(path)
        return 0 if found else 1

    for name in StaticNodeRegistry.from_settings(settings).get_node_items():
        print(name)
    return 0


if __name__ == "__main__":
    sys.exit(main())
