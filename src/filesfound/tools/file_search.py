"""
File search orchestration for Files Found.

This module ties the pieces together: it expands a search configuration,
resolves the execution context of its node, runs the matcher there and
classifies the outcome. Two callers are served: the trigger poll, which only
wants the files and must never fail, and the interactive configuration test,
which always gets a verdict.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Mapping, Sequence

from ..errors import (
    DirectoryNotFoundError,
    FileSearchError,
    IOFailureError,
    NodeNotFoundError,
    NodeOfflineError,
    PatternSyntaxError,
    SearchInterruptedError,
)
from ..models.config import SearchSettings
from ..models.search_config import SearchConfig
from ..models.search_results import ConfigurationTest, SearchResult
from .nodes import MatchRequest, NodeRegistry, StaticNodeRegistry, resolve_context
from .variables import EnvironmentVariableSource, VariableSource


logger = logging.getLogger(__name__)


class FileSearch:
    """
    Searches for the files of search configurations.

    The variable source and node registry are injected so that a search never
    reaches into global state. Searches share no mutable state and can run
    concurrently.
    """

    def __init__(self, variable_source: VariableSource, node_registry: NodeRegistry,
                 settings: Optional[SearchSettings] = None,
                 cancel_event: Optional[threading.Event] = None):
        """
        Initialize the file search.

        Args:
            variable_source: Source of the variables used for expansion
            node_registry: Registry resolving node names to execution contexts
            settings: Search behavior settings (defaults when None)
            cancel_event: Event that, once set, interrupts running searches
        """
        self.variable_source = variable_source
        self.node_registry = node_registry
        self.settings = settings or SearchSettings()
        self.cancel_event = cancel_event

    @classmethod
    def from_settings(cls, settings, environ: Optional[Mapping[str, str]] = None,
                      cancel_event: Optional[threading.Event] = None) -> "FileSearch":
        """
        Create a file search from loaded settings.

        Args:
            settings: Loaded ``FilesFoundSettings``
            environ: Process environment override (``os.environ`` when None)
            cancel_event: Event that, once set, interrupts running searches

        Returns:
            A file search using the configured global properties and nodes
        """
        return cls(
            EnvironmentVariableSource.from_settings(settings, environ=environ),
            StaticNodeRegistry.from_settings(settings),
            settings=settings.search,
            cancel_event=cancel_event,
        )

    def perform(self, config: SearchConfig) -> SearchResult:
        """
        Search for the files of a configuration.

        Args:
            config: Configuration to search for; it is expanded first

        Returns:
            The files found and the verdict of the search

        Raises:
            SearchInterruptedError: If the search was cancelled
        """
        expanded = config.expand(self.variable_source.variables())
        logger.info(f"Searching for files: {expanded}")

        try:
            context = resolve_context(self.node_registry, expanded.node)
        except NodeNotFoundError as e:
            return SearchResult.error(str(e))

        request = MatchRequest.from_config(expanded, self.settings)
        try:
            files = context.run_match(request, cancel_event=self.cancel_event)
        except DirectoryNotFoundError as e:
            return SearchResult.warning(str(e))
        except (NodeOfflineError, PatternSyntaxError, IOFailureError) as e:
            return SearchResult.error(str(e))

        result = SearchResult.found(files)
        logger.debug(f"Search on {context.name} finished: {result}")
        return result

    def find_files(self, config: SearchConfig) -> List[str]:
        """
        Search for the files of a configuration on behalf of the trigger.

        Never raises: failures are logged and reported as no files found.

        Args:
            config: Configuration to search for

        Returns:
            Relative paths of the files found
        """
        try:
            return self.perform(config).to_files()
        except SearchInterruptedError as e:
            self._restore_interrupt()
            logger.warning(f"File search interrupted for {config}: {e}")
        except FileSearchError as e:
            logger.warning(f"File search failed for {config}: {e}")
        except Exception as e:
            logger.error(f"Unexpected error searching for {config}: {e}")
        return []

    def test_configuration(self, config: SearchConfig) -> ConfigurationTest:
        """
        Test a configuration entered by a user.

        Never raises: every outcome is reported as a status and a message.

        Args:
            config: Configuration to test

        Returns:
            OK with the number of files found, WARNING or ERROR with a reason
        """
        try:
            return self.perform(config).to_validation()
        except SearchInterruptedError as e:
            self._restore_interrupt()
            logger.warning(f"Configuration test interrupted for {config}: {e}")
            return ConfigurationTest.error(f"The search was interrupted: {e}")
        except FileSearchError as e:
            return ConfigurationTest.error(str(e))
        except Exception as e:
            logger.error(f"Unexpected error testing {config}: {e}")
            return ConfigurationTest.error(f"Unexpected error: {e}")

    def find_all(self, configs: Sequence[SearchConfig]) -> List[List[str]]:
        """
        Search for the files of several configurations concurrently.

        Args:
            configs: Configurations to search for

        Returns:
            Files found for each configuration, in the order of ``configs``
        """
        if not configs:
            return []
        if len(configs) == 1:
            return [self.find_files(configs[0])]

        results: Dict[int, List[str]] = {}
        max_workers = min(self.settings.max_concurrent, len(configs))
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(self.find_files, config): index
                for index, config in enumerate(configs)
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()

        return [results[index] for index in range(len(configs))]

    def _restore_interrupt(self) -> None:
        # Keep the cancellation visible to whoever scheduled this search
        if self.cancel_event is not None:
            self.cancel_event.set()
