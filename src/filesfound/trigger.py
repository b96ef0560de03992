"""
Files Found trigger.

Checks a set of search configurations and reports whether any files were
found. Scheduling the checks is left to the caller.
"""

import logging
from typing import List, Optional, Mapping, Sequence

from .models.search_config import SearchConfig
from .tools.file_search import FileSearch


logger = logging.getLogger(__name__)


class FilesFoundTrigger:
    """
    Trigger that fires when files are found for any of its configurations.

    Attributes:
        configs: Search configurations checked on every poll
        file_search: File search used to check them
    """

    def __init__(self, configs: Sequence[SearchConfig], file_search: FileSearch):
        self.configs: List[SearchConfig] = list(configs)
        self.file_search = file_search

    @classmethod
    def from_settings(cls, settings, environ: Optional[Mapping[str, str]] = None) -> "FilesFoundTrigger":
        """Create the trigger described by loaded settings."""
        return cls(
            settings.get_search_configs(),
            FileSearch.from_settings(settings, environ=environ),
        )

    def poll(self) -> List[str]:
        """
        Search for the files of every configuration.

        Returns:
            Files found, grouped by configuration in configuration order
        """
        found: List[str] = []
        for files in self.file_search.find_all(self.configs):
            found.extend(files)
        logger.info(f"Files Found trigger poll: {len(found)} files in {len(self.configs)} configurations")
        return found

    def is_triggered(self) -> bool:
        """Check whether the next build should be triggered."""
        return bool(self.poll())
