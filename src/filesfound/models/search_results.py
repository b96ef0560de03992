"""
Search results data models for Files Found.

This module defines the outcome of a single search: the files found and a
verdict (success, warning or error). It also classifies that outcome for the
two callers, the trigger poll (files only) and the interactive configuration
test (a status and a message).
"""

import logging
from typing import Dict, List, Any
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


logger = logging.getLogger(__name__)


class VerdictKind(Enum):
    """Classification of a search outcome."""
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ValidationStatus(Enum):
    """Status reported to a user testing a configuration."""
    OK = "OK"
    WARNING = "WARNING"
    ERROR = "ERROR"


_STATUS_BY_KIND = {
    VerdictKind.SUCCESS: ValidationStatus.OK,
    VerdictKind.WARNING: ValidationStatus.WARNING,
    VerdictKind.ERROR: ValidationStatus.ERROR,
}

NO_FILES_FOUND = "No files found"


def files_found_message(count: int) -> str:
    """Get the message describing how many files were found."""
    if count == 1:
        return "1 file found"
    return f"{count} files found"


class SearchVerdict(BaseModel):
    """
    Verdict of a search.

    Attributes:
        kind: Success, warning or error
        message: Human-readable description of the outcome
        count: Number of files found (only non-zero for a success)
    """

    model_config = ConfigDict(frozen=True)

    kind: VerdictKind = Field(..., description="Classification of the outcome")
    message: str = Field(..., description="Human-readable description of the outcome")
    count: int = Field(0, ge=0, description="Number of files found")

    @field_validator('kind', mode='before')
    @classmethod
    def validate_kind(cls, v) -> VerdictKind:
        """Ensure kind is a VerdictKind enum."""
        if isinstance(v, str):
            try:
                return VerdictKind(v)
            except ValueError:
                raise ValueError(f"Invalid verdict kind: {v}")
        return v

    @model_validator(mode='after')
    def validate_count(self):
        """A success always counts at least one file, other verdicts none."""
        if self.kind == VerdictKind.SUCCESS and self.count < 1:
            raise ValueError("A successful verdict must count at least one file")
        if self.kind != VerdictKind.SUCCESS and self.count != 0:
            raise ValueError("Only a successful verdict can count files")
        return self

    @classmethod
    def success(cls, count: int) -> "SearchVerdict":
        return cls(kind=VerdictKind.SUCCESS, message=files_found_message(count), count=count)

    @classmethod
    def warning(cls, message: str) -> "SearchVerdict":
        return cls(kind=VerdictKind.WARNING, message=message)

    @classmethod
    def error(cls, message: str) -> "SearchVerdict":
        return cls(kind=VerdictKind.ERROR, message=message)

    def is_success(self) -> bool:
        return self.kind == VerdictKind.SUCCESS


class ConfigurationTest(BaseModel):
    """
    Result of interactively testing a search configuration.

    Attributes:
        status: OK, WARNING or ERROR
        message: Message to display to the user
    """

    model_config = ConfigDict(frozen=True)

    status: ValidationStatus = Field(..., description="Outcome of the test")
    message: str = Field(..., description="Message to display to the user")

    @classmethod
    def ok(cls, message: str) -> "ConfigurationTest":
        return cls(status=ValidationStatus.OK, message=message)

    @classmethod
    def warning(cls, message: str) -> "ConfigurationTest":
        return cls(status=ValidationStatus.WARNING, message=message)

    @classmethod
    def error(cls, message: str) -> "ConfigurationTest":
        return cls(status=ValidationStatus.ERROR, message=message)

    def to_dict(self) -> Dict[str, Any]:
        return {'status': self.status.value, 'message': self.message}

    def __str__(self) -> str:
        return f"{self.status.value}: {self.message}"


class SearchResult(BaseModel):
    """
    Outcome of searching for the files of a single configuration.

    Attributes:
        files: Relative paths of the files found, in traversal order
        verdict: Classification of the outcome
    """

    model_config = ConfigDict(frozen=True)

    files: List[str] = Field(default_factory=list, description="Relative paths of the files found")
    verdict: SearchVerdict = Field(..., description="Classification of the outcome")

    @model_validator(mode='after')
    def validate_files(self):
        """Keep the file list consistent with the verdict."""
        if self.verdict.is_success():
            if len(self.files) != self.verdict.count:
                raise ValueError("File count does not match the verdict")
        elif self.files:
            raise ValueError("Only a successful search can report files")
        return self

    @classmethod
    def found(cls, files: List[str]) -> "SearchResult":
        """
        Create the result of a completed match.

        Args:
            files: Paths returned by the matcher

        Returns:
            A success when files were found, otherwise a "no files found" warning
        """
        unique_files = list(dict.fromkeys(files))
        if not unique_files:
            return cls.warning(NO_FILES_FOUND)
        return cls(files=unique_files, verdict=SearchVerdict.success(len(unique_files)))

    @classmethod
    def warning(cls, message: str) -> "SearchResult":
        return cls(verdict=SearchVerdict.warning(message))

    @classmethod
    def error(cls, message: str) -> "SearchResult":
        return cls(verdict=SearchVerdict.error(message))

    def get_file_count(self) -> int:
        return len(self.files)

    def to_files(self) -> List[str]:
        """
        Classify for the trigger poll.

        Returns:
            The files found, or an empty list for any other verdict. The
            verdict message is only logged.
        """
        if self.verdict.kind == VerdictKind.ERROR:
            logger.warning(f"File search failed: {self.verdict.message}")
        elif self.verdict.kind == VerdictKind.WARNING:
            logger.info(f"File search found nothing: {self.verdict.message}")
        return list(self.files)

    def to_validation(self) -> ConfigurationTest:
        """Classify for the interactive configuration test."""
        return ConfigurationTest(
            status=_STATUS_BY_KIND[self.verdict.kind],
            message=self.verdict.message,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert search result to dictionary representation."""
        return {
            'files': list(self.files),
            'file_count': self.get_file_count(),
            'verdict': self.verdict.kind.value,
            'message': self.verdict.message,
        }

    def __str__(self) -> str:
        return f"{self.verdict.kind.value}: {self.verdict.message}"
