"""Exceptions and failure records shared across BabelSweep."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class ErrorCategory(Enum):
    """Why a translation request produced no translation."""

    TRANSLATION = auto()
    NETWORK = auto()
    OTHER = auto()


class BabelSweepError(Exception):
    """Base exception for all custom errors."""


class UnsupportedFileTypeError(BabelSweepError):
    """Raised when a document is not HTML."""


class OverwriteRefusedError(BabelSweepError):
    """Raised when writing would clobber an existing file without --force."""


class TranslationProviderConfigurationError(BabelSweepError):
    """Raised when a provider cannot be built from the given settings."""


class TranslationProviderError(BabelSweepError):
    """A provider request failed or returned something unusable.

    `status_code` carries the HTTP status when the failure came from an
    HTTP response.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ErrorRecord:
    category: ErrorCategory
    message: str
    details: Optional[str] = None


class FailureStreak:
    """Counts back-to-back failures of one category."""

    OUTAGE_THRESHOLD = 3

    def __init__(self) -> None:
        self.category: Optional[ErrorCategory] = None
        self.length = 0
        self.total = 0

    def extend(self, category: ErrorCategory) -> bool:
        """Count a failure; True only on the one that reaches the threshold."""

        self.total += 1
        if category is self.category:
            self.length += 1
        else:
            self.category = category
            self.length = 1
        return self.length == self.OUTAGE_THRESHOLD

    def break_streak(self) -> None:
        self.category = None
        self.length = 0
