"""Failure reporting policy used by the translation client and sweeps."""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Deque, Optional

from .errors import ErrorCategory, ErrorRecord, FailureStreak

logger = logging.getLogger(__name__)

FailureObserver = Callable[[ErrorRecord], None]

MAX_RECORDS = 500


class FailurePolicy:
    """Records failures without ever interrupting the caller.

    Every failure is logged and handed to the optional observer so a host
    application can alert on it. The worst outcome for the end user is that
    text stays in the base language.
    """

    def __init__(
        self,
        *,
        on_failure: Optional[FailureObserver] = None,
        max_records: int = MAX_RECORDS,
    ) -> None:
        self.on_failure = on_failure
        # oldest failures are dropped first on long-lived pages
        self.records: Deque[ErrorRecord] = deque(maxlen=max_records)
        self.streak = FailureStreak()

    def record_success(self) -> None:
        """A success ends the current failure streak."""

        self.streak.break_streak()

    def handle_error(
        self,
        category: ErrorCategory,
        message: str,
        details: Optional[str] = None,
    ) -> ErrorRecord:
        """Record a failure, log it and notify the observer."""

        record = ErrorRecord(category=category, message=message, details=details)
        self.records.append(record)
        outage = self.streak.extend(category)

        logger.warning("%s%s", message, f" ({details})" if details else "")
        if outage:
            logger.warning(
                "%d consecutive %s failures (%d in total); the translation "
                "backend may be unavailable.",
                self.streak.length,
                category.name.lower(),
                self.streak.total,
            )

        if self.on_failure is not None:
            try:
                self.on_failure(record)
            except Exception:
                logger.exception("Failure observer raised while handling an error.")
        return record

    def clear(self) -> None:
        """Forget recorded failures."""

        self.records.clear()
        self.streak = FailureStreak()
