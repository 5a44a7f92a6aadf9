"""Warnings, hard failures, and cancellation for a single conversion job.

Recoverable problems (unparsed numbers, defaulted units, ambiguous section
boundaries, unmapped codes) are collected as :class:`ProcessingWarning`
records. Anything that makes a trustworthy layout impossible raises a
:class:`ConversionError` subclass carrying a human-readable ``reason``.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import logging
    from collections.abc import Iterable, Iterator

__all__ = [
    "CancellationToken",
    "ClassificationTableError",
    "ConversionError",
    "ExtractionCancelled",
    "MissingColumnsError",
    "NoReadableSheetsError",
    "ProcessingWarning",
    "UnsupportedStatementError",
    "WarningLog",
]


# =============================================================================
# Warnings
# =============================================================================


@dataclass(frozen=True)
class ProcessingWarning:
    """A recoverable issue found while converting one sheet.

    Attributes
    ----------
        message: Human-readable description.
        row: 1-based source row the warning refers to, if any.
        severity: ``"info"`` for resolved ambiguities, ``"warning"`` otherwise.
        code: Stable machine tag (e.g. ``"unit_defaulted"``).
    """

    message: str
    row: int | None = None
    severity: str = "warning"
    code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for job status payloads."""
        return {"message": self.message, "row": self.row, "severity": self.severity, "code": self.code}


class WarningLog:
    """Append-only warning collector that mirrors each entry to a logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger
        self._items: list[ProcessingWarning] = []

    def add(
        self,
        message: str,
        *,
        row: int | None = None,
        severity: str = "warning",
        code: str | None = None,
    ) -> ProcessingWarning:
        """Record and log a new warning."""
        warning = ProcessingWarning(message=message, row=row, severity=severity, code=code)
        self._items.append(warning)
        if self._logger is not None:
            where = f" (row {row})" if row is not None else ""
            if severity == "info":
                self._logger.info(f"{message}{where}")
            else:
                self._logger.warning(f"{message}{where}")
        return warning

    def extend(self, warnings: Iterable[ProcessingWarning]) -> None:
        """Append warnings already logged by an earlier stage."""
        self._items.extend(warnings)

    def to_list(self) -> list[ProcessingWarning]:
        return list(self._items)

    def codes(self) -> list[str | None]:
        return [w.code for w in self._items]

    def __iter__(self) -> Iterator[ProcessingWarning]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)


# =============================================================================
# Hard failures
# =============================================================================


class ConversionError(Exception):
    """Base class for failures that abort a whole conversion job."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class NoReadableSheetsError(ConversionError):
    """The workbook has no sheet with any content."""


class MissingColumnsError(ConversionError):
    """A statement's mandatory columns could not be located."""

    def __init__(self, statement: str, missing: Iterable[str], sheet: str = "") -> None:
        self.statement = statement
        self.missing = tuple(missing)
        where = f" in sheet '{sheet}'" if sheet else ""
        super().__init__(f"Missing mandatory {statement} columns{where}: {', '.join(self.missing)}")


class ClassificationTableError(ConversionError):
    """A classification table failed load-time validation."""


class UnsupportedStatementError(ConversionError):
    """The statement-type tag is outside the supported set."""


class ExtractionCancelled(ConversionError):
    """Extraction was cancelled or ran past its deadline."""


# =============================================================================
# Cancellation
# =============================================================================


class CancellationToken:
    """Cooperative cancellation flag with an optional deadline.

    Extractors call :meth:`raise_if_cancelled` once per row, so a supervisor
    that calls :meth:`cancel` (or lets the deadline pass) stops the job at the
    next row instead of leaving it running unattended.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def raise_if_cancelled(self) -> None:
        """Raise :class:`ExtractionCancelled` when cancelled or timed out."""
        if self.cancelled:
            reason = "deadline exceeded" if not self._event.is_set() else "cancelled by caller"
            msg = f"Extraction stopped: {reason}"
            raise ExtractionCancelled(msg)
