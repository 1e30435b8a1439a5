"""Logging helper utilities for consistent progress and error reporting."""

from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List

import click

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def log_level(self) -> int:
        return {
            Severity.INFO: logging.INFO,
            Severity.WARNING: logging.WARNING,
            Severity.ERROR: logging.ERROR,
            Severity.CRITICAL: logging.CRITICAL,
        }[self]


@dataclass
class ErrorContext:
    """Where an error happened and how bad it is."""

    module: str
    operation: str
    severity: Severity = Severity.WARNING
    recoverable: bool = True
    timestamp: float = field(default_factory=time.time)


@dataclass
class ErrorRecord:
    context: ErrorContext
    message: str


class ErrorReporter:
    """Receives structured (module, operation, severity, message) records.

    Records are logged through the standard logger at the matching level and
    kept in ``records`` so a caller (CLI, GUI, tests) can render them later.
    Construct one per run and pass it to the components that report into it.
    """

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger
        self.records: List[ErrorRecord] = []

    def report(self, context: ErrorContext, message: str) -> ErrorRecord:
        record = ErrorRecord(context=context, message=message)
        self.records.append(record)
        tag = click.style(f"[{context.module}/{context.operation}]", fg='bright_black')
        self._log.log(context.severity.log_level, f"{tag} {message}")
        return record

    def report_exception(
        self,
        exc: BaseException,
        module: str,
        operation: str,
        severity: Severity = Severity.ERROR,
        recoverable: bool = False,
    ) -> ErrorRecord:
        msg = getattr(exc, "message", None) or str(exc)
        return self.report(ErrorContext(module, operation, severity, recoverable), msg)

    def has_errors(self) -> bool:
        return any(r.context.severity in (Severity.ERROR, Severity.CRITICAL) for r in self.records)


def log_progress(
    processed: int,
    total: int | None,
    updated: int = 0,
    skipped: int = 0,
    errors: int = 0,
    elapsed_seconds: float = 0.0,
    item_name: str = "files"
) -> None:
    """Log progress info with consistent formatting.

    Args:
        processed: Number of items processed so far
        total: Total number of items (None if unknown)
        updated: Count of updated items
        skipped: Count of skipped items
        errors: Count of failed items
        elapsed_seconds: Time elapsed since start
        item_name: Name of items being processed (e.g., "files", "tracks")
    """
    parts = [
        f"{click.style(f'{processed}', fg='cyan')} {item_name} processed"
    ]

    if total:
        pct = (processed / total * 100) if total > 0 else 0
        parts[0] = f"{click.style(f'{processed}/{total}', fg='cyan')} {item_name} ({pct:.0f}%)"

    if updated > 0:
        parts.append(f"{click.style(f'{updated} updated', fg='blue')}")
    if skipped > 0:
        parts.append(f"{click.style(f'{skipped} skipped', fg='yellow')}")
    if errors > 0:
        parts.append(f"{click.style(f'{errors} errors', fg='red')}")

    if elapsed_seconds > 0:
        rate = processed / elapsed_seconds
        parts.append(f"{rate:.1f} {item_name}/s")

    logger.info(" | ".join(parts))


def format_summary(summary, item_name: str = "Metadata sync") -> str:
    """Format a one-line summary of a ``ProcessSummary`` with colored counts."""
    parts = [
        click.style('✓', fg='green'),
        f"{item_name}:",
        click.style(f'{summary.updated} updated', fg='blue'),
        click.style(f'{summary.no_change} unchanged', fg='yellow'),
    ]
    misses = summary.db_misses
    if misses:
        parts.append(click.style(f'{misses} not in database', fg='magenta'))
    errs = summary.metadata_errs + summary.db_update_errs
    if errs:
        parts.append(click.style(f'{errs} errors', fg='red'))
    if summary.skipped_zero:
        parts.append(click.style(f'{summary.skipped_zero} empty files', fg='red'))
    if summary.skipped_dirs:
        parts.append(click.style(f'{summary.skipped_dirs} dirs skipped', fg='yellow'))
    if summary.duration_seconds > 0:
        parts.append(f"in {summary.duration_seconds:.2f}s")

    return " ".join(parts)


__all__ = [
    "Severity",
    "ErrorContext",
    "ErrorRecord",
    "ErrorReporter",
    "log_progress",
    "format_summary",
]
