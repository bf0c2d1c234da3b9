"""
Progress reporting collaborators for the record generator.

The generator never touches global counters or prints; it is handed a
`ProgressReporter` and calls it periodically. Reporting is fire-and-forget:
a reporter must not raise and its absence must not change the output.
"""

from __future__ import annotations

import logging
import time
from typing import Protocol, runtime_checkable

from fizzpipe.utils.logging import get_logger


@runtime_checkable
class ProgressReporter(Protocol):
    """Receives periodic progress notifications from the generator."""

    def report(self, records_emitted: int) -> None:
        """Called with the total number of records emitted so far."""
        ...


class NullProgressReporter:
    """Discards every notification."""

    def report(self, records_emitted: int) -> None:
        del records_emitted


class LoggingProgressReporter:
    """
    Log progress with the generation rate since the previous report.

    Each line carries `records` and `records_per_sec` as structured fields.
    """

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self._log = logger or get_logger(__name__)
        self._level = level
        self._last_ts = time.perf_counter()
        self._last_count = 0

    def report(self, records_emitted: int) -> None:
        now = time.perf_counter()
        elapsed = now - self._last_ts
        rate = (records_emitted - self._last_count) / elapsed if elapsed > 0 else 0.0
        self._last_ts = now
        self._last_count = records_emitted
        self._log.log(
            self._level,
            f"[PROGRESS] {records_emitted:,} records",
            extra={"records": records_emitted, "records_per_sec": round(rate, 1)},
        )


class CollectingProgressReporter:
    """Keeps every notification in memory; handy in tests and notebooks."""

    def __init__(self) -> None:
        self.reports: list[int] = []

    def report(self, records_emitted: int) -> None:
        self.reports.append(records_emitted)


__all__ = [
    "ProgressReporter",
    "NullProgressReporter",
    "LoggingProgressReporter",
    "CollectingProgressReporter",
]
