"""
Utilities package for fizzpipe.

Exports shared helpers for logging, profiling, and progress reporting.
Keep this package lightweight and free of pipeline logic.
"""

from fizzpipe.utils.logging import configure_logging, get_logger
from fizzpipe.utils.profiler import ProfileStats, profile_block
from fizzpipe.utils.progress import (
    CollectingProgressReporter,
    LoggingProgressReporter,
    NullProgressReporter,
    ProgressReporter,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
    "ProgressReporter",
    "NullProgressReporter",
    "LoggingProgressReporter",
    "CollectingProgressReporter",
]
