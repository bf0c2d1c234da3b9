"""
Pytest configuration for fizzpipe.

Provides fixtures for:
- Settings with small watermarks so flow control kicks in quickly
- An in-memory store for sink and orchestrator tests
- Restoring root logging after CLI tests reconfigure it
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Generator

import pytest

from fizzpipe.config import Settings
from tests.doubles import MemoryStore


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """
    Settings fixture with small watermarks and an output path under tmp_path.
    """
    return Settings(
        output_path=str(tmp_path / "result.brotli"),
        raw_high_watermark=4096,
        raw_low_watermark=2048,
        encoded_high_watermark=8192,
        encoded_low_watermark=1024,
        flush_interval=32,
        progress_interval=10_000,
        log_level="DEBUG",
    )


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def restore_logging() -> Generator[None, None, None]:
    """Put root logging back the way it was after a test reconfigures it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
