"""
Error taxonomy for the fizzpipe streaming pipeline.

Every failure in the core is fatal: stages propagate these upward immediately
and the orchestrator surfaces the first one as a `StageFailure`. Nothing here
is retried.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline failures."""


class ChannelContractViolation(PipelineError):
    """
    A stage broke the channel protocol.

    Raised when a consumer marks more bytes consumed than were delivered, or a
    producer writes after completing its end. Always a programming error.
    """


class ChannelAborted(PipelineError):
    """
    The opposite end of a channel completed with an error.

    Raised to a writer whose reader gave up, or to a reader whose writer failed.
    """

    def __init__(self, channel: str, cause: Optional[BaseException] = None) -> None:
        self.channel = channel
        self.cause = cause
        detail = f": {cause!r}" if cause is not None else ""
        super().__init__(f"channel '{channel}' aborted by peer{detail}")


class CodecError(PipelineError):
    """The incremental codec was misused (e.g. encode after finalization)."""


class CodecOverflow(CodecError):
    """A chunk exceeded the codec's single-call input capacity."""

    def __init__(self, chunk_size: int, max_input_size: int) -> None:
        self.chunk_size = chunk_size
        self.max_input_size = max_input_size
        super().__init__(
            f"chunk of {chunk_size} bytes exceeds codec capacity of {max_input_size} bytes; "
            "lower the transform read size or the raw channel watermarks"
        )


class StorageWriteFailure(PipelineError):
    """The persistent store rejected an open or append."""

    def __init__(self, path: Path | str, cause: Optional[BaseException] = None) -> None:
        self.path = str(path)
        self.cause = cause
        super().__init__(f"storage write failed for '{self.path}': {cause}")


class StageFailure(PipelineError):
    """Raised by the orchestrator for the first stage that failed."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"stage '{stage}' failed: {type(cause).__name__}: {cause}")


__all__ = [
    "PipelineError",
    "ChannelContractViolation",
    "ChannelAborted",
    "CodecError",
    "CodecOverflow",
    "StorageWriteFailure",
    "StageFailure",
]
