"""
Bounded byte channels: the backpressure mechanism between pipeline stages.

A BoundedByteChannel is a single-producer/single-consumer byte stream with two
watermarks:

- Once unread bytes reach `high_watermark`, the next `write` suspends.
- A suspended writer resumes only after the reader brings the level down to
  `low_watermark` or below. The gap between the two is hysteresis so the
  writer does not thrash around a single threshold.

Reads are two-phase. `read` hands out the unconsumed prefix of the stream
without removing it; `mark_consumed(n)` then commits only the first `n` bytes.
Anything not committed is handed out again, at the front of the next read.
This is what lets a block-oriented codec take only what it can use.

A reader that has already seen everything buffered waits for *new* bytes
rather than being handed the same chunk again, so a consumer that cannot make
progress on a partial chunk does not spin.

The channel is built for asyncio: all methods must be called from the event
loop thread that runs both stages.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from fizzpipe.errors import ChannelAborted, ChannelContractViolation
from fizzpipe.utils.logging import get_logger

log = get_logger(__name__)

BytesLike = bytes | bytearray | memoryview


@dataclass(frozen=True)
class ReadResult:
    """
    Outcome of a single `read`.

    `is_completed` is true only when the writer has completed and `data`
    reaches the end of everything it wrote, i.e. nothing unread lies beyond
    this chunk.
    """

    data: bytes
    is_completed: bool

    @property
    def is_empty(self) -> bool:
        return not self.data

    def __len__(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ChannelStats:
    """Observable state of a channel."""

    name: str
    high_watermark: int
    low_watermark: int
    buffered: int
    total_written: int
    total_consumed: int
    peak_buffered: int
    writer_pauses: int
    write_completed: bool
    read_completed: bool


class BoundedByteChannel:
    """
    An ordered in-memory byte stream with watermark flow control.

    Args:
        high_watermark: Unread level at which writes suspend. Must be > 0.
        low_watermark: Level at or below which a suspended writer resumes.
            Must satisfy 0 <= low_watermark < high_watermark.
        name: Display name for logs and errors.

    Raises:
        ValueError: If the watermarks are inconsistent.
    """

    def __init__(self, high_watermark: int, low_watermark: int, name: str = "channel") -> None:
        if high_watermark <= 0:
            raise ValueError(f"high_watermark must be > 0, got {high_watermark}")
        if low_watermark < 0 or low_watermark >= high_watermark:
            raise ValueError(
                f"low_watermark must satisfy 0 <= low < high ({high_watermark}), got {low_watermark}"
            )
        self._name = name
        self._high = high_watermark
        self._low = low_watermark

        self._buffer = bytearray()
        # Bytes handed out by the most recent read and not yet committed.
        self._delivered = 0
        # Bytes at the front of the buffer the reader has already been shown.
        self._examined = 0

        self._write_completed = False
        self._write_error: Optional[BaseException] = None
        self._read_completed = False
        self._read_error: Optional[BaseException] = None

        self._readable = asyncio.Event()
        self._writable = asyncio.Event()

        self._total_written = 0
        self._total_consumed = 0
        self._peak_buffered = 0
        self._writer_pauses = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def high_watermark(self) -> int:
        return self._high

    @property
    def low_watermark(self) -> int:
        return self._low

    @property
    def buffered(self) -> int:
        """Bytes written but not yet marked consumed."""
        return len(self._buffer)

    @property
    def is_write_completed(self) -> bool:
        return self._write_completed

    @property
    def is_read_completed(self) -> bool:
        return self._read_completed

    async def write(self, data: BytesLike) -> None:
        """
        Append `data` to the stream.

        Suspends first if the unread level is at or above the high watermark,
        until the reader drains it to the low watermark.

        Raises:
            ChannelContractViolation: If the write end was already completed.
            ChannelAborted: If the reader completed the channel (it failed).
        """
        if self._write_completed:
            raise ChannelContractViolation(f"write to completed channel '{self._name}'")
        self._raise_if_reader_gone()

        if len(self._buffer) >= self._high:
            self._writer_pauses += 1
            log.debug(
                f"[CHANNEL PAUSE] {self._name}",
                extra={"channel": self._name, "buffered": len(self._buffer)},
            )
            while len(self._buffer) > self._low and not self._read_completed:
                self._writable.clear()
                await self._writable.wait()
            self._raise_if_reader_gone()

        if not data:
            return
        self._buffer += data
        self._total_written += len(data)
        if len(self._buffer) > self._peak_buffered:
            self._peak_buffered = len(self._buffer)
        self._readable.set()

    async def read(self, max_bytes: Optional[int] = None) -> ReadResult:
        """
        Return the unconsumed prefix of the stream, up to `max_bytes`.

        Suspends while the reader has already examined every buffered byte and
        the writer has not completed. Follow with `mark_consumed`.

        Raises:
            ChannelAborted: If the writer completed with an error.
            ChannelContractViolation: If the read end was already completed.
        """
        if max_bytes is not None and max_bytes <= 0:
            raise ValueError(f"max_bytes must be > 0, got {max_bytes}")
        if self._read_completed:
            raise ChannelContractViolation(f"read from completed channel '{self._name}'")

        while len(self._buffer) <= self._examined and not self._write_completed:
            self._readable.clear()
            await self._readable.wait()

        if self._write_error is not None:
            raise ChannelAborted(self._name, self._write_error)

        available = len(self._buffer)
        size = available if max_bytes is None else min(available, max_bytes)
        data = bytes(self._buffer[:size])
        self._delivered = size
        self._examined = max(self._examined, size)
        return ReadResult(data=data, is_completed=self._write_completed and size == available)

    def mark_consumed(self, count: int) -> None:
        """
        Commit the first `count` bytes of the most recent read.

        Raises:
            ChannelContractViolation: If `count` is negative or exceeds what was
                delivered and not yet committed.
        """
        if count < 0 or count > self._delivered:
            raise ChannelContractViolation(
                f"cannot mark {count} bytes consumed on '{self._name}'; "
                f"only {self._delivered} delivered and uncommitted"
            )
        if count == 0:
            return
        del self._buffer[:count]
        self._delivered -= count
        self._examined -= count
        self._total_consumed += count
        if len(self._buffer) <= self._low:
            self._writable.set()

    def complete_write(self, error: Optional[BaseException] = None) -> None:
        """
        Signal that no more bytes will be written. Idempotent: the first call wins.

        With `error`, the reader's next `read` raises `ChannelAborted`.
        """
        if self._write_completed:
            return
        self._write_completed = True
        self._write_error = error
        log.debug(
            f"[CHANNEL WRITE COMPLETE] {self._name}",
            extra={"channel": self._name, "total_written": self._total_written, "failed": error is not None},
        )
        self._readable.set()

    def complete_read(self, error: Optional[BaseException] = None) -> None:
        """
        Signal that the reader will not read again. Idempotent.

        Buffered bytes are dropped and a suspended writer is released; any
        further `write` raises `ChannelAborted`.
        """
        if self._read_completed:
            return
        self._read_completed = True
        self._read_error = error
        self._buffer.clear()
        self._delivered = 0
        self._examined = 0
        self._writable.set()

    def stats(self) -> ChannelStats:
        """Return a snapshot of the channel's observable state."""
        return ChannelStats(
            name=self._name,
            high_watermark=self._high,
            low_watermark=self._low,
            buffered=len(self._buffer),
            total_written=self._total_written,
            total_consumed=self._total_consumed,
            peak_buffered=self._peak_buffered,
            writer_pauses=self._writer_pauses,
            write_completed=self._write_completed,
            read_completed=self._read_completed,
        )

    def _raise_if_reader_gone(self) -> None:
        if self._read_completed:
            raise ChannelAborted(self._name, self._read_error)

    def __repr__(self) -> str:
        return f"<BoundedByteChannel '{self._name}' {len(self._buffer)}/{self._high}>"


__all__ = ["BoundedByteChannel", "ChannelStats", "ReadResult"]
