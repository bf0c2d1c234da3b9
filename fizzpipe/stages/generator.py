"""
Record generator: the head of the pipeline.

Emits records for consecutive values into the raw channel. Records are packed
into a local batch and flushed to the channel every `flush_interval` records,
so bytes become visible to the compressor promptly and the channel only ever
sees whole records.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from fizzpipe.domain.models import MAX_VALUE, RECORD_SIZE, encode_records_into
from fizzpipe.infrastructure.channel import BoundedByteChannel
from fizzpipe.stages.abstract import AbstractStage, StageResult
from fizzpipe.utils.logging import get_logger
from fizzpipe.utils.progress import NullProgressReporter, ProgressReporter

log = get_logger(__name__)


class RecordGenerator(AbstractStage):
    """
    Generate records for `start, start + 1, ...` and write them to `output`.

    Parameters
    ----------
    output : BoundedByteChannel
        Raw record channel; this stage is its only writer.
    limit : int | None
        Number of records to produce. None means run to the largest unsigned
        64-bit value, i.e. until stopped.
    start : int
        First value to emit.
    flush_interval : int
        Records per channel write.
    progress : ProgressReporter | None
        Receives the emitted count every `progress_interval` records. Errors it
        raises are logged and generation carries on.
    stop_event : asyncio.Event | None
        When set, generation ends at the next flush boundary and the channel
        is completed normally.
    """

    name: str = "generator"

    def __init__(
        self,
        output: BoundedByteChannel,
        limit: Optional[int] = None,
        start: int = 0,
        flush_interval: int = 128,
        progress: Optional[ProgressReporter] = None,
        progress_interval: int = 1_000_000,
        stop_event: Optional[asyncio.Event] = None,
    ) -> None:
        if flush_interval <= 0:
            raise ValueError(f"flush_interval must be > 0, got {flush_interval}")
        if progress_interval <= 0:
            raise ValueError(f"progress_interval must be > 0, got {progress_interval}")
        if not 0 <= start <= MAX_VALUE:
            raise ValueError(f"start must be an unsigned 64-bit value, got {start}")
        self._output = output
        self._start = start
        self._end = MAX_VALUE + 1 if limit is None else min(start + limit, MAX_VALUE + 1)
        self.flush_interval = flush_interval
        self.progress_interval = progress_interval
        self._progress = progress or NullProgressReporter()
        self._stop_event = stop_event
        self.records_emitted = 0

    def _report_progress(self) -> None:
        try:
            self._progress.report(self.records_emitted)
        except Exception:  # noqa: BLE001 - a broken reporter must not stop generation
            log.warning(
                "[PROGRESS] reporter failed; continuing",
                exc_info=True,
                extra={"records": self.records_emitted},
            )

    async def run(self) -> StageResult:
        error: Optional[BaseException] = None
        stopped_early = False
        value = self._start
        batch = bytearray()
        next_report = self.progress_interval
        try:
            while value < self._end:
                if self._stop_event is not None and self._stop_event.is_set():
                    stopped_early = True
                    log.info(
                        "[GENERATOR STOP] stop requested",
                        extra={"records": self.records_emitted, "next_value": value},
                    )
                    break
                count = min(self.flush_interval, self._end - value)
                encode_records_into(batch, value, count)
                await self._output.write(batch)
                batch.clear()
                value += count
                self.records_emitted += count
                if self.records_emitted >= next_report:
                    self._report_progress()
                    next_report = (self.records_emitted // self.progress_interval + 1) * (
                        self.progress_interval
                    )
        except asyncio.CancelledError:
            # Completed without error: the stream ends on a record boundary.
            raise
        except Exception as exc:
            error = exc
            raise
        finally:
            self._output.complete_write(error)

        log.info(
            "[GENERATOR DONE]",
            extra={"records": self.records_emitted, "stopped_early": stopped_early},
        )
        return StageResult(
            stage=self.name,
            records=self.records_emitted,
            bytes_out=self.records_emitted * RECORD_SIZE,
            stopped_early=stopped_early,
        )


__all__ = ["RecordGenerator"]
