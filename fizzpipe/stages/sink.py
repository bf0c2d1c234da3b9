"""
Sink stage: drains the encoded channel into an append-only store.
"""

from __future__ import annotations

from fizzpipe.infrastructure.channel import BoundedByteChannel
from fizzpipe.infrastructure.storage import ByteStore
from fizzpipe.stages.abstract import AbstractStage, StageResult, run_in_worker
from fizzpipe.utils.logging import get_logger

log = get_logger(__name__)


class SinkStage(AbstractStage):
    """
    Append every chunk read from `source` to `store`, in order, one write per chunk.

    The store is opened when the stage starts and closed when it ends, even on
    failure. An empty read before end-of-stream is counted and logged but is
    not an error; the stage simply reads again.

    Parameters
    ----------
    source : BoundedByteChannel
        Encoded input; this stage is its only reader.
    store : ByteStore
        Destination. Opened fresh by this stage.
    offload : bool
        Run store appends in a worker thread so disk I/O does not block the
        event loop.
    """

    name: str = "sink"

    def __init__(self, source: BoundedByteChannel, store: ByteStore, offload: bool = True) -> None:
        self._source = source
        self._store = store
        self._offload = offload
        self.bytes_written = 0
        self.appends = 0
        self.empty_reads = 0

    async def _append(self, data: bytes) -> None:
        if self._offload:
            await run_in_worker(self._store.append, data)
        else:
            self._store.append(data)

    async def run(self) -> StageResult:
        try:
            with self._store:
                while True:
                    result = await self._source.read()
                    if result.data:
                        await self._append(result.data)
                        self._source.mark_consumed(len(result.data))
                        self.bytes_written += len(result.data)
                        self.appends += 1
                    elif result.is_completed:
                        break
                    else:
                        self.empty_reads += 1
                        log.warning(
                            "[SINK] empty read before end of stream",
                            extra={"channel": self._source.name, "empty_reads": self.empty_reads},
                        )
        except BaseException as exc:
            self._source.complete_read(exc)
            raise

        self._source.complete_read()
        log.info(
            "[SINK DONE]",
            extra={"bytes": self.bytes_written, "appends": self.appends, "empty_reads": self.empty_reads},
        )
        return StageResult(
            stage=self.name,
            bytes_in=self.bytes_written,
            bytes_out=self.bytes_written,
            chunks=self.appends,
            empty_reads=self.empty_reads,
        )


__all__ = ["SinkStage"]
