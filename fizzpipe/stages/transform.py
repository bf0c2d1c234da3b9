"""
Transform stage: adapts an incremental codec to a pair of byte channels.

Loop:
    read a chunk from the input channel
    encode it (final only when the chunk reaches end-of-stream)
    commit exactly `bytes_consumed` on the input channel
    write the codec output to the output channel

Unconsumed bytes stay in the input channel and come back at the front of the
next read, so a codec that works in blocks never loses its remainder. Once
the input is exhausted and the codec has fully consumed its final chunk, the
output channel is completed and the codec released.

A codec that holds back a remainder must be able to consume a chunk once the
raw channel is past its high watermark; a remainder above the low watermark
would otherwise leave the writer paused and the reader waiting.
"""

from __future__ import annotations

from typing import Optional

from fizzpipe.codecs.abstract import CodecResult, IncrementalCodec
from fizzpipe.errors import CodecOverflow
from fizzpipe.infrastructure.channel import BoundedByteChannel
from fizzpipe.stages.abstract import AbstractStage, StageResult, run_in_worker
from fizzpipe.utils.logging import get_logger

log = get_logger(__name__)


class TransformStage(AbstractStage):
    """
    Pull from `source`, encode with `codec`, push to `destination`.

    Parameters
    ----------
    source : BoundedByteChannel
        Raw input; this stage is its only reader.
    destination : BoundedByteChannel
        Encoded output; this stage is its only writer.
    codec : IncrementalCodec
        Owned by this stage and released when it finishes.
    read_size : int | None
        Cap on bytes offered to the codec per call. None offers everything
        buffered.
    offload : bool
        Run codec calls in a worker thread so compression does not block the
        event loop.
    """

    name: str = "transform"

    def __init__(
        self,
        source: BoundedByteChannel,
        destination: BoundedByteChannel,
        codec: IncrementalCodec,
        read_size: Optional[int] = None,
        offload: bool = True,
    ) -> None:
        self._source = source
        self._destination = destination
        self._codec = codec
        self._read_size = read_size
        self._offload = offload
        self.bytes_in = 0
        self.bytes_out = 0
        self.codec_calls = 0
        self.empty_reads = 0

    async def _encode(self, chunk: bytes, is_final: bool) -> CodecResult:
        self.codec_calls += 1
        if self._offload:
            return await run_in_worker(self._codec.encode, chunk, is_final)
        return self._codec.encode(chunk, is_final)

    async def _emit(self, output: bytes) -> None:
        if output:
            await self._destination.write(output)
            self.bytes_out += len(output)

    async def run(self) -> StageResult:
        error: Optional[BaseException] = None
        finalized = False
        try:
            while True:
                result = await self._source.read(self._read_size)
                chunk = result.data

                if chunk:
                    if len(chunk) > self._codec.max_input_size:
                        raise CodecOverflow(len(chunk), self._codec.max_input_size)
                    encoded = await self._encode(chunk, result.is_completed)
                    self._source.mark_consumed(encoded.bytes_consumed)
                    self.bytes_in += encoded.bytes_consumed
                    await self._emit(encoded.output)
                    if result.is_completed and encoded.bytes_consumed == len(chunk):
                        finalized = True
                        break
                elif result.is_completed:
                    if not finalized:
                        # Input ended on a chunk boundary; the codec still owes its trailer.
                        encoded = await self._encode(b"", True)
                        await self._emit(encoded.output)
                        finalized = True
                    break
                else:
                    self.empty_reads += 1
                    log.warning(
                        "[TRANSFORM] empty read before end of stream",
                        extra={"channel": self._source.name, "empty_reads": self.empty_reads},
                    )
        except BaseException as exc:
            error = exc
            self._source.complete_read(exc)
            raise
        finally:
            self._destination.complete_write(error)
            self._codec.release()

        self._source.complete_read()
        log.info(
            "[TRANSFORM DONE]",
            extra={
                "codec": self._codec.name,
                "bytes_in": self.bytes_in,
                "bytes_out": self.bytes_out,
                "codec_calls": self.codec_calls,
            },
        )
        return StageResult(
            stage=self.name,
            bytes_in=self.bytes_in,
            bytes_out=self.bytes_out,
            chunks=self.codec_calls,
            empty_reads=self.empty_reads,
            notes=f"codec={self._codec.name}",
        )


__all__ = ["TransformStage"]
