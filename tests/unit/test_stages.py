from __future__ import annotations

import asyncio
import threading
from typing import List

import pytest

from fizzpipe.domain import RECORD_SIZE, encode_records_into, verify_records
from fizzpipe.errors import (
    ChannelAborted,
    ChannelContractViolation,
    CodecOverflow,
    StorageWriteFailure,
)
from fizzpipe.infrastructure.channel import BoundedByteChannel
from fizzpipe.stages import RecordGenerator, SinkStage, TransformStage
from fizzpipe.utils.progress import CollectingProgressReporter
from tests.doubles import (
    BlockCodec,
    ExplodingCodec,
    FailingStore,
    MemoryStore,
    PassthroughCodec,
    settle,
)

RECORD_COUNT = 1000
LARGE = 1 << 20


class _RecordingChannel(BoundedByteChannel):
    """Channel that remembers the size of every write."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.write_sizes: List[int] = []

    async def write(self, data) -> None:
        self.write_sizes.append(len(data))
        await super().write(data)


class _BrokenReporter:
    """Progress reporter whose backend is down."""

    def __init__(self) -> None:
        self.calls = 0

    def report(self, records_emitted: int) -> None:
        self.calls += 1
        raise RuntimeError("metrics collector down")


class _GatedStore(MemoryStore):
    """Store whose append blocks its worker thread until `gate` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.started = threading.Event()
        self.gate = threading.Event()
        self.events: List[str] = []

    def append(self, data: bytes) -> None:
        self.started.set()
        self.gate.wait(timeout=5)
        super().append(data)
        self.events.append("append")

    def close(self) -> None:
        super().close()
        self.events.append("close")


async def _wait_for_thread_event(event: threading.Event, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not event.is_set():
        assert loop.time() < deadline, "worker thread never started"
        await asyncio.sleep(0.005)


async def _drain(channel: BoundedByteChannel) -> bytes:
    received = bytearray()
    while True:
        result = await channel.read()
        received += result.data
        channel.mark_consumed(len(result.data))
        if result.is_empty and result.is_completed:
            return bytes(received)


# --- RecordGenerator ---------------------------------------------------------


@pytest.mark.asyncio
async def test_generator_writes_whole_records_in_flush_batches() -> None:
    channel = _RecordingChannel(LARGE, LARGE // 2, name="raw")
    generator = RecordGenerator(channel, limit=RECORD_COUNT, flush_interval=128)

    result = await generator.run()

    assert result["records"] == RECORD_COUNT
    assert result["bytes_out"] == RECORD_COUNT * RECORD_SIZE
    assert channel.is_write_completed
    assert all(size % RECORD_SIZE == 0 for size in channel.write_sizes)
    assert channel.write_sizes[0] == 128 * RECORD_SIZE
    assert sum(channel.write_sizes) == RECORD_COUNT * RECORD_SIZE

    raw = await _drain(channel)
    verification = verify_records(raw)
    assert verification.ok
    assert verification.records == RECORD_COUNT


@pytest.mark.asyncio
async def test_generator_starts_at_given_value() -> None:
    channel = BoundedByteChannel(LARGE, 0)
    await RecordGenerator(channel, limit=10, start=100).run()

    verification = verify_records(await _drain(channel), start=100)
    assert verification.ok
    assert (verification.first_value, verification.last_value) == (100, 109)


@pytest.mark.asyncio
async def test_generator_reports_progress_at_intervals() -> None:
    channel = BoundedByteChannel(LARGE, 0)
    progress = CollectingProgressReporter()

    await RecordGenerator(
        channel, limit=RECORD_COUNT, flush_interval=128, progress=progress, progress_interval=250
    ).run()

    assert progress.reports == [256, 512, 768, 1000]


@pytest.mark.asyncio
async def test_generator_stops_when_stop_event_is_set() -> None:
    channel = BoundedByteChannel(LARGE, 0)
    stop = asyncio.Event()
    stop.set()

    result = await RecordGenerator(channel, limit=None, stop_event=stop).run()

    assert result["records"] == 0
    assert result["stopped_early"] is True
    assert channel.is_write_completed
    assert (await channel.read()).is_completed


@pytest.mark.asyncio
async def test_generator_suspends_under_backpressure_and_resumes() -> None:
    channel = BoundedByteChannel(high_watermark=9 * 64, low_watermark=9 * 16, name="raw")
    task = asyncio.create_task(RecordGenerator(channel, limit=RECORD_COUNT, flush_interval=32).run())
    await settle()

    # Nobody reads, so the generator is parked at the high watermark.
    assert not task.done()
    assert channel.buffered >= channel.high_watermark

    raw = await asyncio.wait_for(_drain(channel), timeout=5)
    result = await asyncio.wait_for(task, timeout=5)

    assert result["records"] == RECORD_COUNT
    assert verify_records(raw).records == RECORD_COUNT
    assert channel.stats().writer_pauses > 0


@pytest.mark.asyncio
async def test_generator_fails_when_reader_aborts() -> None:
    channel = BoundedByteChannel(LARGE, 0)
    channel.complete_read(RuntimeError("transform died"))

    with pytest.raises(ChannelAborted):
        await RecordGenerator(channel, limit=RECORD_COUNT).run()
    assert channel.is_write_completed


@pytest.mark.asyncio
async def test_generator_cancellation_completes_channel_cleanly() -> None:
    channel = BoundedByteChannel(9 * 64, 9 * 16)
    task = asyncio.create_task(RecordGenerator(channel, limit=None, flush_interval=32).run())
    await settle()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    # A cancelled generator ends the stream normally on a record boundary.
    raw = await asyncio.wait_for(_drain(channel), timeout=5)
    assert len(raw) % RECORD_SIZE == 0
    assert verify_records(raw).ok


@pytest.mark.asyncio
async def test_generator_survives_failing_progress_reporter() -> None:
    channel = BoundedByteChannel(LARGE, 0)
    reporter = _BrokenReporter()

    result = await RecordGenerator(
        channel, limit=RECORD_COUNT, flush_interval=50, progress=reporter, progress_interval=100
    ).run()

    assert reporter.calls == 10
    assert result["records"] == RECORD_COUNT
    verification = verify_records(await _drain(channel))
    assert verification.ok
    assert verification.records == RECORD_COUNT


# --- TransformStage ----------------------------------------------------------


@pytest.mark.asyncio
async def test_transform_reoffers_unconsumed_remainder() -> None:
    source = BoundedByteChannel(100, 50, name="raw")
    destination = BoundedByteChannel(LARGE, 0, name="encoded")
    codec = BlockCodec(block_size=4)
    task = asyncio.create_task(TransformStage(source, destination, codec, offload=False).run())

    await source.write(b"abcdef")
    await settle()
    await source.write(b"gh")
    await settle()
    source.complete_write()

    result = await asyncio.wait_for(task, timeout=5)

    assert codec.calls == [(b"abcdef", False), (b"efgh", False), (b"", True)]
    assert await _drain(destination) == b"abcdefgh"
    assert result["bytes_in"] == 8
    assert codec.released


@pytest.mark.asyncio
async def test_transform_keeps_calling_until_final_chunk_fully_consumed() -> None:
    source = BoundedByteChannel(100, 50)
    destination = BoundedByteChannel(LARGE, 0)
    await source.write(b"abcdefg")
    source.complete_write()
    codec = BlockCodec(block_size=4, max_per_call=4)

    await TransformStage(source, destination, codec, offload=False).run()

    assert codec.calls == [(b"abcdefg", True), (b"efg", True)]
    assert await _drain(destination) == b"abcdefg"
    assert source.stats().total_consumed == 7


@pytest.mark.asyncio
async def test_transform_offloaded_codec_produces_same_output() -> None:
    source = BoundedByteChannel(4096, 1024)
    destination = BoundedByteChannel(LARGE, 0)
    raw = bytearray()
    encode_records_into(raw, 0, RECORD_COUNT)

    generator = RecordGenerator(source, limit=RECORD_COUNT, flush_interval=64)
    transform = TransformStage(source, destination, PassthroughCodec(), offload=True)
    _, _, received = await asyncio.wait_for(
        asyncio.gather(generator.run(), transform.run(), _drain(destination)), timeout=10
    )

    assert received == bytes(raw)


@pytest.mark.asyncio
async def test_transform_rejects_chunk_larger_than_codec_capacity() -> None:
    source = BoundedByteChannel(100, 50)
    destination = BoundedByteChannel(LARGE, 0)
    codec = PassthroughCodec()
    codec.max_input_size = 4
    await source.write(b"too long")

    with pytest.raises(CodecOverflow):
        await TransformStage(source, destination, codec, offload=False).run()

    assert destination.is_write_completed
    assert source.is_read_completed
    assert codec.released
    with pytest.raises(ChannelAborted):
        await destination.read()


@pytest.mark.asyncio
async def test_transform_read_size_avoids_codec_overflow() -> None:
    source = BoundedByteChannel(100, 50)
    destination = BoundedByteChannel(LARGE, 0)
    codec = PassthroughCodec()
    codec.max_input_size = 4
    await source.write(b"exactly ten")
    source.complete_write()

    await TransformStage(source, destination, codec, read_size=4, offload=False).run()

    assert all(len(chunk) <= 4 for chunk, _ in codec.calls)
    assert await _drain(destination) == b"exactly ten"


@pytest.mark.asyncio
async def test_transform_over_reporting_codec_is_contract_violation() -> None:
    class _Greedy(PassthroughCodec):
        def encode(self, chunk, is_final):
            result = super().encode(chunk, is_final)
            return result._replace(bytes_consumed=len(chunk) + 1)

    source = BoundedByteChannel(100, 50)
    destination = BoundedByteChannel(LARGE, 0)
    await source.write(b"abc")

    with pytest.raises(ChannelContractViolation):
        await TransformStage(source, destination, _Greedy(), offload=False).run()


@pytest.mark.asyncio
async def test_transform_codec_failure_aborts_both_channels() -> None:
    source = BoundedByteChannel(100, 50)
    destination = BoundedByteChannel(LARGE, 0)
    codec = ExplodingCodec()
    await source.write(b"abc")

    with pytest.raises(RuntimeError, match="codec exploded"):
        await TransformStage(source, destination, codec, offload=False).run()

    assert codec.released
    assert source.is_read_completed
    with pytest.raises(ChannelAborted):
        await destination.read()


# --- SinkStage ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_sink_appends_each_chunk_once_in_order() -> None:
    source = BoundedByteChannel(LARGE, 0)
    store = MemoryStore()
    task = asyncio.create_task(SinkStage(source, store, offload=False).run())

    await source.write(b"first,")
    await settle()
    await source.write(b"second,")
    await settle()
    await source.write(b"third")
    source.complete_write()

    result = await asyncio.wait_for(task, timeout=5)

    assert bytes(store.data) == b"first,second,third"
    assert store.appends == [6, 7, 5]
    assert result["empty_reads"] == 0
    assert store.open_calls == store.close_calls == 1
    assert source.is_read_completed


@pytest.mark.asyncio
async def test_sink_handles_empty_stream() -> None:
    source = BoundedByteChannel(LARGE, 0)
    source.complete_write()
    store = MemoryStore()

    result = await SinkStage(source, store).run()

    assert result["bytes_in"] == 0
    assert store.appends == []
    assert not store.is_open


@pytest.mark.asyncio
async def test_sink_failure_closes_store_and_aborts_channel() -> None:
    source = BoundedByteChannel(LARGE, 0)
    store = FailingStore(fail_after=1)
    await source.write(b"ok")
    task = asyncio.create_task(SinkStage(source, store, offload=True).run())
    await asyncio.sleep(0.05)
    await source.write(b"boom")

    with pytest.raises(StorageWriteFailure):
        await asyncio.wait_for(task, timeout=5)

    assert bytes(store.data) == b"ok"
    assert not store.is_open
    assert source.is_read_completed
    with pytest.raises(ChannelAborted):
        await source.write(b"more")


@pytest.mark.asyncio
async def test_sink_cancelled_mid_append_closes_store_after_worker_finishes() -> None:
    source = BoundedByteChannel(LARGE, 0)
    store = _GatedStore()
    await source.write(b"payload")
    task = asyncio.create_task(SinkStage(source, store, offload=True).run())

    await _wait_for_thread_event(store.started)
    task.cancel()
    await asyncio.sleep(0.05)

    # The worker still holds the store, so teardown has to wait for it.
    assert not task.done()
    assert store.is_open

    store.gate.set()
    with pytest.raises(asyncio.CancelledError):
        await asyncio.wait_for(task, timeout=5)

    assert store.events == ["append", "close"]
    assert source.is_read_completed


@pytest.mark.asyncio
async def test_transform_cancelled_mid_encode_releases_codec_after_worker_finishes() -> None:
    class _GatedCodec(PassthroughCodec):
        def __init__(self) -> None:
            super().__init__()
            self.started = threading.Event()
            self.gate = threading.Event()
            self.released_during_encode = False

        def encode(self, chunk, is_final):
            self.started.set()
            self.gate.wait(timeout=5)
            self.released_during_encode = self.released
            return super().encode(chunk, is_final)

    source = BoundedByteChannel(100, 50)
    destination = BoundedByteChannel(LARGE, 0)
    codec = _GatedCodec()
    await source.write(b"abc")
    task = asyncio.create_task(TransformStage(source, destination, codec, offload=True).run())

    await _wait_for_thread_event(codec.started)
    task.cancel()
    await asyncio.sleep(0.05)
    assert not codec.released

    codec.gate.set()
    with pytest.raises(asyncio.CancelledError):
        await asyncio.wait_for(task, timeout=5)

    assert codec.released
    assert codec.released_during_encode is False
    assert destination.is_write_completed
