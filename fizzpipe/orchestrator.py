"""
Orchestrator for wiring, running, and reporting on the fizzpipe pipeline.

    generator -> raw channel -> transform(codec) -> encoded channel -> sink -> store

Usage (example from code):
    from fizzpipe.orchestrator import RunConfig, run_pipeline_sync

    report = run_pipeline_sync(RunConfig(record_limit=1_000_000, output_path="out.brotli"))
    print(report.to_dict())

Each stage runs as its own asyncio task. A failing stage completes its
channel ends with the error, which unblocks its neighbours; the orchestrator
waits for all three tasks and then raises `StageFailure` for the stage that
failed first. Failures caused only by a peer aborting the channel never mask
the failure that triggered them.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from fizzpipe.codecs.abstract import IncrementalCodec
from fizzpipe.codecs.registry import create_codec
from fizzpipe.config import Settings, get_settings
from fizzpipe.errors import ChannelAborted, StageFailure
from fizzpipe.infrastructure.channel import BoundedByteChannel, ChannelStats
from fizzpipe.infrastructure.storage import ByteStore, FileByteStore
from fizzpipe.stages.abstract import PipelineStage, StageResult
from fizzpipe.stages.generator import RecordGenerator
from fizzpipe.stages.sink import SinkStage
from fizzpipe.stages.transform import TransformStage
from fizzpipe.utils.logging import get_logger
from fizzpipe.utils.profiler import ProfileStats, profile_block
from fizzpipe.utils.progress import LoggingProgressReporter, ProgressReporter

log = get_logger(__name__)


def _round_float(value: float, decimals: int = 2) -> float:
    """Round a float to specified decimal places for human-readable output."""
    return round(value, decimals)


@dataclass
class RunConfig:
    """
    Per-run overrides on top of Settings. None means "use the setting".
    """

    output_path: Optional[Path | str] = None
    codec: Optional[str] = None
    record_limit: Optional[int] = None
    start: int = 0
    offload: bool = True


@dataclass
class PipelineReport:
    """Outcome of a successful run."""

    output_path: str
    codec: str
    records: int
    raw_bytes: int
    encoded_bytes: int
    stopped_early: bool
    empty_reads: int
    stages: Dict[str, StageResult] = field(default_factory=dict)
    channels: Dict[str, ChannelStats] = field(default_factory=dict)
    profile: Optional[ProfileStats] = None

    @property
    def compression_ratio(self) -> float:
        return self.raw_bytes / self.encoded_bytes if self.encoded_bytes else 0.0

    @property
    def duration_seconds(self) -> float:
        return self.profile.duration_seconds if self.profile else 0.0

    @property
    def throughput_records_per_sec(self) -> float:
        duration = self.duration_seconds
        return self.records / duration if duration > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view, floats rounded for readability."""
        payload: Dict[str, Any] = {
            "output_path": self.output_path,
            "codec": self.codec,
            "records": self.records,
            "raw_bytes": self.raw_bytes,
            "encoded_bytes": self.encoded_bytes,
            "compression_ratio": _round_float(self.compression_ratio),
            "duration_seconds": _round_float(self.duration_seconds),
            "throughput_records_per_sec": _round_float(self.throughput_records_per_sec),
            "stopped_early": self.stopped_early,
            "empty_reads": self.empty_reads,
            "stages": {name: dict(result) for name, result in self.stages.items()},
            "channels": {
                name: {
                    "high_watermark": stats.high_watermark,
                    "low_watermark": stats.low_watermark,
                    "peak_buffered": stats.peak_buffered,
                    "writer_pauses": stats.writer_pauses,
                    "total_written": stats.total_written,
                }
                for name, stats in self.channels.items()
            },
        }
        if self.profile is not None:
            payload["profile"] = {
                "label": self.profile.label,
                "duration_seconds": _round_float(self.profile.duration_seconds),
                "peak_rss_bytes": self.profile.peak_rss_bytes,
                "cpu_percent": _round_float(self.profile.cpu_percent, 1)
                if self.profile.cpu_percent is not None
                else None,
            }
        return payload


class Pipeline:
    """
    Two channels and three stages, ready to run once.

    Build with `build_pipeline` rather than by hand.
    """

    def __init__(
        self,
        generator: RecordGenerator,
        transform: TransformStage,
        sink: SinkStage,
        raw_channel: BoundedByteChannel,
        encoded_channel: BoundedByteChannel,
        stop_event: asyncio.Event,
        codec_name: str,
        output_path: str,
    ) -> None:
        self.generator = generator
        self.transform = transform
        self.sink = sink
        self.raw_channel = raw_channel
        self.encoded_channel = encoded_channel
        self._stop_event = stop_event
        self.codec_name = codec_name
        self.output_path = output_path

    @property
    def stages(self) -> List[PipelineStage]:
        return [self.generator, self.transform, self.sink]

    def stop(self) -> None:
        """Ask the generator to finish at its next flush; the rest drains normally."""
        log.info("[PIPELINE STOP] requested")
        self._stop_event.set()

    async def run(self) -> PipelineReport:
        """Run all stages to completion and return the report."""
        log.info(
            "[PIPELINE START]",
            extra={"codec": self.codec_name, "output": self.output_path},
        )
        with profile_block("pipeline") as stats:
            results = await self._run_stages()

        generated = results[self.generator.name]
        written = results[self.sink.name]
        report = PipelineReport(
            output_path=self.output_path,
            codec=self.codec_name,
            records=generated.get("records", 0),
            raw_bytes=generated.get("bytes_out", 0),
            encoded_bytes=written.get("bytes_in", 0),
            stopped_early=generated.get("stopped_early", False),
            empty_reads=written.get("empty_reads", 0),
            stages=results,
            channels={
                self.raw_channel.name: self.raw_channel.stats(),
                self.encoded_channel.name: self.encoded_channel.stats(),
            },
            profile=stats,
        )
        log.info(
            "[PIPELINE COMPLETE]",
            extra={
                "records": report.records,
                "encoded_bytes": report.encoded_bytes,
                "duration": _round_float(report.duration_seconds),
            },
        )
        return report

    async def _run_stages(self) -> Dict[str, StageResult]:
        tasks = {
            asyncio.create_task(stage.run(), name=f"fizzpipe-{stage.name}"): stage.name
            for stage in self.stages
        }
        results: Dict[str, StageResult] = {}
        failures: List[Tuple[str, BaseException]] = []

        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    name = tasks[task]
                    if task.cancelled():
                        failures.append((name, asyncio.CancelledError()))
                        continue
                    exc = task.exception()
                    if exc is None:
                        results[name] = task.result()
                    else:
                        failures.append((name, exc))
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        if failures:
            stage, cause = _first_failure(failures)
            log.error(
                f"[PIPELINE FAILED] stage={stage}",
                extra={"stage": stage, "error": str(cause), "error_type": type(cause).__name__},
            )
            raise StageFailure(stage, cause) from cause
        return results


def _first_failure(failures: List[Tuple[str, BaseException]]) -> Tuple[str, BaseException]:
    """First failure in completion order, skipping peers that only saw an aborted channel."""
    for stage, exc in failures:
        if not isinstance(exc, ChannelAborted):
            return stage, exc
    return failures[0]


def build_pipeline(
    config: Optional[RunConfig] = None,
    settings: Optional[Settings] = None,
    *,
    store: Optional[ByteStore] = None,
    codec: Optional[IncrementalCodec] = None,
    progress: Optional[ProgressReporter] = None,
) -> Pipeline:
    """
    Wire channels and stages from settings plus per-run overrides.

    `store`, `codec`, and `progress` replace the defaults built from settings;
    tests use them to inject fakes.
    """
    config = config or RunConfig()
    settings = settings or get_settings()

    output_path = str(config.output_path or settings.output_path)
    limit = config.record_limit if config.record_limit is not None else settings.record_limit

    if codec is None:
        codec = create_codec(config.codec or settings.codec, settings)
    if store is None:
        store = FileByteStore(output_path, buffer_size=settings.store_buffer_size)
    if progress is None:
        progress = LoggingProgressReporter()

    raw_channel = BoundedByteChannel(
        settings.raw_high_watermark, settings.raw_low_watermark, name="raw"
    )
    encoded_channel = BoundedByteChannel(
        settings.encoded_high_watermark, settings.encoded_low_watermark, name="encoded"
    )
    stop_event = asyncio.Event()

    generator = RecordGenerator(
        raw_channel,
        limit=limit,
        start=config.start,
        flush_interval=settings.flush_interval,
        progress=progress,
        progress_interval=settings.progress_interval,
        stop_event=stop_event,
    )
    transform = TransformStage(
        raw_channel,
        encoded_channel,
        codec,
        read_size=settings.transform_read_size,
        offload=config.offload,
    )
    sink = SinkStage(encoded_channel, store, offload=config.offload)

    return Pipeline(
        generator=generator,
        transform=transform,
        sink=sink,
        raw_channel=raw_channel,
        encoded_channel=encoded_channel,
        stop_event=stop_event,
        codec_name=codec.name,
        output_path=output_path,
    )


async def run_pipeline(
    config: Optional[RunConfig] = None,
    settings: Optional[Settings] = None,
    **overrides: Any,
) -> PipelineReport:
    """
    Build and run a pipeline from an async context.

    Keyword overrides are passed to `build_pipeline` (store, codec, progress).
    """
    pipeline = build_pipeline(config, settings, **overrides)
    return await pipeline.run()


def run_pipeline_sync(
    config: Optional[RunConfig] = None,
    settings: Optional[Settings] = None,
    **overrides: Any,
) -> PipelineReport:
    """
    Run a pipeline from synchronous code.

    Raises RuntimeError when called from inside a running event loop; use
    `run_pipeline` there instead.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(run_pipeline(config, settings, **overrides))
    raise RuntimeError(
        "run_pipeline_sync() cannot be called from an async context; await run_pipeline() instead"
    )


def persist_report(report: PipelineReport, results_dir: Path | str = "results") -> Path:
    """
    Write the report to `<results_dir>/latest.json` and a timestamped archive.

    Returns the archive path.
    """
    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)
    payload = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "report": report.to_dict(),
    }
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    for path in (latest_path, archive_path):
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)

    log.info("Report persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})
    return archive_path


__all__ = [
    "RunConfig",
    "PipelineReport",
    "Pipeline",
    "build_pipeline",
    "run_pipeline",
    "run_pipeline_sync",
    "persist_report",
]
