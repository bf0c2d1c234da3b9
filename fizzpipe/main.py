from __future__ import annotations

import asyncio
import json
import signal
import sys
from pathlib import Path
from typing import Optional

import typer

from fizzpipe.codecs.registry import available_codecs, codec_for_suffix, decompress
from fizzpipe.config import Settings, get_settings
from fizzpipe.domain.models import decode_records
from fizzpipe.domain.verify import verify_records
from fizzpipe.errors import CodecError, StageFailure
from fizzpipe.orchestrator import PipelineReport, RunConfig, build_pipeline, persist_report
from fizzpipe.reporter import print_report, print_verification
from fizzpipe.utils.logging import configure_logging, get_logger

app = typer.Typer(help="fizzpipe: generate, compress, and persist a FizzBuzz record stream.")
log = get_logger(__name__)


def _check_codec(name: Optional[str]) -> Optional[str]:
    if name is not None and name not in available_codecs():
        raise typer.BadParameter(f"unknown codec '{name}'; choose from {', '.join(available_codecs())}")
    return name


async def _run_until_done(config: RunConfig, settings: Settings) -> PipelineReport:
    """Run the pipeline; SIGINT asks the generator to stop instead of killing the run."""
    pipeline = build_pipeline(config, settings)
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, pipeline.stop)
        installed = True
    except NotImplementedError:
        # Event loops on Windows have no signal handlers; Ctrl+C cancels the run instead.
        log.debug("SIGINT handler not supported on this platform")
        installed = False
    try:
        return await pipeline.run()
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    limit = "unbounded" if settings.record_limit is None else f"{settings.record_limit:,}"
    typer.echo(
        f"output={settings.output_path} codec={settings.codec} records={limit} | "
        f"raw watermarks={settings.raw_high_watermark}/{settings.raw_low_watermark} "
        f"encoded watermarks={settings.encoded_high_watermark}/{settings.encoded_low_watermark} "
        f"flush_interval={settings.flush_interval}"
    )


@app.command()
def codecs() -> None:
    """
    List available codecs.
    """
    typer.echo("Available codecs: " + ", ".join(available_codecs()))


@app.command()
def run(
    records: Optional[int] = typer.Option(
        None,
        "--records",
        "-n",
        min=0,
        help="Number of records to generate (default from settings; unbounded if unset).",
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output file (default from settings)."
    ),
    codec: Optional[str] = typer.Option(
        None, "--codec", "-c", callback=_check_codec, help="Codec name (default from settings)."
    ),
    json_output: bool = typer.Option(False, "--json", help="Print the report as JSON."),
    report_dir: Optional[Path] = typer.Option(
        None, "--report-dir", help="Also persist the report as JSON under this directory."
    ),
) -> None:
    """
    Run the pipeline until the record limit is reached or Ctrl+C is pressed.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    config = RunConfig(output_path=output, codec=codec, record_limit=records)

    try:
        report = asyncio.run(_run_until_done(config, settings))
    except StageFailure as exc:
        typer.echo(f"Pipeline failed in stage '{exc.stage}': {exc.cause}", err=True)
        raise typer.Exit(code=1) from exc

    payload = report.to_dict()
    if report_dir is not None:
        persist_report(report, report_dir)
    if json_output:
        typer.echo(json.dumps(payload, indent=2))
    else:
        print_report(payload)


@app.command()
def inspect(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    codec: Optional[str] = typer.Option(
        None,
        "--codec",
        "-c",
        callback=_check_codec,
        help="Codec used to write the file (guessed from the suffix, else settings).",
    ),
    start: int = typer.Option(0, "--start", min=0, help="Expected first value."),
    head: int = typer.Option(0, "--head", min=0, help="Also print the first N records."),
) -> None:
    """
    Decompress an output file and verify every record.
    """
    name = codec or codec_for_suffix(path.suffix) or get_settings().codec
    try:
        raw = decompress(name, path.read_bytes())
    except CodecError as exc:
        typer.echo(f"Cannot decode {path} as {name}: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    try:
        result = verify_records(raw, start=start)
    except ValueError as exc:
        typer.echo(f"Malformed record stream in {path}: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if head:
        for index, record in enumerate(decode_records(raw)):
            if index >= head:
                break
            typer.echo(f"{record.value:>20} {record.flag.name}")
    print_verification(str(path), result)
    if not result.ok:
        raise typer.Exit(code=1)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
