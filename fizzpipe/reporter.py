from __future__ import annotations

from typing import Any, Dict, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from fizzpipe.domain.verify import VerificationResult


def _format_bytes(value: Optional[int]) -> str:
    if value is None:
        return "N/A"
    if value < 1024:
        return f"{value:,} B"
    size = value / 1024
    for unit in ("KiB", "MiB"):
        if size < 1024:
            return f"{size:,.2f} {unit}"
        size /= 1024
    return f"{size:,.2f} GiB"


def print_report(report: Dict[str, Any], console: Optional[Console] = None) -> None:
    """
    Render a pipeline report (`PipelineReport.to_dict()`) as rich tables.

    The first table summarizes the run; the second shows how each channel's
    watermarks behaved, which is where a mis-sized buffer shows up.
    """
    console = console or Console()

    summary = Table(title="fizzpipe run", box=box.ROUNDED, show_header=False)
    summary.add_column("Metric", style="cyan", no_wrap=True)
    summary.add_column("Value", justify="right", style="magenta")

    profile = report.get("profile") or {}
    summary.add_row("Output", str(report.get("output_path", "")))
    summary.add_row("Codec", str(report.get("codec", "")))
    summary.add_row("Records", f"{report.get('records', 0):,}")
    summary.add_row("Raw size", _format_bytes(report.get("raw_bytes")))
    summary.add_row("Encoded size", _format_bytes(report.get("encoded_bytes")))
    summary.add_row("Ratio", f"{report.get('compression_ratio', 0.0):,.2f}x")
    summary.add_row("Duration (s)", f"{report.get('duration_seconds', 0.0):.2f}")
    summary.add_row("Throughput (rec/s)", f"{report.get('throughput_records_per_sec', 0.0):,.2f}")
    summary.add_row("Peak memory", _format_bytes(profile.get("peak_rss_bytes")))
    cpu = profile.get("cpu_percent")
    summary.add_row("CPU %", f"{cpu:.1f}" if cpu is not None else "N/A")
    summary.add_row("Stopped early", "yes" if report.get("stopped_early") else "no")
    summary.add_row("Sink empty reads", str(report.get("empty_reads", 0)))
    console.print(summary)

    channels = report.get("channels") or {}
    if not channels:
        return

    table = Table(title="Channels", box=box.ROUNDED)
    table.add_column("Channel", style="cyan", no_wrap=True)
    table.add_column("High", justify="right", style="green")
    table.add_column("Low", justify="right", style="green")
    table.add_column("Peak buffered", justify="right", style="yellow")
    table.add_column("Writer pauses", justify="right", style="red")
    table.add_column("Bytes through", justify="right", style="magenta")
    for name, stats in channels.items():
        table.add_row(
            name,
            _format_bytes(stats.get("high_watermark")),
            _format_bytes(stats.get("low_watermark")),
            _format_bytes(stats.get("peak_buffered")),
            f"{stats.get('writer_pauses', 0):,}",
            _format_bytes(stats.get("total_written")),
        )
    console.print(table)


def print_verification(path: str, result: VerificationResult, console: Optional[Console] = None) -> None:
    """Render the outcome of `verify_records` for a decoded file."""
    console = console or Console()

    table = Table(title=f"Inspect {path}", box=box.ROUNDED, show_header=False)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right", style="magenta")
    table.add_row("Records", f"{result.records:,}")
    table.add_row("First value", str(result.first_value) if result.first_value is not None else "-")
    table.add_row("Last value", str(result.last_value) if result.last_value is not None else "-")
    for flag, count in result.flag_counts.items():
        table.add_row(f"Flag {flag}", f"{count:,}")
    status = "[green]OK[/green]" if result.ok else f"[red]{result.error_count} error(s)[/red]"
    table.add_row("Status", status)
    console.print(table)

    for message in result.errors:
        console.print(f"[red]- {message}[/red]")


__all__ = ["print_report", "print_verification"]
