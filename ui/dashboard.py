"""
Rich-based terminal dashboard for speed test results.

All formatting helpers live in ``speedcore.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import Iterable, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from speedcore.catalog import TargetServer
from speedcore.latency import LatencyReport
from speedcore.runner import CombinedReport
from speedcore.stats import format_bytes, format_latency, format_speed
from speedcore.throughput import ThroughputReport

console = Console()


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]EZSpeedTest[/bold cyan]\n"
            "[dim]Latency and download throughput from the terminal[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_servers(servers: Iterable[TargetServer], selected: Optional[TargetServer] = None) -> None:
    table = Table(title="Servers", box=box.ROUNDED)
    table.add_column(" ", width=1)
    table.add_column("Name", style="bold")
    table.add_column("Region")
    table.add_column("Location")
    table.add_column("Priority", justify="right")
    table.add_column("Active", justify="center")

    for server in servers:
        is_selected = selected is not None and server.name == selected.name
        location = ", ".join(p for p in (server.city, server.country) if p)
        table.add_row(
            ">" if is_selected else "",
            server.name,
            server.region,
            location or "-",
            str(server.priority),
            "yes" if server.is_active else "[dim]no[/dim]",
            style="green" if is_selected else None,
        )

    console.print(table)


def print_latency_report(report: LatencyReport) -> None:
    table = Table(title=f"Latency to {report.host}", box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Average", format_latency(report.average_ms))
    table.add_row("Median", format_latency(report.median_ms))
    table.add_row("Min", format_latency(report.min_ms))
    table.add_row("Max", format_latency(report.max_ms))

    loss = report.packet_loss_percent
    loss_color = "green" if loss == 0 else ("yellow" if loss < 50 else "red")
    table.add_row(
        "Packet Loss",
        f"[{loss_color}]{loss:.1f}%[/{loss_color}] "
        f"[dim]({report.successful_attempts}/{report.total_attempts})[/dim]",
    )
    console.print(table)


def print_throughput_report(report: ThroughputReport, color: str = "green") -> None:
    table = Table(title="Download Results", box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Speed", f"[bold {color}]{format_speed(report.mbps)}[/bold {color}]")
    table.add_row("Throughput", f"{report.megabytes_per_second:.2f} MB/s")
    table.add_row("Data Transferred", format_bytes(report.bytes_transferred))
    table.add_row("Duration", f"{report.duration_seconds:.2f} s")
    console.print(table)


def print_final_results(report: CombinedReport) -> None:
    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Server:[/bold cyan] {report.server_name} ({report.region})\n\n"
            f"[bold white]   Ping:[/bold white]  [bold yellow]{format_latency(report.ping_ms)}[/bold yellow]  "
            f"[dim](loss: {report.latency.packet_loss_percent:.1f}%)[/dim]\n"
            f"[bold white]   Download:[/bold white]  [bold green]{format_speed(report.download_mbps)}[/bold green]",
            title="[bold]Results[/bold]",
            border_style="cyan",
        )
    )
    console.print()


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

class ProgressDisplay:
    """Manages a ``rich`` progress bar during the download test.

    The bar appears on the first progress update, so it stays hidden while
    a full run is still probing latency.  Its total is the settings'
    download cap; most servers finish well before it, so the bar mainly
    shows bytes and live speed.
    """

    def __init__(self, total_bytes: int, description: str = "Downloading") -> None:
        self.total_bytes = total_bytes
        self.description = description
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40),
            DownloadColumn(),
            TextColumn("[bold cyan]{task.fields[speed]}[/bold cyan]"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = None
        self._last_bytes = 0

    def start(self) -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(self.description, total=self.total_bytes, speed="")
        self._last_bytes = 0

    def update(self, bytes_so_far: int, elapsed: float) -> None:
        if self._task_id is None:
            self.start()
        # Debounce: only redraw every ~256 KB
        if bytes_so_far - self._last_bytes < 256 * 1024:
            return
        mbps = bytes_so_far * 8 / elapsed / 1_000_000 if elapsed > 0 else 0.0
        speed_str = format_speed(mbps) if mbps > 0 else "..."
        self.progress.update(self._task_id, completed=bytes_so_far, speed=speed_str)
        self._last_bytes = bytes_so_far

    def stop(self) -> None:
        if self._task_id is not None:
            self.progress.stop()
            self._task_id = None
