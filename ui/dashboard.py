"""
Rich-based terminal dashboard for speed test events.

All formatting helpers live in ``engine.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from engine.events import Finished, Progress as ProgressEvent
from engine.stats import TestResult, format_bytes, format_speed

console = Console()


# ---------------------------------------------------------------------------
# Histogram helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_histogram(values: List[float], height: int = 5) -> str:
    """Return a single-line Unicode bar-chart."""
    if not values:
        return "No data"

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    norm = [(v - lo) / span * height for v in values]
    return "".join(_BARS[min(int(n * (len(_BARS) - 1) / height), len(_BARS) - 1)] for n in norm)


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]SpeedHive[/bold cyan]\n"
            "[dim]Fast, lightweight speed measurement from the terminal[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_config(config: Dict[str, Any], path: str = "") -> None:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="dim")
    table.add_column(style="bold")
    for key in sorted(config):
        table.add_row(f"{key}:", str(config[key]))
    title = f"[bold]Configuration[/bold] [dim]{path}[/dim]" if path else "[bold]Configuration[/bold]"
    console.print(Panel(table, title=title, border_style="blue"))


def print_speed_result(
    result: Finished,
    title: str,
    color: str = "green",
    samples: Optional[List[float]] = None,
) -> None:
    """Print a download or upload result panel."""
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Speed", f"[bold {color}]{format_speed(result.avg_mbps)}[/bold {color}]")
    table.add_row("Data Transferred", format_bytes(result.total_bytes))
    table.add_row("Duration", f"{result.elapsed_ms / 1000:.2f} s")
    if result.cancelled:
        table.add_row("Status", "[yellow]cancelled[/yellow]")
    console.print(table)

    if samples:
        console.print(
            Panel(
                f"[{color}]{create_histogram(samples)}[/{color}]\n"
                f"[dim]Min: {min(samples):.1f} Mbps  "
                f"Max: {max(samples):.1f} Mbps[/dim]",
                title="Speed Over Time",
            )
        )


def print_error(title: str, message: str) -> None:
    console.print(Panel(f"[red]{message}[/red]", title=f"[bold]{title}[/bold]", border_style="red"))


def print_final_results(
    download: Optional[TestResult],
    upload: Optional[TestResult],
) -> None:
    def _fmt(result: Optional[TestResult], color: str) -> str:
        if result is None:
            return "[dim]--[/dim]"
        return f"[bold {color}]{format_speed(result.avg_mbps)}[/bold {color}]"

    console.print()
    console.print(
        Panel.fit(
            f"[bold white]   Download:[/bold white]  {_fmt(download, 'green')}\n"
            f"[bold white]   Upload:[/bold white]  {_fmt(upload, 'blue')}",
            title="[bold]Results[/bold]",
            border_style="cyan",
        )
    )
    console.print()


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

class ProgressDisplay:
    """Manages a ``rich`` progress bar fed by ``Progress`` events."""

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[bold cyan]{task.fields[speed]}[/bold cyan]"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = None
        self._duration_ms = 0.0

    def start(self, description: str, duration_ms: float) -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(description, total=100, speed="...")
        self._duration_ms = duration_ms

    def update(self, event: ProgressEvent) -> None:
        if self._task_id is None or self._duration_ms <= 0:
            return
        pct = min(event.elapsed_ms / self._duration_ms, 1.0) * 100
        speed_str = format_speed(event.instantaneous_mbps) if event.bytes_transferred else "..."
        self.progress.update(self._task_id, completed=pct, speed=speed_str)

    def finish(self) -> None:
        if self._task_id is not None:
            self.progress.update(self._task_id, completed=100)

    def stop(self) -> None:
        self.progress.stop()
        self._task_id = None
