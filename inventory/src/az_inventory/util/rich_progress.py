from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TaskProgressColumn, TextColumn, TimeElapsedColumn
from rich.table import Table


class RunProgress:
    """
    Two-phase progress display for a report run: fetching listings, then
    flattening/exporting reports. A disabled instance is a no-op.
    """

    def __init__(self, *, enabled: bool, console: Optional[Console] = None) -> None:
        self._enabled = bool(enabled)
        self._console = console or Console(stderr=True)
        self._progress: Optional[Progress] = None
        self._listing_task: Optional[TaskID] = None
        self._report_task: Optional[TaskID] = None
        self._started = False
        if self._enabled:
            self._progress = Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TextColumn("{task.fields[current]}", justify="left"),
                TimeElapsedColumn(),
                console=self._console,
                transient=True,
            )

    def __enter__(self) -> RunProgress:
        if self._progress and not self._started:
            self._progress.start()
            self._started = True
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        if self._progress and self._started:
            self._progress.stop()
            self._started = False

    def start_listings(self, listings: Sequence[str]) -> None:
        if not self._progress:
            return
        self._listing_task = self._progress.add_task("Listings", total=len(listings), current="")

    def listing_started(self, listing: str) -> None:
        if not self._progress or self._listing_task is None:
            return
        self._progress.update(self._listing_task, current=listing)

    def listing_done(self, listing: str, count: int) -> None:
        if not self._progress or self._listing_task is None:
            return
        self._progress.update(self._listing_task, advance=1, current=f"{listing}={count}")

    def start_reports(self, reports: Sequence[str]) -> None:
        if not self._progress:
            return
        self._report_task = self._progress.add_task("Reports", total=len(reports), current="")

    def report_done(self, report: str) -> None:
        if not self._progress or self._report_task is None:
            return
        self._progress.update(self._report_task, advance=1, current=report)


def render_run_summary_table(
    *,
    enabled: bool,
    status: str,
    summary: Dict[str, Any],
    outdir: str,
    console: Optional[Console] = None,
) -> None:
    if not enabled:
        return
    table = Table(title="Report Summary", show_header=True, header_style="bold")
    table.add_column("Report", style="cyan")
    table.add_column("Rows", justify="right")
    table.add_column("Matched", justify="right")
    table.add_column("File", style="white")
    for name, info in summary.get("reports", {}).items():
        matched = info.get("matched", {})
        rendered = ", ".join(f"{k}={v}" for k, v in matched.items()) or "-"
        table.add_row(name, str(info.get("rows", 0)), rendered, str(info.get("csv", "")))
    table.caption = f"Status: {status}  Subscription: {summary.get('subscription_name') or '-'}  Output: {outdir}"
    (console or Console(stderr=True)).print(table)
