"""Progress observers backed by rich."""

from __future__ import annotations

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from datagen.models.stats import StatsSnapshot
from datagen.utils.formatting import format_usd


def stats_label(ok: int, err: int, spend_usd: float | None = None) -> str:
    label = f"ok={ok} err={err}"
    if spend_usd is not None:
        label += f" spent={format_usd(spend_usd)}"
    return label


class ConsoleObserver:
    """Prints warning lines only; used when the progress bar is off."""

    def __init__(self, console: Console):
        self.console = console

    def update(self, snapshot: StatsSnapshot) -> None:
        pass

    def write_line(self, text: str) -> None:
        self.console.print(text, markup=False, highlight=False)


class RichProgressObserver:
    """Live progress bar; warning lines are printed above it."""

    def __init__(self, total: int, console: Console):
        self.total = total
        self.progress = Progress(
            TaskProgressColumn(),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TextColumn("{task.fields[stats]}"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task = self.progress.add_task("prompts", total=total, stats="")

    def __enter__(self) -> RichProgressObserver:
        self.progress.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.progress.stop()

    def update(self, snapshot: StatsSnapshot) -> None:
        self.progress.update(
            self._task,
            completed=snapshot.completed,
            stats=stats_label(snapshot.ok, snapshot.err, snapshot.spend_usd),
        )

    def write_line(self, text: str) -> None:
        self.progress.console.print(text, markup=False, highlight=False)
