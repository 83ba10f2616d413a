"""Run counters and progress notification."""

from __future__ import annotations

import logging
from typing import Protocol

from datagen.models.stats import RunStats, StatsSnapshot

logger = logging.getLogger(__name__)


class ProgressObserver(Protocol):
    def update(self, snapshot: StatsSnapshot) -> None: ...

    def write_line(self, text: str) -> None: ...


class NullObserver:
    """Observer that ignores everything (non-interactive runs, tests)."""

    def update(self, snapshot: StatsSnapshot) -> None:
        pass

    def write_line(self, text: str) -> None:
        pass


class StatsReporter:
    """Owns the RunStats of a run and notifies an observer after every change."""

    def __init__(
        self,
        total: int = 0,
        observer: ProgressObserver | None = None,
        *,
        track_spend: bool = False,
    ):
        self.total = total
        self.observer = observer or NullObserver()
        self.track_spend = track_spend
        self.stats = RunStats(spend_usd=0.0 if track_spend else None)

    def snapshot(self) -> StatsSnapshot:
        return StatsSnapshot(
            completed=self.stats.completed,
            total=self.total,
            ok=self.stats.ok,
            err=self.stats.err,
            spend_usd=self.stats.spend_usd,
        )

    def record(self, success: bool, cost_delta: float | None = None) -> None:
        self.stats.completed += 1
        if success:
            self.stats.ok += 1
        else:
            self.stats.err += 1
        if self.track_spend and cost_delta is not None:
            self.stats.spend_usd += cost_delta
        self.observer.update(self.snapshot())

    def publish(self) -> None:
        """Push the current snapshot without changing any counter."""
        self.observer.update(self.snapshot())

    def warn(self, text: str) -> None:
        self.observer.write_line(text)
