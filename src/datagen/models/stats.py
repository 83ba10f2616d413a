"""Run statistics."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RunStats:
    """Mutable aggregate counters for a single run. ``completed == ok + err``."""

    completed: int = 0
    ok: int = 0
    err: int = 0
    spend_usd: float | None = None


@dataclass(frozen=True)
class StatsSnapshot:
    """Immutable view of RunStats handed to progress observers."""

    completed: int
    total: int
    ok: int
    err: int
    spend_usd: float | None = None
