"""Tests for the bounded-concurrency Scheduler."""

from __future__ import annotations

import asyncio
import io
import json
import logging

import pytest

from datagen.exceptions import SinkWriteError, SourceIOError
from datagen.models.completion import CompletionFailure, CompletionSuccess, TokenUsage
from datagen.models.pricing import PricingInfo
from datagen.models.prompt import PromptTask
from datagen.models.record import build_output_record
from datagen.pipeline.cost_accumulator import CostAccumulator
from datagen.pipeline.output_sink import JsonlSink
from datagen.pipeline.scheduler import Scheduler
from datagen.pipeline.stats_reporter import StatsReporter


def _tasks(n: int) -> list[PromptTask]:
    return [PromptTask(sequence_index=i, line_number=i + 1, text=f"prompt {i}") for i in range(n)]


def _build(task: PromptTask, outcome: CompletionSuccess):
    return build_output_record("", task.text, outcome.content, store_system=True)


class ConcurrencyTracker:
    """Task handler that tracks how many calls are in flight at once."""

    def __init__(self, delays: dict[int, float] | None = None, fail: set[int] | None = None):
        self.delays = delays or {}
        self.fail = fail or set()
        self.active = 0
        self.peak = 0
        self.started: list[int] = []

    async def __call__(self, task: PromptTask):
        self.active += 1
        self.peak = max(self.peak, self.active)
        self.started.append(task.sequence_index)
        try:
            await asyncio.sleep(self.delays.get(task.sequence_index, 0.005))
        finally:
            self.active -= 1
        if task.sequence_index in self.fail:
            return CompletionFailure(message=f"bad request {task.sequence_index}")
        return CompletionSuccess(
            content=f"answer {task.sequence_index}",
            usage=TokenUsage(prompt_tokens=10, completion_tokens=20),
        )


def _rows(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines()]


class TestScheduler:
    @pytest.mark.parametrize("limit", [1, 2, 3, 8])
    async def test_never_exceeds_max_concurrent(self, limit):
        handler = ConcurrencyTracker()
        stream = io.StringIO()
        async with JsonlSink(stream=stream) as sink:
            scheduler = Scheduler(sink, StatsReporter(total=10), _build)
            stats = await scheduler.run(_tasks(10), limit, handler)
        assert handler.peak <= limit
        assert scheduler.max_in_flight_seen <= limit
        assert stats.completed == 10

    async def test_uses_available_concurrency(self):
        handler = ConcurrencyTracker(delays={i: 0.02 for i in range(6)})
        async with JsonlSink(stream=io.StringIO()) as sink:
            await Scheduler(sink, StatsReporter(), _build).run(_tasks(6), 3, handler)
        assert handler.peak == 3

    async def test_admission_follows_source_order(self):
        handler = ConcurrencyTracker()
        async with JsonlSink(stream=io.StringIO()) as sink:
            await Scheduler(sink, StatsReporter(), _build).run(_tasks(7), 2, handler)
        assert handler.started == list(range(7))

    async def test_output_in_completion_order(self):
        # Task 0 is slow, so task 1 finishes and is written first.
        handler = ConcurrencyTracker(delays={0: 0.05, 1: 0.0})
        stream = io.StringIO()
        async with JsonlSink(stream=stream) as sink:
            await Scheduler(sink, StatsReporter(), _build).run(_tasks(2), 2, handler)
        contents = [row["messages"][-1]["content"] for row in _rows(stream)]
        assert contents == ["answer 1", "answer 0"]

    async def test_failure_is_isolated(self, observer):
        handler = ConcurrencyTracker(fail={1})
        stream = io.StringIO()
        reporter = StatsReporter(total=3, observer=observer)
        async with JsonlSink(stream=stream) as sink:
            stats = await Scheduler(sink, reporter, _build).run(_tasks(3), 2, handler)
        assert (stats.completed, stats.ok, stats.err) == (3, 2, 1)
        assert len(_rows(stream)) == 2
        assert observer.lines == ["ERR line 2: bad request 1"]

    async def test_handler_exception_becomes_failure(self):
        async def explode(task: PromptTask):
            if task.sequence_index == 0:
                raise ConnectionError("reset by peer")
            return CompletionSuccess(content="ok")

        stream = io.StringIO()
        async with JsonlSink(stream=stream) as sink:
            stats = await Scheduler(sink, StatsReporter(), _build).run(_tasks(3), 3, explode)
        assert (stats.ok, stats.err) == (2, 1)
        assert len(_rows(stream)) == 2

    async def test_completed_always_equals_ok_plus_err(self, observer):
        handler = ConcurrencyTracker(fail={0, 3, 4})
        reporter = StatsReporter(total=8, observer=observer)
        async with JsonlSink(stream=io.StringIO()) as sink:
            await Scheduler(sink, reporter, _build).run(_tasks(8), 3, handler)
        assert [s.completed for s in observer.snapshots] == list(range(1, 9))
        for snap in observer.snapshots:
            assert snap.completed == snap.ok + snap.err

    async def test_drains_before_returning(self):
        handler = ConcurrencyTracker(delays={i: 0.01 * (5 - i) for i in range(5)})
        async with JsonlSink(stream=io.StringIO()) as sink:
            stats = await Scheduler(sink, StatsReporter(), _build).run(_tasks(5), 5, handler)
        assert handler.active == 0
        assert stats.completed == 5

    async def test_empty_source(self):
        handler = ConcurrencyTracker()
        async with JsonlSink(stream=io.StringIO()) as sink:
            stats = await Scheduler(sink, StatsReporter(), _build).run([], 2, handler)
        assert stats.completed == 0
        assert handler.started == []

    async def test_rejects_zero_concurrency(self):
        async with JsonlSink(stream=io.StringIO()) as sink:
            with pytest.raises(ValueError):
                await Scheduler(sink, StatsReporter(), _build).run(_tasks(1), 0, ConcurrencyTracker())

    async def test_spend_only_from_successful_tasks(self):
        pricing = PricingInfo(
            model_id="m",
            prompt_per_token_usd=0.001,
            completion_per_token_usd=0.002,
            request_usd=0.01,
            known_prompt=True,
            known_completion=True,
            known_request=True,
        )
        handler = ConcurrencyTracker(fail={2})
        cost = CostAccumulator(pricing)
        reporter = StatsReporter(track_spend=True)
        async with JsonlSink(stream=io.StringIO()) as sink:
            stats = await Scheduler(sink, reporter, _build, cost=cost).run(_tasks(4), 2, handler)
        per_task = 0.01 + 10 * 0.001 + 20 * 0.002
        assert stats.spend_usd == pytest.approx(3 * per_task)

    async def test_spend_absent_without_pricing(self):
        async with JsonlSink(stream=io.StringIO()) as sink:
            stats = await Scheduler(sink, StatsReporter(), _build).run(_tasks(2), 2, ConcurrencyTracker())
        assert stats.spend_usd is None


class TestSchedulerFatalErrors:
    async def test_sink_error_aborts_run(self):
        class BrokenStream(io.StringIO):
            def write(self, s):
                raise OSError(5, "Input/output error")

        handler = ConcurrencyTracker(delays={i: 0.01 for i in range(6)})
        async with JsonlSink(stream=BrokenStream()) as sink:
            with pytest.raises(SinkWriteError):
                await Scheduler(sink, StatsReporter(), _build).run(_tasks(6), 2, handler)
        assert handler.active == 0

    async def test_source_error_aborts_run(self):
        def broken_source():
            yield from _tasks(2)
            raise SourceIOError("disk went away")

        handler = ConcurrencyTracker(delays={0: 0.05, 1: 0.05})
        async with JsonlSink(stream=io.StringIO()) as sink:
            with pytest.raises(SourceIOError, match="disk went away"):
                await Scheduler(sink, StatsReporter(), _build).run(broken_source(), 4, handler)
        assert handler.active == 0

    async def test_fatal_error_logged_with_traceback(self, caplog):
        class BrokenStream(io.StringIO):
            def write(self, s):
                raise OSError(5, "Input/output error")

        caplog.set_level(logging.ERROR, logger="datagen.pipeline.scheduler")
        async with JsonlSink(stream=BrokenStream()) as sink:
            with pytest.raises(SinkWriteError):
                await Scheduler(sink, StatsReporter(), _build).run(_tasks(3), 3, ConcurrencyTracker())
        records = [r for r in caplog.records if r.name == "datagen.pipeline.scheduler"]
        assert records
        assert records[0].exc_info is not None
        assert records[0].exc_info[0] is SinkWriteError

    async def test_closed_output_stream_aborts_run(self):
        stream = io.StringIO()
        stream.close()
        async with JsonlSink(stream=stream) as sink:
            with pytest.raises(SinkWriteError, match="closed file"):
                await asyncio.wait_for(
                    Scheduler(sink, StatsReporter(), _build).run(_tasks(4), 2, ConcurrencyTracker()),
                    timeout=2.0,
                )


class TestSchedulerMalformedCompletions:
    async def test_lone_surrogate_row_is_written(self):
        async def handler(task: PromptTask):
            if task.sequence_index == 0:
                return CompletionSuccess(content="bad \ud800 text")
            return CompletionSuccess(content=f"answer {task.sequence_index}")

        stream = io.StringIO()
        async with JsonlSink(stream=stream) as sink:
            stats = await Scheduler(sink, StatsReporter(), _build).run(_tasks(3), 2, handler)

        assert (stats.completed, stats.ok, stats.err) == (3, 3, 0)
        contents = sorted(row["messages"][-1]["content"] for row in _rows(stream))
        assert contents == ["answer 1", "answer 2", "bad \ud800 text"]

    async def test_record_build_error_is_task_failure(self, observer):
        def build(task: PromptTask, outcome: CompletionSuccess):
            if task.sequence_index == 1:
                raise ValueError("unusable content")
            return _build(task, outcome)

        stream = io.StringIO()
        reporter = StatsReporter(total=3, observer=observer)
        async with JsonlSink(stream=stream) as sink:
            stats = await Scheduler(sink, reporter, build).run(_tasks(3), 3, ConcurrencyTracker())

        assert (stats.completed, stats.ok, stats.err) == (3, 2, 1)
        assert len(_rows(stream)) == 2
        assert observer.lines == ["ERR line 2: Malformed completion: unusable content"]
