"""Bounded-concurrency scheduler for prompt tasks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable

from datagen.models.completion import CompletionFailure, CompletionOutcome, CompletionSuccess
from datagen.models.prompt import PromptTask
from datagen.models.record import OutputRecord
from datagen.models.stats import RunStats
from datagen.pipeline.cost_accumulator import CostAccumulator
from datagen.pipeline.output_sink import JsonlSink
from datagen.pipeline.stats_reporter import StatsReporter

logger = logging.getLogger(__name__)

TaskHandler = Callable[[PromptTask], Awaitable[CompletionOutcome]]
RecordBuilder = Callable[[PromptTask, CompletionSuccess], OutputRecord]


class Scheduler:
    """Runs prompt tasks with at most ``max_concurrent`` in flight.

    Tasks are admitted in source order, but each writes its row as soon as
    it finishes, so rows land in completion order, not input order.

    A task failure is converted to a CompletionFailure and counted as
    ``err``; it never stops the run. Only a SourceIOError from the source or
    a SinkWriteError from the sink aborts the run: remaining tasks are
    cancelled and the error is re-raised from ``run``.
    """

    def __init__(
        self,
        sink: JsonlSink,
        reporter: StatsReporter,
        build_record: RecordBuilder,
        *,
        cost: CostAccumulator | None = None,
    ):
        self.sink = sink
        self.reporter = reporter
        self.build_record = build_record
        self.cost = cost or CostAccumulator()
        self.max_in_flight_seen = 0

    async def run(
        self,
        source: Iterable[PromptTask],
        max_concurrent: int,
        on_task: TaskHandler,
    ) -> RunStats:
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")

        in_flight: set[asyncio.Task[None]] = set()
        try:
            for task in source:
                while len(in_flight) >= max_concurrent:
                    await self._wait_any(in_flight)
                handle = asyncio.create_task(
                    self._process(task, on_task),
                    name=f"prompt-{task.sequence_index}",
                )
                in_flight.add(handle)
                self.max_in_flight_seen = max(self.max_in_flight_seen, len(in_flight))

            while in_flight:
                await self._wait_any(in_flight)
        except BaseException:
            logger.error(
                "aborting run, cancelling %d in-flight task(s)", len(in_flight), exc_info=True
            )
            await self._abort(in_flight)
            raise
        return self.reporter.stats

    async def _wait_any(self, in_flight: set[asyncio.Task[None]]) -> None:
        done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
        in_flight.difference_update(done)
        # Per-task errors are absorbed in _process; anything left is fatal.
        # Every result is retrieved before the first error is re-raised.
        errors = [h.exception() for h in done if not h.cancelled()]
        for error in errors:
            if error is not None:
                raise error

    async def _abort(self, in_flight: set[asyncio.Task[None]]) -> None:
        for handle in in_flight:
            handle.cancel()
        await asyncio.gather(*in_flight, return_exceptions=True)
        in_flight.clear()

    async def _process(self, task: PromptTask, on_task: TaskHandler) -> None:
        try:
            outcome = await on_task(task)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("task line=%d raised unexpectedly", task.line_number, exc_info=True)
            outcome = CompletionFailure(message=str(exc) or type(exc).__name__)

        line = None
        if isinstance(outcome, CompletionSuccess):
            try:
                line = self.build_record(task, outcome).to_jsonl()
            except Exception as exc:
                logger.warning("cannot build record line=%d", task.line_number, exc_info=True)
                outcome = CompletionFailure(message=f"Malformed completion: {exc}")

        if isinstance(outcome, CompletionFailure):
            logger.warning("request failed line=%d error=%s", task.line_number, outcome.message)
            self.reporter.warn(f"ERR line {task.line_number}: {outcome.message}")
            self.reporter.record(success=False)
            return

        cost_delta = self.cost.add(outcome.usage)
        await self.sink.append(line)
        logger.debug("task done line=%d cost=%s", task.line_number, cost_delta)
        self.reporter.record(success=True, cost_delta=cost_delta)
