"""Dataset generation run: pricing lookup, scheduling, output."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path

from datagen.clients.completion_client import CompletionClient
from datagen.clients.pricing import is_openrouter_api_base, lookup_pricing
from datagen.config import DatagenConfig
from datagen.exceptions import PricingLookupError, RequestError
from datagen.models.completion import (
    CompletionFailure,
    CompletionOutcome,
    CompletionSuccess,
)
from datagen.models.pricing import PricingInfo
from datagen.models.prompt import PromptTask
from datagen.models.record import (
    OutputRecord,
    build_output_record,
    format_assistant_content,
)
from datagen.models.stats import RunStats
from datagen.pipeline.cost_accumulator import CostAccumulator
from datagen.pipeline.output_sink import JsonlSink
from datagen.pipeline.prompt_source import PromptSource
from datagen.pipeline.scheduler import Scheduler
from datagen.pipeline.stats_reporter import ProgressObserver, StatsReporter
from datagen.utils.formatting import format_usd_or_unknown, format_usd_per_million

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Outcome of a completed run."""

    stats: RunStats
    out_path: Path
    pricing: PricingInfo | None = None
    elapsed_seconds: float = 0.0

    @property
    def spend_tracked(self) -> bool:
        return self.stats.spend_usd is not None


def pricing_summary_lines(
    config: DatagenConfig,
    pricing: PricingInfo,
    provider_prefs: dict | None = None,
) -> list[str]:
    lines = [f"Model: {config.model}", f"API: {config.api_base}"]
    if pricing.model_id != config.model:
        lines.append(f"Pricing model: {pricing.model_id}")
    if provider_prefs:
        lines.append(f"Provider prefs: {json.dumps(provider_prefs)}")
    if config.reasoning_effort:
        lines.append(f"Reasoning effort: {config.reasoning_effort}")
    lines.append(
        "Pricing (USD per 1M tokens): "
        f"prompt={format_usd_per_million(pricing.known_prompt, pricing.raw_prompt, pricing.prompt_per_token_usd)} "
        f"completion={format_usd_per_million(pricing.known_completion, pricing.raw_completion, pricing.completion_per_token_usd)}"
    )
    lines.append(
        "Pricing (USD per token): "
        f"prompt={format_usd_or_unknown(pricing.known_prompt, pricing.raw_prompt, pricing.prompt_per_token_usd)}/token "
        f"completion={format_usd_or_unknown(pricing.known_completion, pricing.raw_completion, pricing.completion_per_token_usd)}/token"
    )
    lines.append(
        "Pricing (USD per request): "
        f"request={format_usd_or_unknown(pricing.known_request, pricing.raw_request, pricing.request_usd)}/request"
    )
    return lines


class PipelineOrchestrator:
    """Turns a prompts file into a JSONL chat dataset."""

    def __init__(self, client: CompletionClient, config: DatagenConfig):
        self.client = client
        self.config = config
        self.is_openrouter = is_openrouter_api_base(config.api_base)

    @property
    def provider_prefs(self) -> dict | None:
        # Provider routing preferences only mean something to OpenRouter.
        return self.config.provider_preferences() if self.is_openrouter else None

    async def resolve_pricing(self, reporter: StatsReporter) -> PricingInfo | None:
        """Look up pricing once before the run. Problems only produce warnings."""
        if not self.is_openrouter:
            return None
        model = self.config.model
        try:
            pricing = await lookup_pricing(self.client, model)
        except PricingLookupError as exc:
            logger.warning("pricing lookup failed: %s", exc)
            reporter.warn(f"WARN: Failed to fetch models/pricing: {exc}")
            return None
        if pricing is None:
            reporter.warn(f'WARN: Could not find pricing for model "{model}".')
            return None

        for line in pricing_summary_lines(self.config, pricing, self.provider_prefs):
            reporter.warn(line)
        if not pricing.token_rates_known:
            reporter.warn(
                "WARN: Provider did not report token pricing for this model; "
                "spent total will be omitted."
            )
        return pricing

    async def complete(self, task: PromptTask) -> CompletionOutcome:
        try:
            result = await self.client.complete(
                self.config.model,
                self.config.system_prompt,
                task.text,
                provider=self.provider_prefs,
                reasoning_effort=self.config.reasoning_effort,
            )
        except RequestError as exc:
            return CompletionFailure(message=str(exc))
        return CompletionSuccess.from_result(result)

    def build_record(self, task: PromptTask, outcome: CompletionSuccess) -> OutputRecord:
        return build_output_record(
            self.config.system_prompt,
            task.text,
            format_assistant_content(outcome.content, outcome.reasoning),
            self.config.store_system,
        )

    async def run(
        self,
        *,
        observer: ProgressObserver | None = None,
        total: int = 0,
    ) -> PipelineResult:
        """Run the whole pipeline.

        Args:
            observer: Receives progress snapshots and warning lines.
            total: Expected number of prompts, for progress display only.

        Raises:
            SourceIOError: the prompts file could not be read.
            SinkWriteError: the dataset file could not be written.
        """
        start = time.monotonic()
        reporter = StatsReporter(total, observer)
        pricing = await self.resolve_pricing(reporter)

        cost = CostAccumulator(pricing)
        reporter.track_spend = cost.enabled
        reporter.stats.spend_usd = 0.0 if cost.enabled else None
        reporter.publish()

        out_path = Path(self.config.out_path)
        source = PromptSource(self.config.prompts_path)
        logger.info(
            "run start model=%s prompts=%s out=%s concurrent=%d",
            self.config.model,
            self.config.prompts_path,
            out_path,
            self.config.concurrent,
        )
        async with JsonlSink(out_path) as sink:
            scheduler = Scheduler(sink, reporter, self.build_record, cost=cost)
            stats = await scheduler.run(source, self.config.concurrent, self.complete)

        elapsed = time.monotonic() - start
        logger.info(
            "run done completed=%d ok=%d err=%d elapsed=%.1fs",
            stats.completed,
            stats.ok,
            stats.err,
            elapsed,
        )
        return PipelineResult(
            stats=stats,
            out_path=out_path,
            pricing=pricing,
            elapsed_seconds=elapsed,
        )
