"""Spend estimation from provider pricing and token usage."""

from __future__ import annotations

from datagen.models.completion import TokenUsage
from datagen.models.pricing import PricingInfo


def estimate_cost(pricing: PricingInfo, usage: TokenUsage | None) -> float:
    """Estimate the USD cost of one request.

    Returns 0 when any rate is unknown so that partial pricing never leaks
    into the running total.
    """
    if not pricing.fully_known:
        return 0.0
    prompt_tokens = usage.prompt_tokens if usage is not None else 0
    completion_tokens = usage.completion_tokens if usage is not None else 0
    return (
        pricing.request_usd
        + prompt_tokens * pricing.prompt_per_token_usd
        + completion_tokens * pricing.completion_per_token_usd
    )


class CostAccumulator:
    """Running spend total for a run; disabled unless pricing is fully known."""

    def __init__(self, pricing: PricingInfo | None = None):
        self.pricing = pricing
        self.total_usd = 0.0

    @property
    def enabled(self) -> bool:
        return self.pricing is not None and self.pricing.fully_known

    def add(self, usage: TokenUsage | None) -> float | None:
        """Add one successful request's cost. Returns the delta, or None when disabled."""
        if not self.enabled:
            return None
        delta = estimate_cost(self.pricing, usage)
        self.total_usd += delta
        return delta
