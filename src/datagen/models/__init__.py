"""Data models for the dataset generation pipeline."""

from datagen.models.completion import (
    CompletionFailure,
    CompletionOutcome,
    CompletionResult,
    CompletionSuccess,
    TokenUsage,
)
from datagen.models.pricing import PricingInfo
from datagen.models.prompt import PromptTask
from datagen.models.record import ChatMessage, OutputRecord
from datagen.models.stats import RunStats, StatsSnapshot

__all__ = [
    "ChatMessage",
    "CompletionFailure",
    "CompletionOutcome",
    "CompletionResult",
    "CompletionSuccess",
    "OutputRecord",
    "PricingInfo",
    "PromptTask",
    "RunStats",
    "StatsSnapshot",
    "TokenUsage",
]
