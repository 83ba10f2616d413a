"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from datagen.clients.completion_client import CompletionClient
from datagen.config import DatagenConfig
from datagen.models.completion import CompletionResult, TokenUsage
from datagen.models.pricing import PricingInfo
from datagen.models.stats import StatsSnapshot


class RecordingObserver:
    """Progress observer that keeps every snapshot and line it receives."""

    def __init__(self):
        self.snapshots: list[StatsSnapshot] = []
        self.lines: list[str] = []

    def update(self, snapshot: StatsSnapshot) -> None:
        self.snapshots.append(snapshot)

    def write_line(self, text: str) -> None:
        self.lines.append(text)


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def prompts_file(tmp_path: Path) -> Path:
    """3 prompts, 2 blank lines."""
    path = tmp_path / "prompts.txt"
    path.write_text("What is 2+2?\n\n  Name a color.  \n   \nWrite a haiku.\n", encoding="utf-8")
    return path


@pytest.fixture
def sample_pricing() -> PricingInfo:
    return PricingInfo(
        model_id="openai/gpt-4o-mini",
        canonical_slug="openai/gpt-4o-mini",
        prompt_per_token_usd=0.00000015,
        completion_per_token_usd=0.0000006,
        request_usd=0.0,
        known_prompt=True,
        known_completion=True,
        known_request=True,
        raw_prompt="0.00000015",
        raw_completion="0.0000006",
        raw_request="0",
    )


@pytest.fixture
def sample_config(prompts_file: Path, tmp_path: Path) -> DatagenConfig:
    return DatagenConfig(
        model="openai/gpt-4o-mini",
        prompts_path=str(prompts_file),
        out_path=str(tmp_path / "out" / "dataset.jsonl"),
        api_base="https://example.com/api/v1",
        concurrent=2,
    )


@pytest.fixture
def mock_completion_client() -> CompletionClient:
    """Mock client that echoes the prompt back."""
    client = AsyncMock(spec=CompletionClient)

    async def _complete(model, system_prompt, user_prompt, **kwargs):
        return CompletionResult(
            content=f"answer: {user_prompt}",
            usage=TokenUsage(prompt_tokens=10, completion_tokens=5),
        )

    client.complete = AsyncMock(side_effect=_complete)
    client.list_models = AsyncMock(return_value=[])
    return client
