"""Completion results and per-task outcomes."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict


class TokenUsage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int | None = None


@dataclass
class CompletionResult:
    """Response from the completion API."""

    content: str
    reasoning: str | None = None
    usage: TokenUsage | None = None


@dataclass(frozen=True)
class CompletionSuccess:
    content: str
    reasoning: str | None = None
    usage: TokenUsage | None = None

    @classmethod
    def from_result(cls, result: CompletionResult) -> CompletionSuccess:
        return cls(content=result.content, reasoning=result.reasoning, usage=result.usage)


@dataclass(frozen=True)
class CompletionFailure:
    message: str


CompletionOutcome = CompletionSuccess | CompletionFailure
