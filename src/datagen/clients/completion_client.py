"""OpenAI-compatible chat completions client (OpenRouter by default)."""

from __future__ import annotations

import logging
from typing import Any

import openai

from datagen.exceptions import RequestError
from datagen.models.completion import CompletionResult, TokenUsage
from datagen.models.record import build_request_messages

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://openrouter.ai/api/v1"


def _usage_from(raw: Any) -> TokenUsage | None:
    if raw is None:
        return None
    return TokenUsage(
        prompt_tokens=getattr(raw, "prompt_tokens", None) or 0,
        completion_tokens=getattr(raw, "completion_tokens", None) or 0,
        total_tokens=getattr(raw, "total_tokens", None),
    )


def _reasoning_from(response: Any, choice: Any, message: Any) -> str | None:
    for source in (message, choice, response):
        reasoning = getattr(source, "reasoning", None)
        if reasoning is not None:
            return reasoning if isinstance(reasoning, str) else str(reasoning)
    return None


class CompletionClient:
    """Async chat completions client. One call per prompt, no retries."""

    def __init__(
        self,
        api_key: str,
        api_base: str = DEFAULT_API_BASE,
        timeout: float | None = None,
    ):
        self.api_base = api_base.rstrip("/")
        kwargs: dict = {"api_key": api_key, "base_url": self.api_base, "max_retries": 0}
        if timeout is not None:
            kwargs["timeout"] = timeout
        self.client = openai.AsyncOpenAI(**kwargs)
        self._models: list[dict] | None = None

    async def complete(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        *,
        provider: dict | None = None,
        reasoning_effort: str | None = None,
    ) -> CompletionResult:
        """Send one prompt and return the assistant content, reasoning and usage.

        Raises:
            RequestError: on a non-success status, a transport failure, or a
                response without string content.
        """
        messages = [m.model_dump() for m in build_request_messages(system_prompt, user_prompt)]
        extra_body: dict = {}
        if reasoning_effort and reasoning_effort.strip():
            extra_body["reasoning"] = {"effort": reasoning_effort.strip()}
        if provider:
            extra_body["provider"] = provider

        kwargs: dict = {"model": model, "messages": messages}
        if extra_body:
            kwargs["extra_body"] = extra_body

        logger.debug("completion call: model=%s", model)
        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.APIStatusError as exc:
            raise RequestError(f"API error {exc.status_code}: {exc.message}") from exc
        except openai.APIError as exc:
            raise RequestError(f"API request failed: {exc}") from exc

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise RequestError("No choices returned from API.")
        choice = choices[0]
        message = getattr(choice, "message", None) or getattr(choice, "delta", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str) or not content:
            raise RequestError("No assistant content returned.")

        usage = _usage_from(getattr(response, "usage", None))
        if usage is not None:
            logger.debug(
                "completion response: %d prompt, %d completion tokens",
                usage.prompt_tokens,
                usage.completion_tokens,
            )
        return CompletionResult(
            content=content,
            reasoning=_reasoning_from(response, choice, message),
            usage=usage,
        )

    async def list_models(self) -> list[dict]:
        """Return the provider's model listing as plain dicts (cached per client)."""
        if self._models is None:
            page = await self.client.models.list()
            self._models = [
                m if isinstance(m, dict) else m.model_dump() for m in page.data
            ]
        return self._models
