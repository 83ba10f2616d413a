"""Model pricing lookup against the provider's ``/models`` listing."""

from __future__ import annotations

import logging
import math
from urllib.parse import urlparse

import openai

from datagen.clients.completion_client import CompletionClient
from datagen.exceptions import PricingLookupError
from datagen.models.pricing import PricingInfo

logger = logging.getLogger(__name__)


def is_openrouter_api_base(api_base: str) -> bool:
    try:
        host = urlparse(api_base).hostname
    except ValueError:
        host = None
    if not host:
        return "openrouter.ai" in api_base
    return host == "openrouter.ai" or host.endswith(".openrouter.ai")


def _is_numeric_string(value: object) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        return math.isfinite(float(value))
    except ValueError:
        return False


def _parse_rate(value: object) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value) if math.isfinite(value) else 0.0
    if _is_numeric_string(value):
        return float(value)
    return 0.0


def _find_model(models: list[dict], model: str) -> dict | None:
    for entry in models:
        if entry.get("id") == model:
            return entry
    slug_matches = [m for m in models if m.get("canonical_slug") == model]
    for entry in slug_matches:
        if entry.get("id") == entry.get("canonical_slug"):
            return entry
    return slug_matches[0] if slug_matches else None


def pricing_from_entry(entry: dict) -> PricingInfo | None:
    pricing = entry.get("pricing")
    if not isinstance(pricing, dict):
        return None
    raw_prompt = pricing.get("prompt")
    raw_completion = pricing.get("completion")
    raw_request = pricing.get("request")
    return PricingInfo(
        model_id=entry.get("id", ""),
        canonical_slug=entry.get("canonical_slug"),
        prompt_per_token_usd=_parse_rate(raw_prompt),
        completion_per_token_usd=_parse_rate(raw_completion),
        request_usd=_parse_rate(raw_request),
        known_prompt=_is_numeric_string(raw_prompt),
        known_completion=_is_numeric_string(raw_completion),
        known_request=_is_numeric_string(raw_request),
        raw_prompt=raw_prompt if isinstance(raw_prompt, str) else None,
        raw_completion=raw_completion if isinstance(raw_completion, str) else None,
        raw_request=raw_request if isinstance(raw_request, str) else None,
    )


async def lookup_pricing(client: CompletionClient, model: str) -> PricingInfo | None:
    """Find pricing for ``model`` by id, falling back to its canonical slug.

    Returns None when the model or its pricing is not listed.

    Raises:
        PricingLookupError: when the model listing cannot be fetched.
    """
    try:
        models = await client.list_models()
    except openai.APIStatusError as exc:
        raise PricingLookupError(f"models error {exc.status_code}: {exc.message}") from exc
    except openai.APIError as exc:
        raise PricingLookupError(str(exc)) from exc

    entry = _find_model(models, model)
    if entry is None:
        logger.info("no pricing entry for model=%s", model)
        return None
    return pricing_from_entry(entry)
