"""Model pricing as reported by the provider."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class PricingInfo(BaseModel):
    """Per-token and per-request USD rates for one model.

    The ``known_*`` flags are true only when the provider reported a numeric
    value for that rate; unknown rates are stored as 0.
    """

    model_config = ConfigDict(frozen=True)

    model_id: str
    canonical_slug: str | None = None
    prompt_per_token_usd: float = 0.0
    completion_per_token_usd: float = 0.0
    request_usd: float = 0.0
    known_prompt: bool = False
    known_completion: bool = False
    known_request: bool = False
    raw_prompt: str | None = None
    raw_completion: str | None = None
    raw_request: str | None = None

    @property
    def fully_known(self) -> bool:
        return self.known_prompt and self.known_completion and self.known_request

    @property
    def token_rates_known(self) -> bool:
        return self.known_prompt and self.known_completion
