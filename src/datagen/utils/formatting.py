"""USD formatting for pricing lines and the progress display."""

from __future__ import annotations

import math
import re

_TRAILING_ZEROS = re.compile(r"(?:\.0+|(\.\d*?)0+)$")


def trim_trailing_zeros(num: str) -> str:
    if "." not in num:
        return num
    trimmed = _TRAILING_ZEROS.sub(lambda m: m.group(1) or "", num)
    return trimmed[:-1] if trimmed.endswith(".") else trimmed


def _decimals_for(amount: float) -> int:
    magnitude = abs(amount)
    if magnitude >= 10:
        return 2
    if magnitude >= 1:
        return 4
    if magnitude >= 0.01:
        return 6
    if magnitude >= 0.0001:
        return 8
    return 10


def format_usd(amount: float) -> str:
    """Format a dollar amount with precision scaled to its magnitude.

    Amounts that round to zero at the chosen precision are shown as a bound,
    e.g. ``<$0.0000000001``.
    """
    if not math.isfinite(amount) or amount == 0:
        return "$0"
    decimals = _decimals_for(amount)
    if round(amount, decimals) == 0:
        min_label = trim_trailing_zeros(f"{10 ** -decimals:.{decimals}f}")
        return f">-${min_label}" if amount < 0 else f"<${min_label}"
    return f"${trim_trailing_zeros(f'{amount:.{decimals}f}')}"


def format_usd_rate(raw: str | None, fallback: float) -> str:
    """Prefer the provider's raw rate string over the parsed float."""
    if isinstance(raw, str) and raw.strip():
        return f"${trim_trailing_zeros(raw)}"
    if not math.isfinite(fallback):
        return "$0"
    decimals = 6 if abs(fallback) >= 0.01 else 10
    return f"${trim_trailing_zeros(f'{fallback:.{decimals}f}')}"


def format_usd_or_unknown(known: bool, raw: str | None, fallback: float) -> str:
    if not known:
        return "unknown"
    return format_usd_rate(raw, fallback)


def format_usd_per_million(known: bool, raw: str | None, fallback: float) -> str:
    if not known:
        return "unknown/1M tok"
    per_token = fallback
    if isinstance(raw, str) and raw.strip():
        try:
            per_token = float(raw)
        except ValueError:
            per_token = fallback
    if not math.isfinite(per_token):
        per_token = 0.0
    return f"{format_usd(per_token * 1_000_000)}/1M tok"
