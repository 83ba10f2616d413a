"""Run configuration: YAML/JSON config file merged with CLI options."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from datagen.clients.completion_client import DEFAULT_API_BASE

USAGE_LINE = "Usage: datagen --model <model> --prompts <file> [options]"

DEFAULT_OUT_PATH = "dataset.jsonl"

# Config file spellings accepted for each option key.
CONFIG_KEY_ALIASES: dict[str, str] = {
    "promptsPath": "prompts",
    "outPath": "out",
    "apiBase": "api",
    "storeSystem": "store-system",
    "store_system": "store-system",
    "noProgress": "no-progress",
    "no_progress": "no-progress",
    "openrouterProviderOrder": "openrouter.provider",
    "openrouterProviderSort": "openrouter.providerSort",
    "reasoning_effort": "reasoningEffort",
    "reasoning-effort": "reasoningEffort",
}


@dataclass(frozen=True)
class DatagenConfig:
    model: str
    prompts_path: str
    out_path: str = DEFAULT_OUT_PATH
    api_base: str = DEFAULT_API_BASE
    system_prompt: str = ""
    store_system: bool = True
    progress: bool = True
    concurrent: int = 1
    provider_order: tuple[str, ...] | None = None
    provider_sort: str | None = None
    reasoning_effort: str | None = None
    timeout: float | None = None

    def __post_init__(self) -> None:
        if not self.model or not self.prompts_path:
            raise ValueError(f"model and prompts are required. {USAGE_LINE}")
        if isinstance(self.concurrent, bool) or not isinstance(self.concurrent, int):
            raise ValueError(f"concurrent must be an integer, got {self.concurrent!r}")
        if self.concurrent < 1:
            raise ValueError(f"concurrent must be >= 1, got {self.concurrent}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")

    def provider_preferences(self) -> dict | None:
        prefs: dict = {}
        if self.provider_order:
            prefs["order"] = list(self.provider_order)
        if self.provider_sort:
            prefs["sort"] = self.provider_sort
        return prefs or None


def _normalize_key(key: str) -> str:
    stripped = key.strip()
    if stripped.startswith("--"):
        stripped = stripped[2:]
    return CONFIG_KEY_ALIASES.get(stripped, stripped)


def _flatten(value: Any, prefix: str, out: dict[str, Any]) -> None:
    if value is None:
        return
    if isinstance(value, dict):
        for k, v in value.items():
            _flatten(v, f"{prefix}.{k}" if prefix else str(k), out)
        return
    out[prefix] = value


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML or JSON config file into flat, normalized option keys."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise FileNotFoundError(f"Config file not found: {p}") from None

    stripped = text.lstrip("\ufeff").lstrip()
    if stripped.startswith(("{", "[")):
        raw = json.loads(stripped)
    else:
        raw = yaml.safe_load(stripped)

    if not isinstance(raw, dict):
        raise ValueError("Config must be a YAML/JSON object at the root.")

    flat: dict[str, Any] = {}
    _flatten(raw, "", flat)
    return {_normalize_key(k): v for k, v in flat.items() if str(k).strip()}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() != "false"


def _as_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_provider_order(value: Any) -> tuple[str, ...] | None:
    if value is None:
        return None
    items = value if isinstance(value, (list, tuple)) else str(value).split(",")
    cleaned = tuple(str(item).strip() for item in items if str(item).strip())
    return cleaned or None


def _as_int(name: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def resolve_config(
    file_values: dict[str, Any] | None = None,
    cli_values: dict[str, Any] | None = None,
) -> DatagenConfig:
    """Merge config-file values with CLI values (CLI wins) into a DatagenConfig.

    Both inputs use the option keys (``model``, ``prompts``, ``out``, ``api``,
    ``system``, ``store-system``, ``progress``, ``no-progress``,
    ``concurrent``, ``openrouter.provider``, ``openrouter.providerSort``,
    ``reasoningEffort``, ``timeout``). ``None`` CLI values mean "not given".
    """
    merged: dict[str, Any] = dict(file_values or {})
    merged.update({k: v for k, v in (cli_values or {}).items() if v is not None})

    progress = _as_bool(merged["progress"]) if "progress" in merged else True
    if "no-progress" in merged and _as_bool(merged["no-progress"]):
        progress = False

    timeout = merged.get("timeout")
    return DatagenConfig(
        model=str(merged.get("model") or ""),
        prompts_path=str(merged.get("prompts") or ""),
        out_path=str(merged.get("out") or DEFAULT_OUT_PATH),
        api_base=str(merged.get("api") or DEFAULT_API_BASE),
        system_prompt=str(merged.get("system") or ""),
        store_system=_as_bool(merged["store-system"]) if "store-system" in merged else True,
        progress=progress,
        concurrent=_as_int("concurrent", merged["concurrent"]) if "concurrent" in merged else 1,
        provider_order=_as_provider_order(merged.get("openrouter.provider")),
        provider_sort=_as_optional_str(merged.get("openrouter.providerSort")),
        reasoning_effort=_as_optional_str(merged.get("reasoningEffort")),
        timeout=float(timeout) if timeout is not None else None,
    )


def load_config(
    config_path: str | Path | None = None,
    cli_values: dict[str, Any] | None = None,
) -> DatagenConfig:
    """Load the optional config file and apply CLI overrides."""
    file_values = load_config_file(config_path) if config_path else {}
    return resolve_config(file_values, cli_values)
