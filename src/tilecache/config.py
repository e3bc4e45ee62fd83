"""Configuration loader for the tile storage cache."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml


@dataclass(frozen=True)
class DelayConfig:
    consent_prompt_sec: float
    completion_refresh_sec: float
    eviction_sec: float


@dataclass(frozen=True)
class TileCacheConfig:
    max_sections_to_store: int
    stale_minutes: int
    assume_consent: bool
    durable_db_path: Path
    delays: DelayConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TileCacheConfig":
        delay_data = data.get("delays", {}) or {}
        return cls(
            max_sections_to_store=int(data.get("max_sections_to_store", 8)),
            stale_minutes=int(data.get("stale_minutes", 30)),
            assume_consent=_as_bool(data.get("assume_consent", False)),
            durable_db_path=Path(
                os.path.expanduser(data.get("durable_db_path", "~/.cache/tilecache/durable.db"))
            ),
            delays=DelayConfig(
                consent_prompt_sec=float(delay_data.get("consent_prompt_sec", 0.5)),
                completion_refresh_sec=float(delay_data.get("completion_refresh_sec", 1.0)),
                eviction_sec=float(delay_data.get("eviction_sec", 2.0)),
            ),
        )


ENV_MAP = {
    "max_sections_to_store": "TILECACHE_MAX_SECTIONS",
    "stale_minutes": "TILECACHE_STALE_MINUTES",
    "assume_consent": "TILECACHE_ASSUME_CONSENT",
    "durable_db_path": "TILECACHE_DURABLE_DB",
    "delays.consent_prompt_sec": "TILECACHE_CONSENT_PROMPT_DELAY",
    "delays.completion_refresh_sec": "TILECACHE_COMPLETION_REFRESH_DELAY",
    "delays.eviction_sec": "TILECACHE_EVICTION_DELAY",
}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = json.loads(json.dumps(config_data))  # deep copy via json

    for dotted_key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        value: Any = os.environ[env_name]
        target = merged
        parts = dotted_key.split(".")
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        last = parts[-1]
        if last in {"max_sections_to_store", "stale_minutes"}:
            value = int(value)
        elif last.endswith("_sec"):
            value = float(value)
        elif last == "assume_consent":
            value = _as_bool(value)
        target[last] = value

    return merged


DEFAULT_CONFIG_PATH = "config/tilecache.defaults.yml"


def default_config(config_path: str | Path = DEFAULT_CONFIG_PATH) -> TileCacheConfig:
    """Site defaults from the YAML file when present, else built-ins. Env overrides apply either way."""
    if Path(config_path).exists():
        return load_config(config_path)
    return TileCacheConfig.from_dict(merge_env_overrides({}))


def load_config(config_path: str | Path = DEFAULT_CONFIG_PATH) -> TileCacheConfig:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = load_yaml(path)
    data = merge_env_overrides(data)
    return TileCacheConfig.from_dict(data)
