"""Load and query Krishi-Mitra JSON config files."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("config/config.json")
_CONFIG_CACHE: dict[Path, tuple[int, dict[str, Any]]] = {}

DEFAULT_AGENT_CONFIG: dict[str, Any] = {
    "max_iterations": 6,
    "timeout_sec": 20.0,
    "temperature": 0.0,
    "max_sentences": 2,
}
DEFAULT_TTS_CONFIG: dict[str, Any] = {
    "base_url": "https://api.murf.ai/v1/tts",
    "voice_id": "en-IN-NeerjaNeural",
    "model_id": "falcon-v1",
    "format": "mp3",
    "speed": 1.0,
    "cache_ttl_sec": 3600,
    "timeout_sec": 10.0,
}
DEFAULT_NOTIFICATION_CONFIG: dict[str, Any] = {
    "base_url": "https://rest.ably.io",
    "channel_prefix": "user:",
    "event_name": "update",
    "timeout_sec": 5.0,
}
DEFAULT_AGRI_STACK_CONFIG: dict[str, Any] = {
    "base_url": None,
    "simulated_latency_sec": 0.5,
    "default_state": "MH",
    "timeout_sec": 5.0,
}
DEFAULT_STORAGE_CONFIG: dict[str, Any] = {
    "db_path": "memory/krishi.db",
    "cache_backend": "sqlite",
}
DEFAULT_HISTORY_CONFIG: dict[str, Any] = {
    "source": "cache",
    "ttl_sec": 86400,
    "log_window_entries": 20,
}
DEFAULT_TURN_CONFIG: dict[str, Any] = {
    "budget_sec": 30.0,
    "serialize_per_user": False,
}
DEFAULT_LOGGING_CONFIG: dict[str, Any] = {
    "level": "INFO",
    "json": True,
}


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[3]


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    """Resolve config path against repo root.

    Priority:
    1. explicit function argument
    2. `KRISHI_CONFIG_PATH` environment variable
    3. default `config/config.json`
    """
    raw_path: str | Path | None = config_path or os.getenv("KRISHI_CONFIG_PATH")
    candidate = Path(raw_path) if raw_path else DEFAULT_CONFIG_PATH
    if not candidate.is_absolute():
        candidate = _repo_root() / candidate
    return candidate.resolve()


def load_config(config_path: str | Path | None = None, *, use_cache: bool = True) -> dict[str, Any]:
    """Load config JSON as a dictionary."""
    resolved = resolve_config_path(config_path)
    if not resolved.exists():
        raise FileNotFoundError(f"Config file not found: {resolved}")

    mtime_ns = resolved.stat().st_mtime_ns
    if use_cache and resolved in _CONFIG_CACHE:
        cached_mtime_ns, cached_payload = _CONFIG_CACHE[resolved]
        if cached_mtime_ns == mtime_ns:
            return cached_payload

    try:
        payload = json.loads(resolved.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in config file: {resolved}") from exc

    if not isinstance(payload, dict):
        raise ValueError(f"Config root must be a JSON object: {resolved}")

    _CONFIG_CACHE[resolved] = (mtime_ns, payload)
    return payload


def load_config_or_empty(config_path: str | Path | None = None) -> dict[str, Any]:
    try:
        return load_config(config_path)
    except (FileNotFoundError, ValueError):
        return {}


def clear_config_cache() -> None:
    """Clear in-memory config cache."""
    _CONFIG_CACHE.clear()


def _section(name: str, defaults: dict[str, Any], config: dict[str, Any] | None) -> dict[str, Any]:
    payload = config if config is not None else load_config_or_empty()
    raw = payload.get(name)
    merged = dict(defaults)
    if isinstance(raw, dict):
        merged.update(raw)
    return merged


def _secret(block: dict[str, Any], key: str, env_var: str) -> str | None:
    value = block.get(key)
    if isinstance(value, str) and value.strip():
        return value
    env_value = os.getenv(env_var)
    return env_value if env_value else None


def get_model_by_alias(alias: str, config: dict[str, Any] | None = None) -> tuple[str, dict[str, Any]]:
    """Return `(model_id, model_payload)` for a unique alias."""
    payload = config or load_config()
    models = payload.get("models")
    if not isinstance(models, dict):
        raise ValueError("Config models must be a JSON object keyed by model id.")

    matches: list[tuple[str, dict[str, Any]]] = []
    for model_id, model in models.items():
        if isinstance(model, dict) and model.get("alias") == alias:
            matches.append((model_id, model))

    if not matches:
        raise ValueError(f"No model found for alias '{alias}'.")
    if len(matches) > 1:
        raise ValueError(f"Alias '{alias}' is not unique across models.")
    return matches[0]


def get_default_model(config: dict[str, Any] | None = None) -> tuple[str, dict[str, Any]]:
    """Return default model resolved from `default_model_alias`."""
    payload = config or load_config()
    alias = payload.get("default_model_alias")
    if not isinstance(alias, str) or not alias:
        raise ValueError("Config requires non-empty string `default_model_alias`.")
    return get_model_by_alias(alias, config=payload)


def get_model_config(model_ref: str | None = None, config: dict[str, Any] | None = None) -> tuple[str, dict[str, Any]]:
    """Resolve model config by id, alias, or default alias when model_ref is None."""
    payload = config or load_config()
    if model_ref is None:
        return get_default_model(payload)

    models = payload.get("models")
    if isinstance(models, dict) and isinstance(models.get(model_ref), dict):
        return model_ref, models[model_ref]

    return get_model_by_alias(model_ref, payload)


def get_provider_config(provider_name: str, config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return provider config from `model_providers`, filling the API key from env when absent."""
    payload = config or load_config()
    providers = payload.get("model_providers")
    if not isinstance(providers, dict):
        raise ValueError("Config model_providers must be a JSON object.")

    provider = providers.get(provider_name)
    if not isinstance(provider, dict):
        raise ValueError(f"Model provider '{provider_name}' is not defined.")
    out = dict(provider)
    out["apikey"] = _secret(provider, "apikey", f"{provider_name.upper()}_API_KEY")
    return out


def get_agent_config(config: dict[str, Any] | None = None) -> dict[str, Any]:
    block = _section("agent", DEFAULT_AGENT_CONFIG, config)
    max_iterations = block.get("max_iterations")
    if not isinstance(max_iterations, int) or max_iterations <= 0:
        block["max_iterations"] = DEFAULT_AGENT_CONFIG["max_iterations"]
    return block


def get_tts_config(config: dict[str, Any] | None = None) -> dict[str, Any]:
    block = _section("tts", DEFAULT_TTS_CONFIG, config)
    block["api_key"] = _secret(block, "api_key", "MURF_API_KEY")
    return block


def get_notification_config(config: dict[str, Any] | None = None) -> dict[str, Any]:
    block = _section("notifications", DEFAULT_NOTIFICATION_CONFIG, config)
    block["api_key"] = _secret(block, "api_key", "ABLY_API_KEY")
    return block


def get_agri_stack_config(config: dict[str, Any] | None = None) -> dict[str, Any]:
    return _section("agri_stack", DEFAULT_AGRI_STACK_CONFIG, config)


def get_storage_config(config: dict[str, Any] | None = None) -> dict[str, Any]:
    return _section("storage", DEFAULT_STORAGE_CONFIG, config)


def get_history_config(config: dict[str, Any] | None = None) -> dict[str, Any]:
    block = _section("history", DEFAULT_HISTORY_CONFIG, config)
    if block.get("source") not in {"cache", "log"}:
        block["source"] = "cache"
    return block


def get_turn_config(config: dict[str, Any] | None = None) -> dict[str, Any]:
    return _section("turn", DEFAULT_TURN_CONFIG, config)


def get_logging_config(config: dict[str, Any] | None = None) -> dict[str, Any]:
    return _section("logging", DEFAULT_LOGGING_CONFIG, config)
