import json
from pathlib import Path
from urllib.error import URLError

import pytest

from src.krishi.core.config_loader import clear_config_cache
from src.krishi.core.errors import ExternalServiceError
from src.krishi.core.llm_client import call_llm


def _write_config(path: Path, payload: dict) -> None:
    path.write_text(json.dumps(payload), encoding="utf-8")


def _ok_response(text: str = "Final Answer: hello") -> dict:
    return {
        "ok": True,
        "provider": "openrouter",
        "model": "openai/gpt-4o-mini",
        "text": text,
        "finish_reason": "stop",
        "usage": {"total_tokens": 10},
        "raw": {},
        "error": None,
    }


@pytest.fixture()
def configured_openrouter(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    path = tmp_path / "config.json"
    _write_config(
        path,
        {
            "default_model_alias": "reasoning",
            "model_providers": {"openrouter": {"apikey": "KEY_123"}},
            "models": {
                "gpt4o_mini": {
                    "alias": "reasoning",
                    "provider": "openrouter",
                    "endpoint": "openai/gpt-4o-mini",
                    "temperature": 0.2,
                }
            },
        },
    )
    monkeypatch.setenv("KRISHI_CONFIG_PATH", str(path))
    clear_config_cache()
    return path


def test_call_llm_resolves_and_invokes_provider(configured_openrouter, monkeypatch):
    def fake_call_openrouter(**kwargs):
        assert kwargs["model"] == "openai/gpt-4o-mini"
        assert kwargs["api_key"] == "KEY_123"
        assert kwargs["stop"] == ["\nObservation"]
        assert kwargs["temperature"] == 0.2
        return _ok_response()

    monkeypatch.setattr("src.krishi.core.llm_client.call_openrouter", fake_call_openrouter)
    result = call_llm(messages=[{"role": "user", "content": "Hi"}], stop=["\nObservation"])
    assert result["ok"]
    assert result["text"] == "Final Answer: hello"
    assert result["attempts_used"] == 1


def test_call_llm_api_key_falls_back_to_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    path = tmp_path / "config.json"
    _write_config(
        path,
        {
            "default_model_alias": "reasoning",
            "model_providers": {"openrouter": {}},
            "models": {"m": {"alias": "reasoning", "provider": "openrouter", "endpoint": "x/y"}},
        },
    )
    monkeypatch.setenv("KRISHI_CONFIG_PATH", str(path))
    monkeypatch.setenv("OPENROUTER_API_KEY", "ENV_KEY")
    clear_config_cache()

    seen = {}

    def fake_call_openrouter(**kwargs):
        seen["api_key"] = kwargs["api_key"]
        return _ok_response()

    monkeypatch.setattr("src.krishi.core.llm_client.call_openrouter", fake_call_openrouter)
    assert call_llm(messages=[{"role": "user", "content": "Hi"}])["ok"]
    assert seen["api_key"] == "ENV_KEY"


def test_call_llm_unsupported_provider(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    path = tmp_path / "config.json"
    _write_config(
        path,
        {
            "default_model_alias": "reasoning",
            "model_providers": {"other": {"apikey": "x"}},
            "models": {"m": {"alias": "reasoning", "provider": "other", "endpoint": "x"}},
        },
    )
    monkeypatch.setenv("KRISHI_CONFIG_PATH", str(path))
    clear_config_cache()

    result = call_llm(messages=[{"role": "user", "content": "Hi"}])
    assert not result["ok"]
    assert "Unsupported provider" in result["error"]


def test_call_llm_retries_rate_limited_provider(configured_openrouter, monkeypatch):
    attempts = {"n": 0}
    sleeps: list[float] = []

    def flaky_call_openrouter(**kwargs):
        _ = kwargs
        attempts["n"] += 1
        if attempts["n"] < 3:
            raise ExternalServiceError("HTTP 429: slow down", service="openrouter", status_code=429)
        return _ok_response()

    monkeypatch.setattr("src.krishi.core.llm_client.call_openrouter", flaky_call_openrouter)
    monkeypatch.setattr("src.krishi.core.llm_client.sleep", lambda s: sleeps.append(float(s)))
    result = call_llm(messages=[{"role": "user", "content": "Hi"}])
    assert result["ok"] is True
    assert attempts["n"] == 3
    assert sleeps == [1.0, 3.0]
    assert result["attempts_configured"] == 4


def test_call_llm_does_not_retry_client_errors(configured_openrouter, monkeypatch):
    attempts = {"n": 0}

    def bad_request(**kwargs):
        _ = kwargs
        attempts["n"] += 1
        raise ExternalServiceError("HTTP 400: bad model", service="openrouter", status_code=400)

    monkeypatch.setattr("src.krishi.core.llm_client.call_openrouter", bad_request)
    monkeypatch.setattr("src.krishi.core.llm_client.sleep", lambda _s: None)
    result = call_llm(messages=[{"role": "user", "content": "Hi"}])
    assert result["ok"] is False
    assert "bad model" in result["error"]
    assert result["retryable_error"] is False
    assert attempts["n"] == 1


def test_call_llm_timeout_failure_is_flagged(configured_openrouter, monkeypatch):
    sleeps: list[float] = []

    def always_timeout(**kwargs):
        _ = kwargs
        raise URLError("timed out")

    monkeypatch.setattr("src.krishi.core.llm_client.call_openrouter", always_timeout)
    monkeypatch.setattr("src.krishi.core.llm_client.sleep", lambda s: sleeps.append(float(s)))
    result = call_llm(messages=[{"role": "user", "content": "Hi"}])
    assert result["ok"] is False
    assert result["timed_out"] is True
    assert result["attempts_used"] == 4
    assert result["retry_backoff_schedule_sec"] == [1.0, 3.0, 5.0]
    assert sleeps == [1.0, 3.0, 5.0]
