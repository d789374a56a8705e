from __future__ import annotations

import importlib
import json
import sqlite3
from pathlib import Path
from typing import Any

import pytest

from src.krishi.core.config_loader import clear_config_cache, load_config
from src.krishi.core.ttl_cache import SqliteTTLCache
from src.krishi.runtime.service import RuntimeService

http_json_module = importlib.import_module("src.krishi.core.providers.http_json")


class _FakeResponse:
    def __init__(self, payload: dict[str, Any]) -> None:
        self._body = json.dumps(payload).encode("utf-8")

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class _FakeServices:
    """Routes urlopen calls to scripted OpenRouter, Murf and Ably responses."""

    def __init__(self, llm_replies: list[str]) -> None:
        self._llm_replies = list(llm_replies)
        self.requests: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, req, timeout=10):
        body = json.loads(req.data.decode("utf-8"))
        self.requests.append((req.full_url, body))
        if "openrouter" in req.full_url:
            text = self._llm_replies.pop(0)
            return _FakeResponse({"choices": [{"message": {"content": text}, "finish_reason": "stop"}]})
        if "murf" in req.full_url:
            return _FakeResponse({"audioFile": "https://murf.example/reply.mp3"})
        if "ably" in req.full_url:
            return _FakeResponse({"channel": "user:u1"})
        raise AssertionError(f"unexpected url {req.full_url}")

    def urls_for(self, needle: str) -> list[str]:
        return [url for url, _ in self.requests if needle in url]


def _configure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> dict[str, Any]:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "default_model_alias": "reasoning",
                "models": {"m": {"alias": "reasoning", "provider": "openrouter", "endpoint": "openai/gpt-4o-mini"}},
                "model_providers": {"openrouter": {"apikey": "OR_KEY", "retry_backoff_schedule_sec": [0]}},
                "tts": {"api_key": "MURF_KEY"},
                "notifications": {"api_key": "app.key:secret"},
                "agri_stack": {"simulated_latency_sec": 0},
                "storage": {"db_path": str(tmp_path / "krishi.db"), "cache_backend": "memory"},
            }
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("KRISHI_CONFIG_PATH", str(path))
    clear_config_cache()
    return load_config()


def test_handle_turn_runs_full_pipeline(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    config = _configure(tmp_path, monkeypatch)
    services = _FakeServices(
        [
            'Action: credit_scoring\nAction Input: {"acres": 2.5, "yieldStatus": "high", "kycStatus": "VERIFIED"}',
            'Action: underwriting_decision\nAction Input: {"score": 95, "userId": "u1"}',
            "Aapka loan approve ho gaya hai! Interest rate 8.5% hai.",
        ]
    )
    monkeypatch.setattr(http_json_module, "urlopen", services)

    runtime = RuntimeService(config=config)
    status, body = runtime.handle_turn(transcript="I want a loan for my 3 acre farm", user_id="u1")

    assert status == 200
    assert body == {
        "success": True,
        "transcription": "I want a loan for my 3 acre farm",
        "response": "Aapka loan approve ho gaya hai! Interest rate 8.5% hai.",
        "audioUrl": "https://murf.example/reply.mp3",
    }
    assert len(services.urls_for("openrouter")) == 3
    assert services.urls_for("ably") == ["https://rest.ably.io/channels/user%3Au1/messages"]

    applications = runtime.list_applications(user_id="u1")["applications"]
    assert [(app["status"], app["riskScore"], app["interestRate"]) for app in applications] == [("APPROVED", 95, 8.5)]
    logs = runtime.list_logs(user_id="u1")["logs"]
    assert [entry["speaker"] for entry in logs] == ["USER", "BOT"]


def test_handle_turn_returns_uniform_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    config = _configure(tmp_path, monkeypatch)
    runtime = RuntimeService(config=config)

    status, body = runtime.handle_turn(transcript="", user_id="u1")
    assert status == 400
    assert body["success"] is False
    assert "transcript" in body["error"]


def test_parse_failure_surfaces_as_500_after_user_log(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    config = _configure(tmp_path, monkeypatch)
    monkeypatch.setattr(http_json_module, "urlopen", _FakeServices(["I am not following the format."]))

    runtime = RuntimeService(config=config)
    status, body = runtime.handle_turn(transcript="loan", user_id="u1")

    assert status == 500
    assert body["success"] is False
    assert body["error_kind"] == "reasoning_parse_error"
    assert [entry["speaker"] for entry in runtime.list_logs(user_id="u1")["logs"]] == ["USER"]


def test_classify_intent_and_health(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    config = _configure(tmp_path, monkeypatch)
    monkeypatch.setattr(http_json_module, "urlopen", _FakeServices(["KYC_PROVIDE"]))

    runtime = RuntimeService(config=config)
    assert runtime.classify_intent(text="mera aadhaar 1234") == {"ok": True, "intent": "KYC_PROVIDE"}

    health = runtime.health()
    assert health["ok"] is True
    assert health["store"]["db_path"] == str((tmp_path / "krishi.db").resolve())


def test_building_sqlite_cache_purges_expired_rows(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    config = _configure(tmp_path, monkeypatch)
    config = {**config, "storage": {"db_path": str(tmp_path / "krishi.db"), "cache_backend": "sqlite"}}
    stale = SqliteTTLCache(tmp_path / "krishi.db", clock=lambda: 0.0)
    stale.set("tts:old", "https://murf.example/old.mp3", ttl_sec=1)

    RuntimeService(config=config).health()

    with sqlite3.connect(tmp_path / "krishi.db") as conn:
        keys = [row[0] for row in conn.execute("SELECT cache_key FROM cache_entries;")]
    assert keys == []
