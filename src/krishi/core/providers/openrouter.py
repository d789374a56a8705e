"""OpenRouter chat-completions adapter."""

from __future__ import annotations

from typing import Any

from .http_json import post_json

OPENROUTER_CHAT_URL = "https://openrouter.ai/api/v1/chat/completions"


def call_openrouter(
    *,
    api_key: str,
    model: str,
    messages: list[dict[str, Any]],
    max_output_tokens: int | None = None,
    temperature: float | None = None,
    stop: list[str] | None = None,
    timeout_sec: float = 30,
    base_url: str = OPENROUTER_CHAT_URL,
    referer: str | None = None,
    app_title: str | None = None,
) -> dict[str, Any]:
    """Call OpenRouter and normalize completion output."""
    headers = {"Authorization": f"Bearer {api_key}"}
    if referer:
        headers["HTTP-Referer"] = referer
    if app_title:
        headers["X-Title"] = app_title

    payload: dict[str, Any] = {
        "model": model,
        "messages": messages,
    }
    if max_output_tokens is not None:
        payload["max_tokens"] = int(max_output_tokens)
    if temperature is not None:
        payload["temperature"] = float(temperature)
    if stop:
        payload["stop"] = list(stop)

    raw = post_json(base_url, headers=headers, payload=payload, timeout_sec=timeout_sec, service="openrouter")
    choices = raw.get("choices", [])
    first = choices[0] if isinstance(choices, list) and choices else {}
    if not isinstance(first, dict):
        first = {}
    message = first.get("message")
    if not isinstance(message, dict):
        message = {}

    return {
        "ok": True,
        "provider": "openrouter",
        "model": model,
        "text": message.get("content"),
        "finish_reason": first.get("finish_reason"),
        "usage": raw.get("usage"),
        "raw": raw,
        "error": None,
    }
