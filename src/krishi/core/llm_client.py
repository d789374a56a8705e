"""Provider-agnostic LLM client entrypoint."""

from __future__ import annotations

import logging
import re
import socket
from time import sleep
from typing import Any, Callable
from urllib.error import HTTPError, URLError

from .config_loader import get_model_config, get_provider_config, load_config
from .errors import ExternalServiceError
from .providers import call_openrouter

logger = logging.getLogger(__name__)

DEFAULT_RETRY_BACKOFF_SCHEDULE_SEC = (1.0, 3.0, 5.0)
RETRYABLE_HTTP_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})

LLMCaller = Callable[..., dict[str, Any]]


class _ProviderCallError(Exception):
    def __init__(
        self,
        *,
        cause: Exception,
        attempts_used: int,
        attempts_configured: int,
        retryable_error: bool,
    ) -> None:
        super().__init__(str(cause))
        self.cause = cause
        self.attempts_used = attempts_used
        self.attempts_configured = attempts_configured
        self.retryable_error = retryable_error


def _exception_chain(exc: Exception) -> list[Exception]:
    chain: list[Exception] = []
    seen: set[int] = set()
    current: Exception | None = exc
    while current is not None and id(current) not in seen:
        chain.append(current)
        seen.add(id(current))
        nxt = current.__cause__ if isinstance(current.__cause__, Exception) else None
        if nxt is None:
            nxt = current.__context__ if isinstance(current.__context__, Exception) else None
        current = nxt
    return chain


def _http_code_from_text(text: str) -> int | None:
    match = re.search(r"\bHTTP\s+(\d{3})\b", text)
    if not match:
        return None
    return int(match.group(1))


def _is_timeout_error(exc: Exception) -> bool:
    for current in _exception_chain(exc):
        if isinstance(current, (TimeoutError, socket.timeout)):
            return True
        reason = getattr(current, "reason", None)
        if isinstance(reason, (TimeoutError, socket.timeout)):
            return True
        if isinstance(reason, str) and "timed out" in reason.lower():
            return True
    return False


def _is_retryable_provider_error(exc: Exception) -> bool:
    for current in _exception_chain(exc):
        if isinstance(current, ExternalServiceError) and current.status_code is not None:
            return current.status_code in RETRYABLE_HTTP_CODES
        if isinstance(current, HTTPError):
            return int(current.code) in RETRYABLE_HTTP_CODES
        if isinstance(current, URLError):
            reason = getattr(current, "reason", None)
            if isinstance(reason, str):
                low = reason.lower()
                return "timed out" in low or "temporary failure" in low or "name resolution" in low
            return True
        if isinstance(current, (TimeoutError, socket.timeout)):
            return True
        code = _http_code_from_text(str(current))
        if code is not None:
            return code in RETRYABLE_HTTP_CODES
    return False


def _call_openrouter_with_retry(
    *,
    attempts: int,
    backoff_schedule_sec: list[float],
    **kwargs: Any,
) -> tuple[dict[str, Any], int]:
    last_exc: Exception | None = None
    safe_attempts = max(1, int(attempts))
    schedule = [float(max(0.0, val)) for val in backoff_schedule_sec]
    for attempt in range(1, safe_attempts + 1):
        try:
            return call_openrouter(**kwargs), attempt
        except Exception as exc:
            last_exc = exc
            retryable = _is_retryable_provider_error(exc)
            if attempt >= safe_attempts or not retryable:
                raise _ProviderCallError(
                    cause=exc,
                    attempts_used=attempt,
                    attempts_configured=safe_attempts,
                    retryable_error=retryable,
                ) from exc
            delay = schedule[min(attempt - 1, len(schedule) - 1)] if schedule else 0.0
            logger.warning(
                "openrouter call failed, retrying",
                extra={"attempt": attempt, "delay_sec": delay, "error": str(exc)},
            )
            if delay > 0:
                sleep(delay)
    if last_exc is not None:
        raise _ProviderCallError(
            cause=last_exc,
            attempts_used=safe_attempts,
            attempts_configured=safe_attempts,
            retryable_error=_is_retryable_provider_error(last_exc),
        ) from last_exc
    raise RuntimeError("OpenRouter retry loop exited unexpectedly.")


def _coerce_retry_schedule_sec(raw: Any) -> list[float]:
    if not isinstance(raw, list):
        return [float(val) for val in DEFAULT_RETRY_BACKOFF_SCHEDULE_SEC]
    out: list[float] = []
    for val in raw:
        if isinstance(val, (int, float)) and float(val) >= 0:
            out.append(float(val))
    if out:
        return out
    return [float(val) for val in DEFAULT_RETRY_BACKOFF_SCHEDULE_SEC]


def _failure(provider: str | None, model_id: str | None, error: str, **extra: Any) -> dict[str, Any]:
    payload = {
        "ok": False,
        "provider": provider,
        "model": model_id,
        "text": None,
        "finish_reason": None,
        "usage": None,
        "raw": None,
        "error": error,
        "timed_out": False,
    }
    payload.update(extra)
    return payload


def call_llm(
    *,
    messages: list[dict[str, Any]],
    model: str | None = None,
    stop: list[str] | None = None,
    temperature: float | None = None,
    max_output_tokens: int | None = None,
    timeout_sec: float | None = None,
) -> dict[str, Any]:
    """Resolve model/provider from config and execute one model call."""
    payload = load_config()
    model_id, model_cfg = get_model_config(model, payload)
    provider_name = model_cfg.get("provider")
    if not isinstance(provider_name, str) or not provider_name:
        return _failure(None, model_id, f"Model '{model_id}' missing provider.")

    provider_cfg = get_provider_config(provider_name, payload)
    endpoint = model_cfg.get("endpoint")
    if not isinstance(endpoint, str) or not endpoint:
        return _failure(provider_name, model_id, f"Model '{model_id}' missing endpoint.")

    if provider_name != "openrouter":
        return _failure(provider_name, model_id, f"Unsupported provider '{provider_name}'.")

    api_key = provider_cfg.get("apikey")
    if not isinstance(api_key, str) or not api_key:
        return _failure(provider_name, model_id, "OpenRouter API key missing.")

    provider_timeout = timeout_sec
    if provider_timeout is None:
        configured = provider_cfg.get("timeout_sec")
        provider_timeout = float(configured) if configured is not None else 30.0
    retry_schedule_sec = _coerce_retry_schedule_sec(provider_cfg.get("retry_backoff_schedule_sec"))
    retry_attempts_raw = provider_cfg.get("retry_attempts")
    if isinstance(retry_attempts_raw, int) and retry_attempts_raw > 0:
        retry_attempts = max(retry_attempts_raw, len(retry_schedule_sec) + 1)
    else:
        retry_attempts = len(retry_schedule_sec) + 1

    try:
        response, attempts_used = _call_openrouter_with_retry(
            attempts=retry_attempts,
            backoff_schedule_sec=retry_schedule_sec,
            api_key=api_key,
            model=endpoint,
            messages=messages,
            max_output_tokens=max_output_tokens,
            temperature=temperature if temperature is not None else model_cfg.get("temperature"),
            stop=stop,
            timeout_sec=provider_timeout,
            base_url=provider_cfg.get("base_url", None) or "https://openrouter.ai/api/v1/chat/completions",
            referer=provider_cfg.get("referer"),
            app_title=provider_cfg.get("app_title"),
        )
    except _ProviderCallError as exc:
        return _failure(
            provider_name,
            model_id,
            str(exc.cause),
            timed_out=_is_timeout_error(exc.cause),
            attempts_used=int(exc.attempts_used),
            attempts_configured=int(exc.attempts_configured),
            retryable_error=bool(exc.retryable_error),
            retry_backoff_schedule_sec=retry_schedule_sec,
        )

    out = dict(response)
    out["attempts_used"] = attempts_used
    out["attempts_configured"] = retry_attempts
    out["retryable_error"] = False
    out["retry_backoff_schedule_sec"] = retry_schedule_sec
    return out
