"""JSON-over-HTTP helper shared by the external service adapters."""

from __future__ import annotations

import json
import socket
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..errors import ExternalServiceError, StageTimeoutError


def _error_detail(body: str, fallback: str) -> str:
    detail = body.strip() or fallback
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        return detail
    if isinstance(parsed, dict):
        err = parsed.get("error")
        if isinstance(err, dict):
            return str(err.get("message") or err.get("code") or detail)
        if isinstance(err, str):
            return err
        if isinstance(parsed.get("message"), str):
            return parsed["message"]
    return detail


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, (TimeoutError, socket.timeout)):
        return True
    reason = getattr(exc, "reason", None)
    if isinstance(reason, (TimeoutError, socket.timeout)):
        return True
    return isinstance(reason, str) and "timed out" in reason.lower()


def post_json(
    url: str,
    *,
    headers: dict[str, str],
    payload: dict[str, Any] | list[Any],
    timeout_sec: float,
    service: str,
) -> dict[str, Any]:
    """POST a JSON body and return the decoded JSON object (empty dict for an empty body).

    HTTP errors raise `ExternalServiceError` with `status_code` set and a
    message of the form `HTTP <code>: <detail>`; timeouts raise
    `StageTimeoutError`.
    """
    req = Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    try:
        with urlopen(req, timeout=timeout_sec) as response:
            body = response.read().decode("utf-8")
    except HTTPError as exc:
        body = exc.read().decode("utf-8", errors="replace")
        detail = _error_detail(body, str(exc))
        raise ExternalServiceError(f"HTTP {exc.code}: {detail}", service=service, status_code=int(exc.code)) from exc
    except (URLError, OSError) as exc:
        if _is_timeout(exc):
            raise StageTimeoutError(f"{service} timed out after {timeout_sec}s", service=service) from exc
        raise ExternalServiceError(f"{service} unreachable: {exc}", service=service) from exc

    if not body.strip():
        return {}
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ExternalServiceError(f"{service} returned invalid JSON.", service=service) from exc
    if isinstance(parsed, list):
        return {"items": parsed}
    if not isinstance(parsed, dict):
        raise ExternalServiceError(f"{service} response must be a JSON object.", service=service)
    return parsed
