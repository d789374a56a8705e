"""Ably REST publisher for per-user realtime notifications."""

from __future__ import annotations

import base64
from typing import Any
from urllib.parse import quote

from ..errors import ExternalServiceError
from .http_json import post_json

ABLY_REST_URL = "https://rest.ably.io"


class AblyNotifier:
    """Publish one message per call to channel `<prefix><userId>`."""

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = ABLY_REST_URL,
        channel_prefix: str = "user:",
        event_name: str = "update",
        timeout_sec: float = 5.0,
    ) -> None:
        self._api_key = api_key or ""
        self._base_url = base_url.rstrip("/")
        self._channel_prefix = channel_prefix
        self._event_name = event_name
        self._timeout_sec = float(timeout_sec)

    def channel_name(self, user_id: str) -> str:
        return f"{self._channel_prefix}{user_id}"

    def publish(self, user_id: str, data: dict[str, Any]) -> None:
        if not self._api_key:
            raise ExternalServiceError("ABLY_API_KEY is not configured.", service="ably")
        token = base64.b64encode(self._api_key.encode("utf-8")).decode("ascii")
        url = f"{self._base_url}/channels/{quote(self.channel_name(user_id), safe='')}/messages"
        post_json(
            url,
            headers={"Authorization": f"Basic {token}"},
            payload={"name": self._event_name, "data": data},
            timeout_sec=self._timeout_sec,
            service="ably",
        )
