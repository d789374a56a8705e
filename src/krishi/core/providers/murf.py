"""Murf text-to-speech adapter."""

from __future__ import annotations

from typing import Any

from ..errors import ExternalServiceError, RateLimited, StageTimeoutError, TTSFailure
from .http_json import post_json

MURF_TTS_URL = "https://api.murf.ai/v1/tts"


class MurfSynthesizer:
    """Turn text into a hosted audio URL with fixed model/voice parameters."""

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = MURF_TTS_URL,
        model_id: str = "falcon-v1",
        audio_format: str = "mp3",
        speed: float = 1.0,
        timeout_sec: float = 10.0,
    ) -> None:
        self._api_key = api_key or ""
        self._base_url = base_url
        self._model_id = model_id
        self._format = audio_format
        self._speed = float(speed)
        self._timeout_sec = float(timeout_sec)

    def build_payload(self, text: str, voice_id: str) -> dict[str, Any]:
        return {
            "input": text,
            "voice_id": voice_id,
            "model_id": self._model_id,
            "format": self._format,
            "speed": self._speed,
        }

    def synthesize(self, text: str, voice_id: str) -> str:
        """Return the audio URL; raises `RateLimited` on HTTP 429 and `TTSFailure` otherwise."""
        if not self._api_key:
            raise TTSFailure("TTS Generation Failed: MURF_API_KEY is not configured.", service="murf")
        try:
            body = post_json(
                self._base_url,
                headers={"api-key": self._api_key},
                payload=self.build_payload(text, voice_id),
                timeout_sec=self._timeout_sec,
                service="murf",
            )
        except StageTimeoutError:
            raise
        except ExternalServiceError as exc:
            if exc.status_code == 429:
                raise RateLimited("TTS Service Busy (Rate Limit)", service="murf", status_code=429) from exc
            raise TTSFailure(f"TTS Generation Failed: {exc}", service="murf", status_code=exc.status_code) from exc

        audio_url = body.get("audio_file") or body.get("url") or body.get("audioFile")
        if not isinstance(audio_url, str) or not audio_url.strip():
            raise TTSFailure("TTS Generation Failed: No audio URL in Murf response", service="murf")
        return audio_url
