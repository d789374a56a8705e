"""Content-addressed cache in front of the text-to-speech provider."""

from __future__ import annotations

import hashlib
import logging
from typing import Protocol

from .ttl_cache import TTLCache

logger = logging.getLogger(__name__)

SPEECH_KEY_PREFIX = "tts:"
DEFAULT_SPEECH_TTL_SEC = 60 * 60


class SpeechSynthesizer(Protocol):
    def synthesize(self, text: str, voice_id: str) -> str: ...


def generate_cache_key(text: str, voice_id: str) -> str:
    digest = hashlib.sha256(f"{text}{voice_id}".encode("utf-8")).hexdigest()
    return f"{SPEECH_KEY_PREFIX}{digest}"


class SpeechSynthesisCache:
    """Return an audio URL for text, calling the provider only on a cache miss.

    Cache failures degrade to an uncached call. Provider errors (`RateLimited`,
    `TTSFailure`, timeouts) propagate unchanged.
    """

    def __init__(
        self,
        *,
        cache: TTLCache,
        synthesizer: SpeechSynthesizer,
        default_voice_id: str,
        ttl_sec: float = DEFAULT_SPEECH_TTL_SEC,
    ) -> None:
        self._cache = cache
        self._synthesizer = synthesizer
        self._default_voice_id = default_voice_id
        self._ttl_sec = float(ttl_sec)

    def generate_speech(self, text: str, voice_id: str | None = None) -> str:
        voice = voice_id or self._default_voice_id
        cache_key = generate_cache_key(text, voice)

        try:
            cached_url = self._cache.get(cache_key)
        except Exception as exc:
            logger.warning("speech cache read failed", extra={"cache_key": cache_key, "error": str(exc)})
            cached_url = None
        if cached_url:
            logger.info("using cached speech", extra={"cache_key": cache_key, "text_preview": text[:20]})
            return cached_url

        audio_url = self._synthesizer.synthesize(text, voice)

        try:
            self._cache.set(cache_key, audio_url, ttl_sec=self._ttl_sec)
        except Exception as exc:
            logger.warning("speech cache write failed", extra={"cache_key": cache_key, "error": str(exc)})
        return audio_url
