"""Per-user rolling conversation history used as reasoning-loop context."""

from __future__ import annotations

import logging

from .agent_types import ConversationLogEntry
from .ttl_cache import TTLCache

logger = logging.getLogger(__name__)

HISTORY_KEY_PREFIX = "conv:"
DEFAULT_HISTORY_TTL_SEC = 24 * 60 * 60


def history_key(user_id: str) -> str:
    return f"{HISTORY_KEY_PREFIX}{user_id}"


def render_turn(transcript: str, response_text: str) -> str:
    return f"\nUser: {transcript}\nAgent: {response_text}"


def render_history_from_logs(entries: list[ConversationLogEntry]) -> str:
    """Render log entries in the same shape as the cached blob."""
    lines: list[str] = []
    for entry in entries:
        label = "User" if entry.speaker == "USER" else "Agent"
        lines.append(f"\n{label}: {entry.message_content}")
    return "".join(lines)


class ConversationHistoryStore:
    """Rolling text blob per user; every write resets the TTL to the full window.

    Read-then-write is not atomic: two concurrent turns for one user can drop
    one turn's update.
    """

    def __init__(self, cache: TTLCache, *, ttl_sec: float = DEFAULT_HISTORY_TTL_SEC) -> None:
        if ttl_sec <= 0:
            raise ValueError("ttl_sec must be > 0")
        self._cache = cache
        self._ttl_sec = float(ttl_sec)

    @property
    def ttl_sec(self) -> float:
        return self._ttl_sec

    def get(self, user_id: str) -> str:
        return self._cache.get(history_key(user_id)) or ""

    def write(self, user_id: str, history: str) -> None:
        self._cache.set(history_key(user_id), history, ttl_sec=self._ttl_sec)

    def append_turn(self, user_id: str, *, previous: str, transcript: str, response_text: str) -> str:
        updated = f"{previous}{render_turn(transcript, response_text)}"
        self.write(user_id, updated)
        logger.debug("history updated", extra={"user_id": user_id, "history_chars": len(updated)})
        return updated
