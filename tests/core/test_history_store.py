import pytest

from src.krishi.core.agent_types import ConversationLogEntry
from src.krishi.core.history_store import (
    ConversationHistoryStore,
    history_key,
    render_history_from_logs,
    render_turn,
)
from src.krishi.core.ttl_cache import MemoryTTLCache


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_history_key_and_turn_format():
    assert history_key("42") == "conv:42"
    assert render_turn("hello", "namaste") == "\nUser: hello\nAgent: namaste"


def test_get_returns_empty_string_when_absent():
    store = ConversationHistoryStore(MemoryTTLCache())
    assert store.get("nobody") == ""


def test_append_turn_accumulates_and_resets_ttl():
    clock = _FakeClock()
    cache = MemoryTTLCache(clock=clock)
    store = ConversationHistoryStore(cache, ttl_sec=86400)

    first = store.append_turn("u1", previous="", transcript="loan chahiye", response_text="Sure")
    clock.now = 80000
    assert cache.ttl("conv:u1") == pytest.approx(6400)

    second = store.append_turn("u1", previous=first, transcript="3 acres", response_text="Noted")
    assert second == "\nUser: loan chahiye\nAgent: Sure\nUser: 3 acres\nAgent: Noted"
    assert store.get("u1") == second
    assert cache.ttl("conv:u1") == pytest.approx(86400)


def test_history_expires_after_window():
    clock = _FakeClock()
    store = ConversationHistoryStore(MemoryTTLCache(clock=clock), ttl_sec=10)
    store.write("u1", "\nUser: hi\nAgent: hello")
    clock.now = 11
    assert store.get("u1") == ""


def test_render_history_from_logs_matches_blob_shape():
    entries = [
        ConversationLogEntry(user_id="u1", message_content="hi", speaker="USER"),
        ConversationLogEntry(user_id="u1", message_content="hello", speaker="BOT"),
    ]
    assert render_history_from_logs(entries) == render_turn("hi", "hello")


def test_rejects_non_positive_ttl():
    with pytest.raises(ValueError):
        ConversationHistoryStore(MemoryTTLCache(), ttl_sec=0)
