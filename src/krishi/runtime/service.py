"""Shared runtime ownership facade for app entrypoints."""

from __future__ import annotations

import logging
from threading import RLock
from typing import Any

from src.krishi.core.agent_loop import ReasoningLoop
from src.krishi.core.config_loader import (
    get_agent_config,
    get_agri_stack_config,
    get_history_config,
    get_notification_config,
    get_storage_config,
    get_tts_config,
    get_turn_config,
    load_config_or_empty,
)
from src.krishi.core.history_store import ConversationHistoryStore
from src.krishi.core.providers import AblyNotifier, MurfSynthesizer
from src.krishi.core.record_store import RecordStore, resolve_db_path
from src.krishi.core.speech_cache import SpeechSynthesisCache
from src.krishi.core.ttl_cache import MemoryTTLCache, SqliteTTLCache, TTLCache
from src.krishi.core.turn_orchestrator import TurnOrchestrator, error_response
from src.krishi.tools.lending import HttpLandRegistry, LandRegistry, SimulatedLandRegistry, create_lending_registry

logger = logging.getLogger(__name__)


def _build_cache(storage_cfg: dict[str, Any]) -> TTLCache:
    if storage_cfg.get("cache_backend") == "memory":
        return MemoryTTLCache()
    cache = SqliteTTLCache(resolve_db_path(storage_cfg.get("db_path")))
    purged = cache.purge_expired()
    if purged:
        logger.info("purged expired cache entries", extra={"count": purged})
    return cache


def _build_land_registry(agri_cfg: dict[str, Any]) -> LandRegistry:
    base_url = agri_cfg.get("base_url")
    if isinstance(base_url, str) and base_url:
        return HttpLandRegistry(
            base_url=base_url,
            timeout_sec=float(agri_cfg["timeout_sec"]),
            default_state=str(agri_cfg["default_state"]),
        )
    return SimulatedLandRegistry(
        latency_sec=float(agri_cfg["simulated_latency_sec"]),
        default_state=str(agri_cfg["default_state"]),
    )


class RuntimeService:
    """Single authority for wiring the turn pipeline and app-facing operations.

    Collaborators are built once from config on first use and passed into the
    orchestrator explicitly.
    """

    def __init__(
        self,
        *,
        config: dict[str, Any] | None = None,
        store: RecordStore | None = None,
        orchestrator: TurnOrchestrator | None = None,
        reasoning_loop: ReasoningLoop | None = None,
    ) -> None:
        self._lock = RLock()
        self._config = config
        self._store = store
        self._orchestrator = orchestrator
        self._loop = reasoning_loop

    def _ensure_built(self) -> None:
        with self._lock:
            if self._orchestrator is not None and self._store is not None and self._loop is not None:
                return
            config = self._config if self._config is not None else load_config_or_empty()
            storage_cfg = get_storage_config(config)
            agent_cfg = get_agent_config(config)
            tts_cfg = get_tts_config(config)
            notify_cfg = get_notification_config(config)
            history_cfg = get_history_config(config)
            turn_cfg = get_turn_config(config)

            store = self._store or RecordStore(storage_cfg.get("db_path"))
            cache = _build_cache(storage_cfg)
            registry = create_lending_registry(store, land_registry=_build_land_registry(get_agri_stack_config(config)))
            loop = self._loop or ReasoningLoop(
                registry=registry,
                max_iterations=int(agent_cfg["max_iterations"]),
                timeout_sec=float(agent_cfg["timeout_sec"]),
                model=agent_cfg.get("model"),
                temperature=agent_cfg.get("temperature"),
                max_sentences=int(agent_cfg["max_sentences"]),
            )
            speech = SpeechSynthesisCache(
                cache=cache,
                synthesizer=MurfSynthesizer(
                    api_key=tts_cfg.get("api_key"),
                    base_url=str(tts_cfg["base_url"]),
                    model_id=str(tts_cfg["model_id"]),
                    audio_format=str(tts_cfg["format"]),
                    speed=float(tts_cfg["speed"]),
                    timeout_sec=float(tts_cfg["timeout_sec"]),
                ),
                default_voice_id=str(tts_cfg["voice_id"]),
                ttl_sec=float(tts_cfg["cache_ttl_sec"]),
            )
            notifier = AblyNotifier(
                api_key=notify_cfg.get("api_key"),
                base_url=str(notify_cfg["base_url"]),
                channel_prefix=str(notify_cfg["channel_prefix"]),
                event_name=str(notify_cfg["event_name"]),
                timeout_sec=float(notify_cfg["timeout_sec"]),
            )
            self._orchestrator = self._orchestrator or TurnOrchestrator(
                store=store,
                history=ConversationHistoryStore(cache, ttl_sec=float(history_cfg["ttl_sec"])),
                reasoning_loop=loop,
                speech=speech,
                notifier=notifier,
                voice_id=str(tts_cfg["voice_id"]),
                budget_sec=float(turn_cfg["budget_sec"]),
                history_source=str(history_cfg["source"]),
                log_window=int(history_cfg["log_window_entries"]),
                serialize_per_user=bool(turn_cfg["serialize_per_user"]),
            )
            self._store = store
            self._loop = loop
            logger.info(
                "runtime built",
                extra={"db_path": str(store.db_path), "tools": registry.names(), "history_source": history_cfg["source"]},
            )

    def handle_turn(self, *, transcript: Any, user_id: Any) -> tuple[int, dict[str, Any]]:
        """Run one turn and return (HTTP status, body); every failure has the same shape."""
        try:
            self._ensure_built()
            assert self._orchestrator is not None
            result = self._orchestrator.run_turn(transcript, user_id)
        except Exception as exc:
            status, body = error_response(exc)
            logger.error(
                "turn failed",
                extra={"user_id": str(user_id), "error_kind": body["error_kind"], "status_code": status},
                exc_info=status == 500,
            )
            return status, body
        return 200, result.to_response()

    def classify_intent(self, *, text: str) -> dict[str, Any]:
        self._ensure_built()
        assert self._loop is not None
        return {"ok": True, "intent": self._loop.classify_intent(text)}

    def list_logs(self, *, user_id: str, limit: int | None = None) -> dict[str, Any]:
        self._ensure_built()
        assert self._store is not None
        entries = self._store.list_conversation_logs(user_id, limit=limit)
        return {"ok": True, "userId": user_id, "logs": [entry.to_dict() for entry in entries]}

    def list_applications(self, *, user_id: str) -> dict[str, Any]:
        self._ensure_built()
        assert self._store is not None
        applications = self._store.list_loan_applications(user_id)
        return {"ok": True, "userId": user_id, "applications": [app.to_dict() for app in applications]}

    def health(self) -> dict[str, Any]:
        self._ensure_built()
        assert self._store is not None
        return {"ok": True, "source": "runtime_service", "store": self._store.health()}


_RUNTIME_SERVICE: RuntimeService | None = None


def get_runtime_service() -> RuntimeService:
    global _RUNTIME_SERVICE
    if _RUNTIME_SERVICE is None:
        _RUNTIME_SERVICE = RuntimeService()
    return _RUNTIME_SERVICE
