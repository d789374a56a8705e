"""One voice turn: log, reason, synthesize, log, remember, notify."""

from __future__ import annotations

import logging
from threading import Lock
from time import monotonic
from typing import Any, Callable, Protocol

from .agent_loop import ReasoningLoop
from .agent_types import TurnResult
from .errors import KrishiError, RateLimited, ReasoningLimitExceeded, TurnTimeoutError, ValidationError
from .history_store import ConversationHistoryStore, render_history_from_logs
from .record_store import RecordStore
from .speech_cache import SpeechSynthesisCache

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class Notifier(Protocol):
    def publish(self, user_id: str, data: dict[str, Any]) -> None: ...


def _require(value: Any, field_name: str) -> str:
    if value is None:
        raise ValidationError(f"{field_name} is required.")
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{field_name} is required.")
    return text


class TurnOrchestrator:
    """Run the nine turn stages strictly in order.

    Stages are not transactional. The USER log entry is committed before the
    reasoning loop runs, so a failed turn leaves a USER entry with no BOT
    reply after it.

    History is read-then-written without locking unless `serialize_per_user`
    is set, in which case turns for the same user run one at a time.
    """

    def __init__(
        self,
        *,
        store: RecordStore,
        history: ConversationHistoryStore,
        reasoning_loop: ReasoningLoop,
        speech: SpeechSynthesisCache,
        notifier: Notifier,
        voice_id: str | None = None,
        budget_sec: float = 30.0,
        history_source: str = "cache",
        log_window: int = 20,
        serialize_per_user: bool = False,
        clock: Clock = monotonic,
    ) -> None:
        if history_source not in {"cache", "log"}:
            raise ValueError("history_source must be 'cache' or 'log'")
        self._store = store
        self._history = history
        self._loop = reasoning_loop
        self._speech = speech
        self._notifier = notifier
        self._voice_id = voice_id
        self._budget_sec = float(budget_sec)
        self._history_source = history_source
        self._log_window = max(1, int(log_window))
        self._serialize_per_user = bool(serialize_per_user)
        self._clock = clock
        self._user_locks: dict[str, Lock] = {}
        self._user_locks_guard = Lock()

    def _user_lock(self, user_id: str) -> Lock:
        with self._user_locks_guard:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = Lock()
                self._user_locks[user_id] = lock
            return lock

    def _check_budget(self, started: float, stage: str) -> None:
        elapsed = self._clock() - started
        if elapsed > self._budget_sec:
            raise TurnTimeoutError(
                f"Turn exceeded its {self._budget_sec:g}s budget during {stage} ({elapsed:.2f}s).",
                stage=stage,
            )

    def _loop_context(self, user_id: str) -> str:
        if self._history_source == "log":
            entries = self._store.list_conversation_logs(user_id, limit=self._log_window + 1)
            # Last entry is this turn's USER line.
            return render_history_from_logs(entries[:-1])
        return self._history.get(user_id)

    def run_turn(self, transcript: Any, user_id: Any) -> TurnResult:
        transcript_text = _require(transcript, "transcript")
        user_key = _require(user_id, "userId")
        if not self._serialize_per_user:
            return self._run(transcript_text, user_key)
        with self._user_lock(user_key):
            return self._run(transcript_text, user_key)

    def _run(self, transcript: str, user_id: str) -> TurnResult:
        started = self._clock()
        logger.info("turn started", extra={"user_id": user_id, "transcript_chars": len(transcript)})

        self._store.append_conversation_log(user_id=user_id, message_content=transcript, speaker="USER")

        previous = self._history.get(user_id)
        context = previous if self._history_source == "cache" else self._loop_context(user_id)

        reply = self._loop.respond(transcript, history=context, user_id=user_id)
        response_text = reply["text"]
        self._check_budget(started, "reasoning")

        audio_url = self._speech.generate_speech(response_text, self._voice_id)
        self._check_budget(started, "speech")

        self._store.append_conversation_log(user_id=user_id, message_content=response_text, speaker="BOT")
        self._history.append_turn(user_id, previous=previous, transcript=transcript, response_text=response_text)

        trace = reply["trace"]
        self._notifier.publish(
            user_id,
            {
                "type": "response",
                "transcription": transcript,
                "text": response_text,
                "audioUrl": audio_url,
                "raw": trace,
            },
        )

        logger.info(
            "turn completed",
            extra={
                "user_id": user_id,
                "iterations": trace.get("iterations"),
                "stop_reason": trace.get("stop_reason"),
                "elapsed_sec": round(self._clock() - started, 3),
            },
        )
        return TurnResult(transcription=transcript, response_text=response_text, audio_url=audio_url, trace=trace)


def error_response(exc: BaseException) -> tuple[int, dict[str, Any]]:
    """Map a failed turn to (HTTP status, uniform failure body)."""
    if isinstance(exc, ValidationError):
        return 400, {"success": False, "error": str(exc), "error_kind": exc.kind}
    if isinstance(exc, RateLimited):
        return 429, {"success": False, "error": str(exc), "error_kind": exc.kind}
    if isinstance(exc, ReasoningLimitExceeded):
        return 500, {"success": False, "error": exc.fallback_message, "error_kind": exc.kind}
    if isinstance(exc, KrishiError) and isinstance(exc, TimeoutError):
        return 504, {"success": False, "error": str(exc), "error_kind": exc.kind}
    if isinstance(exc, KrishiError):
        return 500, {"success": False, "error": str(exc), "error_kind": exc.kind}
    return 500, {"success": False, "error": "Internal server error.", "error_kind": KrishiError.kind}
