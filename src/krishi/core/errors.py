"""Error taxonomy for voice-turn processing."""

from __future__ import annotations


class KrishiError(Exception):
    """Base class for every error raised by the turn pipeline."""

    kind = "internal_error"


class ValidationError(KrishiError):
    """Required turn input is missing; raised before any side effect."""

    kind = "validation_error"


class ExternalServiceError(KrishiError):
    """A collaborator (TTS, land registry, notifier, LLM) failed."""

    kind = "external_service_error"

    def __init__(self, message: str, *, service: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class RateLimited(ExternalServiceError):
    """Provider answered HTTP 429. Not retried yet."""

    kind = "rate_limited"


class TTSFailure(ExternalServiceError):
    kind = "tts_failure"


class StageTimeoutError(ExternalServiceError, TimeoutError):
    """One external call exceeded its own timeout."""

    kind = "timeout"


class TurnTimeoutError(KrishiError, TimeoutError):
    """The turn (or the reasoning loop inside it) exceeded its time budget."""

    kind = "timeout"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage


class ToolInputError(KrishiError):
    """Malformed tool arguments. Recoverable: fed back to the loop."""

    kind = "tool_input_error"

    def __init__(self, message: str, *, tool_name: str | None = None) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class ReasoningParseError(KrishiError):
    """Oracle output matched neither the Action nor the Final Answer grammar."""

    kind = "reasoning_parse_error"

    def __init__(self, message: str, *, llm_output: str = "") -> None:
        super().__init__(message)
        self.llm_output = llm_output


class ReasoningLimitExceeded(KrishiError):
    kind = "reasoning_limit_exceeded"

    DEFAULT_FALLBACK = "Sorry, I could not finish checking your application just now. Please try again in a moment."

    def __init__(self, message: str, *, iterations: int, fallback_message: str | None = None) -> None:
        super().__init__(message)
        self.iterations = iterations
        self.fallback_message = fallback_message or self.DEFAULT_FALLBACK


class UniquenessViolation(KrishiError):
    """A unique column (e.g. User.phoneNumber) already holds the value."""

    kind = "uniqueness_violation"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
