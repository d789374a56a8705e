"""Core runtime utilities for Krishi-Mitra."""

from .agent_loop import ReasoningLoop
from .agent_types import (
    AgentAction,
    AgentFinish,
    AgentStep,
    ConversationLogEntry,
    LoanApplication,
    TurnResult,
    User,
)
from .config_loader import (
    clear_config_cache,
    get_agent_config,
    get_agri_stack_config,
    get_default_model,
    get_history_config,
    get_logging_config,
    get_model_by_alias,
    get_model_config,
    get_notification_config,
    get_provider_config,
    get_storage_config,
    get_tts_config,
    get_turn_config,
    load_config,
    resolve_config_path,
)
from .errors import (
    ExternalServiceError,
    KrishiError,
    RateLimited,
    ReasoningLimitExceeded,
    ReasoningParseError,
    StageTimeoutError,
    ToolInputError,
    TTSFailure,
    TurnTimeoutError,
    UniquenessViolation,
    ValidationError,
)
from .history_store import ConversationHistoryStore, history_key
from .llm_client import call_llm
from .logging_setup import configure_logging
from .record_store import RecordStore
from .speech_cache import SpeechSynthesisCache, generate_cache_key
from .tool_registry import ToolRegistry, ToolSpec
from .ttl_cache import MemoryTTLCache, SqliteTTLCache
from .turn_orchestrator import TurnOrchestrator, error_response

__all__ = [
    "AgentAction",
    "AgentFinish",
    "AgentStep",
    "ConversationHistoryStore",
    "ConversationLogEntry",
    "ExternalServiceError",
    "KrishiError",
    "LoanApplication",
    "MemoryTTLCache",
    "RateLimited",
    "ReasoningLimitExceeded",
    "ReasoningLoop",
    "ReasoningParseError",
    "RecordStore",
    "SpeechSynthesisCache",
    "SqliteTTLCache",
    "StageTimeoutError",
    "TTSFailure",
    "ToolInputError",
    "ToolRegistry",
    "ToolSpec",
    "TurnOrchestrator",
    "TurnResult",
    "TurnTimeoutError",
    "UniquenessViolation",
    "User",
    "ValidationError",
    "call_llm",
    "clear_config_cache",
    "configure_logging",
    "error_response",
    "generate_cache_key",
    "get_agent_config",
    "get_agri_stack_config",
    "get_default_model",
    "get_history_config",
    "get_logging_config",
    "get_model_by_alias",
    "get_model_config",
    "get_notification_config",
    "get_provider_config",
    "get_storage_config",
    "get_tts_config",
    "get_turn_config",
    "history_key",
    "load_config",
    "resolve_config_path",
]
