"""Core record and loop schemas for loan-application turns."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

KycStatus = Literal["PENDING", "VERIFIED", "FAILED"]
LoanStatus = Literal["DRAFT", "SUBMITTED", "APPROVED", "REJECTED"]
Speaker = Literal["USER", "BOT"]

KYC_STATUSES = ("PENDING", "VERIFIED", "FAILED")
LOAN_STATUSES = ("DRAFT", "SUBMITTED", "APPROVED", "REJECTED")
SPEAKERS = ("USER", "BOT")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class User:
    phone_number: str
    name: str | None = None
    kyc_status: KycStatus = "PENDING"
    user_id: int | None = None
    created_at: str = field(default_factory=_utc_now_iso)

    def __post_init__(self) -> None:
        self.phone_number = (self.phone_number or "").strip()
        if not self.phone_number:
            raise ValueError("User.phone_number is required.")
        if self.name is not None:
            self.name = self.name.strip() or None
        if self.kyc_status not in KYC_STATUSES:
            raise ValueError("User.kyc_status is invalid.")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "phoneNumber": self.phone_number,
            "name": self.name,
            "kycStatus": self.kyc_status,
            "createdAt": self.created_at,
        }


@dataclass(slots=True)
class LoanApplication:
    """Persisted underwriting decision. Written once, never updated."""

    user_id: str
    status: LoanStatus = "DRAFT"
    amount_requested: float | None = None
    risk_score: float | None = None
    interest_rate: float | None = None
    agri_stack_data: dict[str, Any] = field(default_factory=dict)
    application_id: int | None = None
    created_at: str = field(default_factory=_utc_now_iso)
    updated_at: str = field(default_factory=_utc_now_iso)

    def __post_init__(self) -> None:
        if not str(self.user_id).strip():
            raise ValueError("LoanApplication.user_id must be non-empty.")
        if self.status not in LOAN_STATUSES:
            raise ValueError("LoanApplication.status is invalid.")
        if self.risk_score is not None and not 0 <= self.risk_score <= 100:
            raise ValueError("LoanApplication.risk_score must be within [0, 100].")
        if self.interest_rate is not None and self.status != "APPROVED":
            raise ValueError("LoanApplication.interest_rate is only allowed when status='APPROVED'.")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.application_id,
            "userId": self.user_id,
            "status": self.status,
            "amountRequested": self.amount_requested,
            "riskScore": self.risk_score,
            "interestRate": self.interest_rate,
            "agriStackData": self.agri_stack_data,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True, slots=True)
class ConversationLogEntry:
    user_id: str
    message_content: str
    speaker: Speaker
    timestamp: str = field(default_factory=_utc_now_iso)
    entry_id: int | None = None

    def __post_init__(self) -> None:
        if not str(self.user_id).strip():
            raise ValueError("ConversationLogEntry.user_id must be non-empty.")
        if not self.message_content:
            raise ValueError("ConversationLogEntry.message_content must be non-empty.")
        if self.speaker not in SPEAKERS:
            raise ValueError("ConversationLogEntry.speaker must be USER or BOT.")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.entry_id,
            "userId": self.user_id,
            "messageContent": self.message_content,
            "speaker": self.speaker,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class AgentAction:
    """Oracle asked to run a tool."""

    tool: str
    tool_input: str
    log: str


@dataclass(frozen=True, slots=True)
class AgentFinish:
    output: str
    log: str


@dataclass(frozen=True, slots=True)
class AgentStep:
    action: AgentAction
    observation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.action.tool,
            "tool_input": self.action.tool_input,
            "log": self.action.log,
            "observation": self.observation,
        }


@dataclass(frozen=True, slots=True)
class TurnResult:
    transcription: str
    response_text: str
    audio_url: str
    trace: dict[str, Any] = field(default_factory=dict)

    def to_response(self) -> dict[str, Any]:
        return {
            "success": True,
            "transcription": self.transcription,
            "response": self.response_text,
            "audioUrl": self.audio_url,
        }
