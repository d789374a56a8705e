"""Underwriting decision tool: approve/reject and persist the application."""

from __future__ import annotations

import logging
from typing import Any

from src.krishi.core.agent_types import LoanApplication
from src.krishi.core.errors import ToolInputError
from src.krishi.core.record_store import RecordStore

logger = logging.getLogger(__name__)

APPROVAL_THRESHOLD = 60
APPROVED_INTEREST_RATE = 8.5
DEFAULT_AMOUNT_REQUESTED = 50000

APPROVED_MESSAGE = "Loan Approved! Interest Rate: {rate}%. Funds will be disbursed shortly."
REJECTED_MESSAGE = "Loan Rejected. Sorry, your credit score or land holding is insufficient at this time."


def decide(score: float) -> tuple[str, float | None]:
    """Approve strictly above the threshold."""
    if score > APPROVAL_THRESHOLD:
        return "APPROVED", APPROVED_INTEREST_RATE
    return "REJECTED", None


def underwrite(
    store: RecordStore,
    *,
    score: float,
    user_id: str,
    land_data: Any = None,
) -> dict[str, Any]:
    if not 0 <= score <= 100:
        raise ToolInputError("score must be within [0, 100].", tool_name="underwriting_decision")
    if not str(user_id).strip():
        raise ToolInputError("userId must be non-empty.", tool_name="underwriting_decision")

    status, interest_rate = decide(score)
    if isinstance(land_data, dict):
        agri_data = land_data
    elif land_data is None:
        agri_data = {}
    else:
        agri_data = {"value": land_data}

    application = store.create_loan_application(
        LoanApplication(
            user_id=str(user_id).strip(),
            status=status,  # type: ignore[arg-type]
            amount_requested=DEFAULT_AMOUNT_REQUESTED,
            risk_score=score,
            interest_rate=interest_rate,
            agri_stack_data=agri_data,
        )
    )
    logger.info(
        "underwriting decision recorded",
        extra={"user_id": application.user_id, "status": status, "risk_score": score},
    )

    message = APPROVED_MESSAGE.format(rate=interest_rate) if status == "APPROVED" else REJECTED_MESSAGE
    return {
        "ok": True,
        "status": status,
        "interestRate": interest_rate,
        "applicationId": application.application_id,
        "message": message,
    }


class UnderwritingDecisionTool:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def __call__(self, *, score: float, userId: str, landData: Any = None) -> dict[str, Any]:
        return underwrite(self._store, score=float(score), user_id=userId, land_data=landData)
