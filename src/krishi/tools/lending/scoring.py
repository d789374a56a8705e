"""Deterministic credit scoring."""

from __future__ import annotations

from typing import Any

from src.krishi.core.errors import ToolInputError

KYC_VERIFIED_POINTS = 50
POINTS_PER_ACRE = 10
HIGH_YIELD_POINTS = 20
MAX_SCORE = 100


def compute_credit_score(*, acres: float, yield_status: str, kyc_status: str) -> float:
    if acres < 0:
        raise ToolInputError("acres must be >= 0.", tool_name="credit_scoring")
    score = 0.0
    if kyc_status == "VERIFIED":
        score += KYC_VERIFIED_POINTS
    score += acres * POINTS_PER_ACRE
    if yield_status == "high":
        score += HIGH_YIELD_POINTS
    return min(score, MAX_SCORE)


def credit_scoring(*, acres: float, yieldStatus: str, kycStatus: str) -> dict[str, Any]:
    score = compute_credit_score(acres=float(acres), yield_status=yieldStatus, kyc_status=kycStatus)
    return {"ok": True, "score": score}
