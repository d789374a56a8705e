"""KYC verification tool."""

from __future__ import annotations

from typing import Any

from src.krishi.core.errors import ToolInputError
from src.krishi.core.record_store import RecordStore

AADHAAR_LENGTH = 12


def is_valid_aadhaar(aadhaar_number: str) -> bool:
    """Placeholder identity rule: exactly 12 characters, no normalization."""
    return len(aadhaar_number) == AADHAAR_LENGTH


def verify_kyc(
    store: RecordStore,
    *,
    phone_number: str,
    name: str,
    aadhaar_number: str,
) -> dict[str, Any]:
    """Validate the Aadhaar number and upsert the user's KYC status."""
    if not phone_number.strip():
        raise ToolInputError("phoneNumber must be non-empty.", tool_name="kyc_verification")

    is_valid = is_valid_aadhaar(aadhaar_number)
    status = "VERIFIED" if is_valid else "FAILED"
    user = store.upsert_user_kyc(phone_number=phone_number, name=name, kyc_status=status)
    return {
        "ok": True,
        "status": status,
        "message": "KYC Verified" if is_valid else "Invalid Aadhaar",
        "phoneNumber": user.phone_number,
    }


class KycVerificationTool:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def __call__(self, *, phoneNumber: str, name: str, aadhaarNumber: str) -> dict[str, Any]:
        return verify_kyc(self._store, phone_number=phoneNumber, name=name, aadhaar_number=aadhaarNumber)
