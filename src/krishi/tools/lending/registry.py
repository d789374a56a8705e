"""Build the frozen registry of lending tools."""

from __future__ import annotations

from src.krishi.core.record_store import RecordStore
from src.krishi.core.tool_registry import ToolRegistry, ToolSpec

from .agri_stack import AgriStackLookupTool, LandRegistry, SimulatedLandRegistry
from .kyc import KycVerificationTool
from .scoring import credit_scoring
from .underwriting import UnderwritingDecisionTool

LENDING_TOOL_NAMES = (
    "kyc_verification",
    "agri_stack_lookup",
    "credit_scoring",
    "underwriting_decision",
)


def create_lending_registry(store: RecordStore, *, land_registry: LandRegistry | None = None) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(
        ToolSpec(
            name="kyc_verification",
            handler=KycVerificationTool(store),
            category="lending",
            description="Verifies KYC details like Name and Aadhaar number. Updates the user's KYC status.",
            parameters={
                "phoneNumber": {"type": "string", "required": True},
                "name": {"type": "string", "required": True},
                "aadhaarNumber": {"type": "string", "required": True},
            },
        )
    )
    registry.register(
        ToolSpec(
            name="agri_stack_lookup",
            handler=AgriStackLookupTool(land_registry or SimulatedLandRegistry()),
            category="lending",
            description="Fetches land records (acres, yieldClass, crop) from AgriStack based on plot number.",
            parameters={
                "plotNumber": {"type": "string", "required": True},
                "state": {"type": "string", "required": False},
            },
        )
    )
    registry.register(
        ToolSpec(
            name="credit_scoring",
            handler=credit_scoring,
            category="lending",
            description="Calculates a 0-100 risk score from land acres, yield status and KYC status.",
            parameters={
                "acres": {"type": "number", "required": True},
                "yieldStatus": {"type": "string", "required": True},
                "kycStatus": {"type": "string", "required": True},
            },
        )
    )
    registry.register(
        ToolSpec(
            name="underwriting_decision",
            handler=UnderwritingDecisionTool(store),
            category="lending",
            description="Makes the final loan decision from the risk score and records the application.",
            parameters={
                "score": {"type": "number", "required": True},
                "userId": {"type": "string", "required": True},
                "landData": {"type": "any", "required": False},
            },
            return_direct=True,
        )
    )
    return registry.freeze()
