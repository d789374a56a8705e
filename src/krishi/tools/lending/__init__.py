"""Lending tools exposed to the reasoning loop."""

from .agri_stack import HttpLandRegistry, LandRegistry, SimulatedLandRegistry, lookup_land_record
from .kyc import is_valid_aadhaar, verify_kyc
from .registry import LENDING_TOOL_NAMES, create_lending_registry
from .scoring import compute_credit_score, credit_scoring
from .underwriting import decide, underwrite

__all__ = [
    "HttpLandRegistry",
    "LENDING_TOOL_NAMES",
    "LandRegistry",
    "SimulatedLandRegistry",
    "compute_credit_score",
    "create_lending_registry",
    "credit_scoring",
    "decide",
    "is_valid_aadhaar",
    "lookup_land_record",
    "underwrite",
    "verify_kyc",
]
