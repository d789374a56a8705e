"""AgriStack land-record lookup tool and registry clients."""

from __future__ import annotations

from time import sleep
from typing import Any, Callable, Protocol

from src.krishi.core.errors import ExternalServiceError
from src.krishi.core.providers.http_json import post_json

NOT_FOUND_PLOT_NUMBER = "000"


class LandRegistry(Protocol):
    def lookup(self, plot_number: str, state: str | None) -> dict[str, Any] | None: ...


class SimulatedLandRegistry:
    """Stand-in for the AgriStack API: fixed attributes, plot "000" is unknown."""

    def __init__(
        self,
        *,
        latency_sec: float = 0.5,
        default_state: str = "MH",
        sleeper: Callable[[float], None] = sleep,
    ) -> None:
        self._latency_sec = max(0.0, float(latency_sec))
        self._default_state = default_state
        self._sleep = sleeper

    def lookup(self, plot_number: str, state: str | None) -> dict[str, Any] | None:
        if self._latency_sec > 0:
            self._sleep(self._latency_sec)
        if plot_number == NOT_FOUND_PLOT_NUMBER:
            return None
        return {
            "acres": 2.5,
            "yieldClass": "high",
            "crop": "Wheat",
            "state": state or self._default_state,
            "ownerValidated": True,
        }


class HttpLandRegistry:
    """Delegate lookups to a land-registry HTTP endpoint (`POST <base_url>/lookup`)."""

    def __init__(self, *, base_url: str, timeout_sec: float = 5.0, default_state: str = "MH") -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_sec = float(timeout_sec)
        self._default_state = default_state

    def lookup(self, plot_number: str, state: str | None) -> dict[str, Any] | None:
        if plot_number == NOT_FOUND_PLOT_NUMBER:
            return None
        try:
            body = post_json(
                f"{self._base_url}/lookup",
                headers={},
                payload={"plotNumber": plot_number, "state": state or self._default_state},
                timeout_sec=self._timeout_sec,
                service="agri_stack",
            )
        except ExternalServiceError as exc:
            if exc.status_code == 404:
                return None
            raise
        record = body.get("record") if isinstance(body.get("record"), dict) else body
        try:
            return {
                "acres": float(record["acres"]),
                "yieldClass": str(record.get("yieldClass") or record.get("yield") or "unknown"),
                "crop": record.get("crop"),
                "state": record.get("state") or state or self._default_state,
                "ownerValidated": bool(record.get("ownerValidated", False)),
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise ExternalServiceError("agri_stack returned a malformed land record.", service="agri_stack") from exc


def lookup_land_record(registry: LandRegistry, *, plot_number: str, state: str | None) -> dict[str, Any]:
    """Return land attributes for a plot; a missing plot is a normal, not-found result."""
    record = registry.lookup(plot_number.strip(), (state or "").strip() or None)
    if record is None:
        return {"ok": True, "found": False, "plotNumber": plot_number, "error": "Plot not found"}
    return {"ok": True, "found": True, "plotNumber": plot_number, **record}


class AgriStackLookupTool:
    def __init__(self, registry: LandRegistry) -> None:
        self._registry = registry

    def __call__(self, *, plotNumber: str, state: str | None = None) -> dict[str, Any]:
        return lookup_land_record(self._registry, plot_number=plotNumber, state=state)
