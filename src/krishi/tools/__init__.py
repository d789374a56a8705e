"""Tool surface for Krishi-Mitra."""

from .lending import LENDING_TOOL_NAMES, create_lending_registry

__all__ = ["LENDING_TOOL_NAMES", "create_lending_registry"]
