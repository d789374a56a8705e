"""Closed registry of callable lending tools."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from .errors import ToolInputError

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., dict[str, Any]]

_TYPE_CHECKS: dict[str, Callable[[Any], bool]] = {
    "string": lambda value: isinstance(value, str),
    "number": lambda value: isinstance(value, (int, float)) and not isinstance(value, bool),
    "integer": lambda value: isinstance(value, int) and not isinstance(value, bool),
    "boolean": lambda value: isinstance(value, bool),
    "object": lambda value: isinstance(value, dict),
    "any": lambda value: True,
}


@dataclass(frozen=True)
class ToolSpec:
    """Declarative metadata + callable for one tool.

    `return_direct` tools end the reasoning loop: their `message` becomes the
    final technical answer.
    """

    name: str
    handler: ToolHandler
    category: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)
    return_direct: bool = False


def _validate_spec(spec: ToolSpec) -> None:
    if not spec.name or not isinstance(spec.name, str):
        raise ValueError("Tool name must be a non-empty string.")
    if not callable(spec.handler):
        raise ValueError(f"Tool `{spec.name}` handler is not callable.")

    signature = inspect.signature(spec.handler)
    accepts_var_kw = any(p.kind is inspect.Parameter.VAR_KEYWORD for p in signature.parameters.values())
    for param_name, schema in spec.parameters.items():
        if not isinstance(schema, dict):
            raise ValueError(f"Tool `{spec.name}` parameter `{param_name}` schema must be an object.")
        param_type = schema.get("type")
        if param_type not in _TYPE_CHECKS:
            raise ValueError(f"Tool `{spec.name}` parameter `{param_name}` has unsupported type `{param_type}`.")
        if not accepts_var_kw and param_name not in signature.parameters:
            raise ValueError(f"Tool `{spec.name}` handler does not accept parameter `{param_name}`.")


def validate_tool_input(spec: ToolSpec, arguments: dict[str, Any]) -> dict[str, Any]:
    """Check required/typed parameters and drop undeclared keys."""
    if not isinstance(arguments, dict):
        raise ToolInputError(f"Input for `{spec.name}` must be a JSON object.", tool_name=spec.name)

    cleaned: dict[str, Any] = {}
    for param_name, schema in spec.parameters.items():
        if param_name not in arguments or arguments[param_name] is None:
            if schema.get("required"):
                raise ToolInputError(f"`{param_name}` is required for `{spec.name}`.", tool_name=spec.name)
            continue
        value = arguments[param_name]
        param_type = schema.get("type", "any")
        if param_type == "number" and isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                pass
        if not _TYPE_CHECKS[param_type](value):
            raise ToolInputError(
                f"`{param_name}` for `{spec.name}` must be of type {param_type}.",
                tool_name=spec.name,
            )
        cleaned[param_name] = value
    return cleaned


class ToolRegistry:
    """In-memory registry with deterministic lookup and invocation.

    Read-only once `freeze()` has been called.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}
        self._frozen = False

    def register(self, spec: ToolSpec) -> None:
        if self._frozen:
            raise RuntimeError("Tool registry is frozen.")
        _validate_spec(spec)
        if spec.name in self._tools:
            raise ValueError(f"Tool `{spec.name}` is already registered.")
        self._tools[spec.name] = spec

    def freeze(self) -> "ToolRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> ToolSpec:
        try:
            return self._tools[name]
        except KeyError as exc:
            raise KeyError(f"Unknown tool `{name}`.") from exc

    def has(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> list[str]:
        return list(self._tools)

    def list_specs(self) -> list[ToolSpec]:
        return [self._tools[name] for name in self._tools]

    def render_catalog(self) -> str:
        """Plain-text tool description block for the reasoning prompt."""
        lines: list[str] = []
        for spec in self.list_specs():
            args = ", ".join(
                f"{param}: {schema.get('type', 'any')}{'' if schema.get('required') else ' (optional)'}"
                for param, schema in spec.parameters.items()
            )
            lines.append(f"{spec.name}({args}) - {spec.description}")
        return "\n".join(lines)

    def invoke(self, name: str, /, **kwargs: Any) -> dict[str, Any]:
        """Run a tool. Unknown names and bad input come back as `ok: False` results.

        Errors other than `ToolInputError` (persistence, external services)
        propagate to the caller.
        """
        try:
            spec = self.get(name)
        except KeyError as exc:
            return {
                "ok": False,
                "tool_name": name,
                "error": f"{exc.args[0]} Available tools: {', '.join(self.names())}.",
                "error_kind": "unknown_tool",
                "source": "tool_registry",
            }

        try:
            call_kwargs = validate_tool_input(spec, kwargs)
            result = spec.handler(**call_kwargs)
        except ToolInputError as exc:
            logger.info("tool input rejected", extra={"tool_name": name, "error": str(exc)})
            return {
                "ok": False,
                "tool_name": name,
                "error": f"Invalid arguments for `{name}`: {exc}",
                "error_kind": ToolInputError.kind,
                "source": "tool_registry",
            }

        if isinstance(result, dict):
            return result
        return {
            "ok": False,
            "tool_name": name,
            "error": f"Tool `{name}` returned non-dict output.",
            "source": "tool_registry",
        }
