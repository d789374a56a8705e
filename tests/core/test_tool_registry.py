import pytest

from src.krishi.core.errors import ExternalServiceError
from src.krishi.core.tool_registry import ToolRegistry, ToolSpec


def _echo(*, text: str, times: int = 1):
    return {"ok": True, "echo": text * times}


def _registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(
        ToolSpec(
            name="echo",
            handler=_echo,
            category="test",
            description="Repeat text.",
            parameters={
                "text": {"type": "string", "required": True},
                "times": {"type": "integer", "required": False},
            },
        )
    )
    return registry


def test_register_rejects_unknown_parameter_type():
    registry = ToolRegistry()
    with pytest.raises(ValueError, match="unsupported type"):
        registry.register(
            ToolSpec(name="bad", handler=_echo, category="test", description="", parameters={"text": {"type": "str"}})
        )


def test_register_rejects_parameter_the_handler_does_not_accept():
    registry = ToolRegistry()
    with pytest.raises(ValueError, match="does not accept"):
        registry.register(
            ToolSpec(
                name="bad",
                handler=_echo,
                category="test",
                description="",
                parameters={"text": {"type": "string"}, "colour": {"type": "string"}},
            )
        )


def test_register_rejects_duplicates_and_frozen_registry():
    registry = _registry()
    with pytest.raises(ValueError, match="already registered"):
        registry.register(ToolSpec(name="echo", handler=_echo, category="test", description=""))

    registry.freeze()
    assert registry.frozen
    with pytest.raises(RuntimeError, match="frozen"):
        registry.register(ToolSpec(name="other", handler=_echo, category="test", description=""))


def test_invoke_validates_and_drops_undeclared_keys():
    registry = _registry()
    result = registry.invoke("echo", text="ab", times=2, unexpected="x")
    assert result == {"ok": True, "echo": "abab"}


def test_invoke_returns_input_error_result():
    registry = _registry()
    missing = registry.invoke("echo")
    assert not missing["ok"]
    assert missing["error_kind"] == "tool_input_error"
    assert "`text` is required" in missing["error"]

    wrong_type = registry.invoke("echo", text="a", times="two")
    assert not wrong_type["ok"]
    assert "must be of type integer" in wrong_type["error"]


def test_invoke_unknown_tool_lists_available_tools():
    result = _registry().invoke("does_not_exist")
    assert not result["ok"]
    assert result["error_kind"] == "unknown_tool"
    assert "Unknown tool `does_not_exist`." in result["error"]
    assert "echo" in result["error"]


def test_number_parameters_accept_numeric_strings():
    registry = ToolRegistry()
    registry.register(
        ToolSpec(
            name="double",
            handler=lambda *, value: {"ok": True, "value": value * 2},
            category="test",
            description="",
            parameters={"value": {"type": "number", "required": True}},
        )
    )
    assert registry.invoke("double", value="2.5")["value"] == 5.0
    assert not registry.invoke("double", value=True)["ok"]


def test_handler_service_errors_propagate():
    def _boom(**kwargs):
        raise ExternalServiceError("down", service="x")

    registry = ToolRegistry()
    registry.register(ToolSpec(name="boom", handler=_boom, category="test", description=""))
    with pytest.raises(ExternalServiceError):
        registry.invoke("boom")


def test_catalog_lists_tools_in_registration_order():
    registry = _registry()
    registry.register(ToolSpec(name="zeta", handler=_echo, category="test", description="Last."))
    assert registry.names() == ["echo", "zeta"]
    catalog = registry.render_catalog()
    assert catalog.splitlines()[0] == "echo(text: string, times: integer (optional)) - Repeat text."
    assert catalog.splitlines()[1] == "zeta() - Last."


def test_invoke_passes_name_argument_through_to_handler():
    def _greet(*, name: str):
        return {"ok": True, "greeting": f"Namaste {name}"}

    registry = ToolRegistry()
    registry.register(
        ToolSpec(
            name="greet",
            handler=_greet,
            category="test",
            description="Greet a farmer.",
            parameters={"name": {"type": "string", "required": True}},
        )
    )
    assert registry.invoke("greet", name="Ramesh") == {"ok": True, "greeting": "Namaste Ramesh"}
