from __future__ import annotations

import pytest

from osc_actions import ArgumentSpec, ArgumentType, ConfigurationError, argument
from osc_actions.registry import DEFAULT_DESCRIPTION


def _noop(*_args):
    return None


def test_register_fills_defaults(registry):
    action = registry.register("/ping", handler=_noop)
    assert action.description == DEFAULT_DESCRIPTION
    assert action.arguments == ()
    assert registry.lookup("/ping") is action


def test_register_parses_argument_types(registry):
    action = registry.register(
        "/mix",
        handler=_noop,
        arguments=[argument("level", "number"), {"name": "label", "type": "string"}],
    )
    assert action.arguments == (
        ArgumentSpec("level", ArgumentType.NUMBER),
        ArgumentSpec("label", ArgumentType.STRING),
    )
    assert action.argument_types == ("number", "string")


def test_duplicate_pattern_keeps_first_registration(registry):
    def first():
        return "first"

    registry.register("/dup", handler=first)
    with pytest.raises(ConfigurationError, match="already registered"):
        registry.register("/dup", handler=_noop, description="second")

    assert registry.lookup("/dup").handler is first
    assert len(registry) == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"pattern": "/x", "handler": None},
        {"pattern": "/x", "handler": "not callable"},
        {"pattern": "", "handler": _noop},
        {"pattern": None, "handler": _noop},
        {"pattern": "/x", "handler": _noop, "description": 42},
        {"pattern": "/x", "handler": _noop, "arguments": "number"},
        {"pattern": "/x", "handler": _noop, "arguments": [{"name": "a", "type": "table"}]},
        {"pattern": "/x", "handler": _noop, "arguments": [{"name": "a"}]},
        {"pattern": "/x", "handler": _noop, "arguments": [("a", "number")]},
    ],
)
def test_bad_registrations_fail_fast(registry, kwargs):
    with pytest.raises(ConfigurationError):
        registry.register_action(kwargs)
    assert len(registry) == 0


def test_argument_helper_rejects_unknown_type():
    with pytest.raises(ConfigurationError, match="unexpected argument type"):
        argument("x", "nil")


def test_register_action_rejects_unknown_properties(registry):
    with pytest.raises(ConfigurationError, match="unknown properties"):
        registry.register_action({"pattern": "/x", "handler": _noop, "handlr": _noop})


def test_frozen_registry_rejects_registration(registry):
    registry.register("/a", handler=_noop)
    registry.freeze()
    with pytest.raises(ConfigurationError, match="frozen"):
        registry.register("/b", handler=_noop)
    assert "/b" not in registry
    assert registry.frozen


def test_list_all_keeps_registration_order(registry):
    for pattern in ("/c", "/a", "/b"):
        registry.register(pattern, handler=_noop)
    assert [a.pattern for a in registry.list_all()] == ["/c", "/a", "/b"]
    assert registry.lookup("/missing") is None
