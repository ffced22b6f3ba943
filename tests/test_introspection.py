from __future__ import annotations

from osc_actions import argument
from osc_actions.introspection import describe_all


def test_describe_all_lists_every_pattern_once(registry):
    registry.register("/a", handler=lambda: None, description="A")
    registry.register(
        "/b",
        handler=lambda x, y: None,
        arguments=[argument("x", "number"), argument("y", "boolean")],
    )

    assert describe_all(registry) == [
        {"name": "/a", "description": "A", "arguments": []},
        {"name": "/b", "description": "No description available", "arguments": ["number", "boolean"]},
    ]


def test_describe_all_ignores_dispatch_history(service):
    before = service.available_messages()
    service.dispatch("/transport/bpm", [130])
    service.dispatch("/unknown", [])
    service.dispatch("/evaluate", ["error('x')"])
    assert service.available_messages() == before

    by_name = {entry["name"]: entry for entry in before}
    assert len(by_name) == len(before)
    assert by_name["/evaluate"]["arguments"] == ["string"]
    assert by_name["/transport/start"]["arguments"] == []
