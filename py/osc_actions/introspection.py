"""Listing of available messages for the host's preferences pane and other tools."""

from __future__ import annotations

from typing import Any, Dict, List

from .registry import ActionRegistry


def describe_all(registry: ActionRegistry) -> List[Dict[str, Any]]:
    """One entry per registered pattern, in registration order."""
    return [
        {
            "name": action.pattern,
            "description": action.description,
            "arguments": list(action.argument_types),
        }
        for action in registry.list_all()
    ]
