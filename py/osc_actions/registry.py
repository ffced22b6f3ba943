"""Action registration.

Actions are registered once, at startup, and the registry is frozen before the
service accepts traffic. Everything that can be checked about an action is
checked here so that typos in an action table abort initialization instead of
surfacing as silently rejected messages later.

Usage
─────
    registry = ActionRegistry()
    registry.register(
        "/transport/bpm",
        handler=set_bpm,
        description="Set the songs current BPM [32-999]",
        arguments=[argument("bpm", "number")],
    )
    registry.freeze()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from .errors import ConfigurationError
from .messages import ArgumentType

DEFAULT_DESCRIPTION = "No description available"


@dataclass(frozen=True)
class ArgumentSpec:
    """One positional parameter of an action."""

    name: str
    type: ArgumentType


@dataclass(frozen=True)
class ActionDescriptor:
    """A registered (pattern, arguments, handler) triple."""

    pattern: str
    handler: Callable[..., Any]
    description: str = DEFAULT_DESCRIPTION
    arguments: Tuple[ArgumentSpec, ...] = field(default_factory=tuple)

    @property
    def arity(self) -> int:
        return len(self.arguments)

    @property
    def argument_types(self) -> Tuple[str, ...]:
        return tuple(spec.type.value for spec in self.arguments)


def argument(name: str, type: Any) -> ArgumentSpec:  # noqa: A002
    """Define an action argument, e.g. ``argument("bpm", "number")``.

    ``name`` is only used when listing available messages. ``type`` is the
    expected value type (number, string or boolean), NOT the OSC type tag.
    """
    parsed = ArgumentType.parse(type)
    if parsed is None:
        raise ConfigurationError(
            f"unexpected argument type '{type}'. "
            "expected one of: number, string, boolean"
        )
    return ArgumentSpec(name=str(name), type=parsed)


class ActionRegistry:
    """Pattern → ActionDescriptor map with a one-way registration phase."""

    def __init__(self) -> None:
        self._actions: Dict[str, ActionDescriptor] = {}
        self._frozen = False

    # ── Registration ──────────────────────────────────────────────────── #

    def register(
        self,
        pattern: str,
        handler: Optional[Callable[..., Any]] = None,
        description: Optional[str] = None,
        arguments: Optional[Iterable[Any]] = None,
    ) -> ActionDescriptor:
        """Validate and insert one action. Raises ConfigurationError."""
        if self._frozen:
            raise ConfigurationError(
                f"OSC action '{pattern}': registry is frozen, "
                "actions can only be registered during startup"
            )

        if not (isinstance(pattern, str) and pattern.strip()):
            raise ConfigurationError(
                "An OSC action needs at least a 'pattern' and 'handler' function property."
            )
        if handler is None or not callable(handler):
            raise ConfigurationError(
                f"OSC action '{pattern}': An OSC action needs at least a "
                "'pattern' and 'handler' function property."
            )
        if description is not None and not isinstance(description, str):
            raise ConfigurationError(
                f"OSC action '{pattern}': OSC message description should not be "
                "specified or should be a string"
            )
        if arguments is not None and not isinstance(arguments, (list, tuple)):
            raise ConfigurationError(
                f"OSC action '{pattern}': OSC arguments should not be specified "
                "or should be a list"
            )

        specs = tuple(self._parse_argument(pattern, item) for item in (arguments or ()))

        if pattern in self._actions:
            raise ConfigurationError(f"OSC pattern '{pattern}' is already registered")

        descriptor = ActionDescriptor(
            pattern=pattern,
            handler=handler,
            description=description if description is not None else DEFAULT_DESCRIPTION,
            arguments=specs,
        )
        self._actions[pattern] = descriptor
        return descriptor

    def register_action(self, info: Mapping[str, Any]) -> ActionDescriptor:
        """Register from an ``{pattern, description?, arguments?, handler}`` mapping."""
        if not isinstance(info, Mapping):
            raise ConfigurationError("An OSC action must be described by a mapping")
        unknown = set(info) - {"pattern", "description", "arguments", "handler"}
        if unknown:
            raise ConfigurationError(
                f"OSC action '{info.get('pattern')}': unknown properties "
                f"{', '.join(sorted(unknown))}"
            )
        return self.register(
            info.get("pattern"),
            handler=info.get("handler"),
            description=info.get("description"),
            arguments=info.get("arguments"),
        )

    def freeze(self) -> None:
        """Close the registration phase. Irreversible."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ── Reads ─────────────────────────────────────────────────────────── #

    def lookup(self, pattern: str) -> Optional[ActionDescriptor]:
        return self._actions.get(pattern)

    def list_all(self) -> Tuple[ActionDescriptor, ...]:
        """Snapshot of all descriptors in registration order."""
        return tuple(self._actions.values())

    def __len__(self) -> int:
        return len(self._actions)

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._actions

    @staticmethod
    def _parse_argument(pattern: str, item: Any) -> ArgumentSpec:
        if isinstance(item, ArgumentSpec):
            name, type_ = item.name, item.type
        elif isinstance(item, Mapping):
            name, type_ = item.get("name", ""), item.get("type")
        else:
            raise ConfigurationError(
                f"OSC action '{pattern}': arguments must be created with "
                f"argument(name, type), got {type(item).__name__}"
            )

        parsed = ArgumentType.parse(type_)
        if parsed is None:
            raise ConfigurationError(
                f"OSC action '{pattern}': unexpected argument type '{type_}'. "
                "expected a value type (number, string or boolean)"
            )
        return ArgumentSpec(name=str(name), type=parsed)
