"""Runtime message model.

The transport layer hands us a pattern string (without the host prefix) and
an ordered list of ``(type tag, value)`` pairs. Each pair becomes a
RuntimeArgument whose ``kind`` is derived from the OSC 1.0 type tag, so the
validator never has to guess from the Python value alone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional, Tuple, Union


class ArgumentType(str, Enum):
    """Types an action argument may be registered with."""

    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"

    @classmethod
    def parse(cls, value: Any) -> Optional["ArgumentType"]:
        """Return the matching member, or None for anything unsupported."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return None
        return None


# Runtime-only kind for OSC nil/impulse values. Never a valid registered type.
NIL = "nil"

# ── OSC type tags ──────────────────────────────────────────────────────── #

_TAG_KINDS = {
    "i": ArgumentType.NUMBER,   # int32
    "h": ArgumentType.NUMBER,   # int64
    "f": ArgumentType.NUMBER,   # float32
    "d": ArgumentType.NUMBER,   # float64
    "t": ArgumentType.NUMBER,   # timetag
    "s": ArgumentType.STRING,
    "S": ArgumentType.STRING,   # symbol
    "c": ArgumentType.STRING,   # ascii char
    "T": ArgumentType.BOOLEAN,
    "F": ArgumentType.BOOLEAN,
    "N": NIL,
    "I": NIL,                   # impulse
}

_INT32_MIN = -(2 ** 31)
_INT32_MAX = 2 ** 31 - 1

Kind = Union[ArgumentType, str, None]


def kind_for_tag(tag: str) -> Kind:
    """Map an OSC type tag to an argument kind. Unknown tags map to None."""
    return _TAG_KINDS.get(tag)


def tag_for_value(value: Any) -> str:
    """Infer an OSC type tag from a plain Python value."""
    if value is None:
        return "N"
    # bool is an int subclass, check it first
    if isinstance(value, bool):
        return "T" if value else "F"
    if isinstance(value, int):
        return "i" if _INT32_MIN <= value <= _INT32_MAX else "h"
    if isinstance(value, float):
        return "f"
    if isinstance(value, str):
        return "s"
    if isinstance(value, (bytes, bytearray)):
        return "b"
    raise TypeError(f"cannot infer an OSC type tag for {type(value).__name__}")


def _value_matches_kind(kind: Kind, value: Any) -> bool:
    if kind is ArgumentType.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if kind is ArgumentType.STRING:
        return isinstance(value, str)
    if kind is ArgumentType.BOOLEAN:
        return isinstance(value, bool)
    if kind == NIL:
        return value is None
    return True


@dataclass(frozen=True)
class RuntimeArgument:
    """One decoded OSC argument: its type tag and its value."""

    tag: str
    value: Any = None

    @property
    def kind(self) -> Kind:
        """Kind derived from the tag. None when the tag is unsupported or
        the value does not agree with it."""
        kind = kind_for_tag(self.tag)
        if kind is None or not _value_matches_kind(kind, self.value):
            return None
        return kind

    @classmethod
    def from_value(cls, value: Any) -> "RuntimeArgument":
        return cls(tag=tag_for_value(value), value=value)

    @classmethod
    def coerce(cls, item: Any) -> "RuntimeArgument":
        """Accept a RuntimeArgument, a ``(tag, value)`` pair, a
        ``{"tag": ..., "value": ...}`` mapping, or a plain value."""
        if isinstance(item, cls):
            return item
        if isinstance(item, dict) and "tag" in item:
            return cls(tag=str(item["tag"]), value=item.get("value"))
        if (
            isinstance(item, tuple)
            and len(item) == 2
            and isinstance(item[0], str)
            and len(item[0]) == 1
        ):
            return cls(tag=item[0], value=item[1])
        return cls.from_value(item)

    def to_dict(self) -> dict:
        return {"tag": self.tag, "value": self.value}


@dataclass(frozen=True)
class IncomingMessage:
    """A decoded inbound message. Transient, one per dispatch call."""

    pattern: str
    arguments: Tuple[RuntimeArgument, ...] = field(default_factory=tuple)

    @classmethod
    def from_pairs(cls, pattern: str, pairs: Iterable[Any] = ()) -> "IncomingMessage":
        return cls(
            pattern=pattern,
            arguments=tuple(RuntimeArgument.coerce(item) for item in pairs),
        )
