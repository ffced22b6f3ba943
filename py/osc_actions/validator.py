"""Arity and positional type matching for incoming arguments."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Tuple

from .messages import ArgumentType, RuntimeArgument
from .registry import ActionDescriptor

ARITY_MISMATCH = "arity_mismatch"
TYPE_MISMATCH = "type_mismatch"


@dataclass(frozen=True)
class ValidationResult:
    matched: bool
    values: Tuple[Any, ...] = field(default_factory=tuple)
    reason: Optional[str] = None
    index: Optional[int] = None
    detail: str = ""

    def __bool__(self) -> bool:
        return self.matched


def validate(descriptor: ActionDescriptor, arguments: Sequence[RuntimeArgument]) -> ValidationResult:
    """Match runtime arguments against an action's argument specs.

    No implicit coercion: a numeric string never satisfies a number argument
    and a boolean is never a number. Stops at the first mismatching position.
    """
    expected = descriptor.arguments
    if len(arguments) != len(expected):
        return ValidationResult(
            matched=False,
            reason=ARITY_MISMATCH,
            detail=f"expected {len(expected)} argument(s), got {len(arguments)}",
        )

    values = []
    for index, (spec, arg) in enumerate(zip(expected, arguments)):
        kind = arg.kind
        if kind != spec.type:
            got = kind.value if isinstance(kind, ArgumentType) else (kind or f"unsupported tag '{arg.tag}'")
            return ValidationResult(
                matched=False,
                reason=TYPE_MISMATCH,
                index=index,
                detail=f"argument {index + 1} '{spec.name}' expects {spec.type.value}, got {got}",
            )
        values.append(arg.value)

    return ValidationResult(matched=True, values=tuple(values))
