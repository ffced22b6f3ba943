"""Message dispatch.

``dispatch`` always answers with a boolean and never raises: an unknown
pattern or a message with the wrong arguments is "not handled" (the host logs
it as REJECTED), and a handler that blows up is logged to stderr while the
message still counts as handled.
"""

from __future__ import annotations

import sys
import threading
import time
import traceback
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Iterable, List, Optional

from .messages import IncomingMessage, RuntimeArgument
from .registry import ActionRegistry
from .validator import validate

UNKNOWN_PATTERN = "unknown_pattern"
INVALID_ARGUMENTS = "invalid_arguments"


def _log(message: str) -> None:
    """Best-effort logging that never breaks stdio transport."""
    try:
        print(message, file=sys.stderr)
    except Exception:
        pass


@dataclass
class DispatchRejection:
    """Why a message was not handled. Diagnostic only."""

    pattern: str
    reason: str
    detail: str
    received_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.pattern,
            "reason": self.reason,
            "detail": self.detail,
            "received_at": self.received_at,
        }


class Dispatcher:
    """Routes incoming messages to registered action handlers."""

    def __init__(
        self,
        registry: ActionRegistry,
        log_rejections: bool = True,
        rejection_log_size: int = 500,
    ) -> None:
        self.registry = registry
        self.log_rejections = log_rejections
        self._rejections: Deque[DispatchRejection] = deque(maxlen=max(1, rejection_log_size))
        self._rejections_lock = threading.Lock()

    def dispatch(self, pattern: str, arguments: Iterable[Any] = ()) -> bool:
        """Process one message. Returns True when a handler was invoked."""
        try:
            message = IncomingMessage.from_pairs(pattern, arguments)
        except (TypeError, ValueError) as exc:
            self._reject(pattern, INVALID_ARGUMENTS, str(exc))
            return False
        return self.dispatch_message(message)

    def dispatch_message(self, message: IncomingMessage) -> bool:
        if not isinstance(message.pattern, str):
            self._reject(str(message.pattern), UNKNOWN_PATTERN, "pattern is not a string")
            return False

        action = self.registry.lookup(message.pattern)
        if action is None:
            self._reject(message.pattern, UNKNOWN_PATTERN, "no action registered for this pattern")
            return False

        # messages built by hand may carry plain values
        try:
            arguments = tuple(RuntimeArgument.coerce(item) for item in message.arguments)
        except (TypeError, ValueError) as exc:
            self._reject(message.pattern, INVALID_ARGUMENTS, str(exc))
            return False

        result = validate(action, arguments)
        if not result.matched:
            self._reject(message.pattern, result.reason or INVALID_ARGUMENTS, result.detail)
            return False

        try:
            action.handler(*result.values)
        except Exception as exc:  # handler bodies can raise anything
            _log(f"*** OSC action '{message.pattern}' failed: {type(exc).__name__}: {exc}")
            _log(traceback.format_exc().rstrip())
        return True

    def rejections(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Most recent rejections, oldest first."""
        with self._rejections_lock:
            items = list(self._rejections)
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return [item.to_dict() for item in items]

    def clear_rejections(self) -> int:
        with self._rejections_lock:
            count = len(self._rejections)
            self._rejections.clear()
            return count

    def _reject(self, pattern: str, reason: str, detail: str) -> None:
        rejection = DispatchRejection(
            pattern=pattern,
            reason=reason,
            detail=detail,
            received_at=time.time(),
        )
        with self._rejections_lock:
            self._rejections.append(rejection)
        if self.log_rejections:
            _log(f"REJECTED OSC message '{pattern}' ({reason}): {detail}")
