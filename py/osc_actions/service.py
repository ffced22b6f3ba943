"""Core OSC action service: registration phase, dispatch and evaluation."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .actions import register_default_actions
from .dispatcher import Dispatcher
from .errors import ConfigurationError
from .host import BPM_RANGE, LPB_RANGE
from .introspection import describe_all
from .registry import ActionDescriptor, ActionRegistry
from .sandbox import EvaluationResult, SandboxedEvaluator


def _log(message: str) -> None:
    """Best-effort logging that never breaks stdio transport."""
    try:
        print(message, file=sys.stderr)
    except Exception:
        pass


@dataclass
class ServiceConfig:
    """Runtime settings for the OSC action service."""

    server_name: str = "osc-actions"
    register_defaults: bool = True
    log_rejections: bool = True
    rejection_log_size: int = 500
    bpm_range: Tuple[float, float] = BPM_RANGE
    lpb_range: Tuple[float, float] = LPB_RANGE
    extra_capabilities: Dict[str, Any] = field(default_factory=dict)


class OscActionService:
    """Owns the action registry and wires dispatcher and evaluator to it.

    Actions may only be added between construction and ``start()``; after
    that the registry is frozen and shared read-only by every dispatch.
    """

    def __init__(self, host: Any, config: Optional[ServiceConfig] = None):
        self.config = config or ServiceConfig()
        self.host = host
        self.registry = ActionRegistry()
        self.evaluator = SandboxedEvaluator(host, extra_capabilities=self.config.extra_capabilities)
        self.dispatcher = Dispatcher(
            self.registry,
            log_rejections=self.config.log_rejections,
            rejection_log_size=self.config.rejection_log_size,
        )
        self.running = False
        self._warned_not_started = False

    # ── Registration phase ────────────────────────────────────────────── #

    def register_action(
        self,
        info: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> ActionDescriptor:
        """Register one action from a mapping or keyword arguments."""
        if info is not None and kwargs:
            raise ConfigurationError("pass either an action mapping or keyword arguments, not both")
        return self.registry.register_action(info if info is not None else kwargs)

    def action(
        self,
        pattern: str,
        description: Optional[str] = None,
        arguments: Optional[Iterable[Any]] = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of ``register_action``."""

        def decorator(handler: Callable[..., Any]) -> Callable[..., Any]:
            self.registry.register(
                pattern,
                handler=handler,
                description=description,
                arguments=list(arguments) if arguments is not None else None,
            )
            return handler

        return decorator

    # ── Lifecycle ─────────────────────────────────────────────────────── #

    def start(self) -> None:
        """Register defaults, close the registration phase and accept messages."""
        if self.running:
            return

        if self.config.register_defaults and not self.registry.frozen:
            register_default_actions(
                self.registry,
                self.host,
                self.evaluator,
                bpm_range=self.config.bpm_range,
                lpb_range=self.config.lpb_range,
            )
        self.registry.freeze()
        self.running = True

        _log("=" * 50)
        _log("OSC ACTIONS - Ready")
        _log("=" * 50)
        _log(f"Registered actions: {len(self.registry)}")

    def stop(self) -> None:
        self.running = False
        _log("OSC ACTIONS - Stopped")

    def __enter__(self) -> "OscActionService":
        self.start()
        return self

    def __exit__(self, *_: Any) -> None:
        self.stop()

    # ── Messages ──────────────────────────────────────────────────────── #

    def dispatch(self, pattern: str, arguments: Iterable[Any] = ()) -> bool:
        """Process one message. Returns the handled flag, never raises."""
        if not self.running and not self._warned_not_started:
            _log("WARNING: dispatching before start(); registry is still open")
            self._warned_not_started = True
        return self.dispatcher.dispatch(pattern, arguments)

    def evaluate(self, expression: str) -> EvaluationResult:
        return self.evaluator.evaluate(expression)

    def available_messages(self) -> List[Dict[str, Any]]:
        return describe_all(self.registry)

    def rejections(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.dispatcher.rejections(limit)
