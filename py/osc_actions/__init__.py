"""Public exports for the OSC action service."""

from .errors import ConfigurationError, EvaluationError, OscActionError, SandboxViolation
from .host import DummyHost
from .messages import ArgumentType, IncomingMessage, RuntimeArgument
from .registry import ActionDescriptor, ActionRegistry, ArgumentSpec, argument
from .sandbox import EvaluationResult, SandboxedEvaluator
from .service import OscActionService, ServiceConfig

__all__ = [
    "ActionDescriptor",
    "ActionRegistry",
    "ArgumentSpec",
    "ArgumentType",
    "ConfigurationError",
    "DummyHost",
    "EvaluationError",
    "EvaluationResult",
    "IncomingMessage",
    "OscActionError",
    "OscActionService",
    "RuntimeArgument",
    "SandboxViolation",
    "SandboxedEvaluator",
    "ServiceConfig",
    "argument",
]
