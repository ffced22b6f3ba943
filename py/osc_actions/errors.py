"""Error types raised by the OSC action service."""

from __future__ import annotations


class OscActionError(Exception):
    """Base class for all osc_actions errors."""


class ConfigurationError(OscActionError):
    """Bad action registration. Fatal at startup, never ignored."""


class EvaluationError(OscActionError):
    """Raised by ``error()`` from inside a sandboxed expression."""


class SandboxViolation(OscActionError):
    """Expression uses a construct or name outside the sandbox capability set."""

    def __init__(self, message: str, lineno: int = 0):
        super().__init__(message)
        self.lineno = lineno

    def __str__(self) -> str:
        base = super().__str__()
        if self.lineno:
            return f"{base} (line {self.lineno})"
        return base
