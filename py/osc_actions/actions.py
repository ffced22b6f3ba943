"""Default OSC actions.

Patterns are registered without the host's address prefix; the transport
layer strips it before dispatch. Some valid messages as sent by a client:

    /renoise/transport/start
    /renoise/transport/bpm 140.0
    /renoise/evaluate "song().transport.lpb = 8"
"""

from __future__ import annotations

import sys
from typing import Any, Tuple

from .host import BPM_RANGE, LPB_RANGE, PLAYMODE_RESTART_PATTERN
from .registry import ActionRegistry, argument
from .sandbox import SandboxedEvaluator


def _log(message: str) -> None:
    """Best-effort logging that never breaks stdio transport."""
    try:
        print(message, file=sys.stderr)
    except Exception:
        pass


def clamp_value(value: float, min_value: float, max_value: float) -> float:
    return min(max_value, max(value, min_value))


def register_default_actions(
    registry: ActionRegistry,
    host: Any,
    evaluator: SandboxedEvaluator,
    bpm_range: Tuple[float, float] = BPM_RANGE,
    lpb_range: Tuple[float, float] = LPB_RANGE,
) -> None:
    """Register the built-in action set on ``registry``."""

    # ── evaluate ──────────────────────────────────────────────────────── #

    def evaluate(expression: str) -> None:
        _log(f"OSC Message: evaluating '{expression}'")
        result = evaluator.evaluate(expression)
        if not result.success:
            _log(f"*** expression failed: '{result.diagnostic}'")

    registry.register(
        "/evaluate",
        handler=evaluate,
        description=(
            "Evaluate a custom expression, like e.g.\n"
            "'song().transport.bpm = 234'"
        ),
        arguments=[argument("expression", "string")],
    )

    # ── transport ─────────────────────────────────────────────────────── #

    def transport_start() -> None:
        play_mode = getattr(host, "PLAYMODE_RESTART_PATTERN", PLAYMODE_RESTART_PATTERN)
        host.song().transport.start(play_mode)

    def transport_stop() -> None:
        host.song().transport.stop()

    def transport_bpm(bpm: float) -> None:
        host.song().transport.bpm = clamp_value(bpm, *bpm_range)

    def transport_lpb(lpb: float) -> None:
        host.song().transport.lpb = int(clamp_value(lpb, *lpb_range))

    registry.register(
        "/transport/start",
        handler=transport_start,
        description="Start playback or restart playing the current pattern.",
    )
    registry.register(
        "/transport/stop",
        handler=transport_stop,
        description="Stop playback.",
    )
    registry.register(
        "/transport/bpm",
        handler=transport_bpm,
        description=f"Set the songs current BPM [{bpm_range[0]}-{bpm_range[1]}]",
        arguments=[argument("bpm", "number")],
    )
    registry.register(
        "/transport/lpb",
        handler=transport_lpb,
        description=f"Set the songs current Lines Per Beat [{lpb_range[0]}-{lpb_range[1]}]",
        arguments=[argument("lpb", "number")],
    )
