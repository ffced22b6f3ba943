"""Host control surface.

The real surface belongs to the host application and is handed to the
service at startup. The protocols below are the part of it the default
actions touch. DummyHost is an in-memory stand-in for local runs and tests;
like the real host it refuses tempo values outside the documented ranges.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

PLAYMODE_RESTART_PATTERN = 1
PLAYMODE_CONTINUE_PATTERN = 2

BPM_RANGE: Tuple[int, int] = (32, 999)
LPB_RANGE: Tuple[int, int] = (1, 255)


class Transport(Protocol):
    bpm: float
    lpb: int
    playing: bool

    def start(self, mode: int) -> None: ...

    def stop(self) -> None: ...


class Song(Protocol):
    transport: Transport


class HostControlSurface(Protocol):
    def song(self) -> Song: ...


# ── In-memory stand-in ────────────────────────────────────────────────── #

def _check_range(name: str, value: float, bounds: Tuple[int, int]) -> None:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number, got {type(value).__name__}")
    if not low <= value <= high:
        raise ValueError(f"{name} must be within [{low}, {high}], got {value}")


class DummyTransport:
    def __init__(self, bpm: float = 120.0, lpb: int = 4) -> None:
        self._bpm = float(bpm)
        self._lpb = int(lpb)
        self.playing = False
        self.play_mode: Optional[int] = None

    @property
    def bpm(self) -> float:
        return self._bpm

    @bpm.setter
    def bpm(self, value: float) -> None:
        _check_range("bpm", value, BPM_RANGE)
        self._bpm = float(value)

    @property
    def lpb(self) -> int:
        return self._lpb

    @lpb.setter
    def lpb(self, value: int) -> None:
        _check_range("lpb", value, LPB_RANGE)
        self._lpb = int(value)

    def start(self, mode: int = PLAYMODE_RESTART_PATTERN) -> None:
        if mode not in (PLAYMODE_RESTART_PATTERN, PLAYMODE_CONTINUE_PATTERN):
            raise ValueError(f"unknown play mode {mode}")
        self.playing = True
        self.play_mode = mode

    def stop(self) -> None:
        self.playing = False


@dataclass
class DummyTrack:
    name: str
    volume: float = 1.0
    muted: bool = False


@dataclass
class DummyInstrument:
    name: str


@dataclass
class DummySong:
    name: str = "Untitled"
    transport: DummyTransport = field(default_factory=DummyTransport)
    tracks: List[DummyTrack] = field(default_factory=lambda: [DummyTrack("Track 01"), DummyTrack("Master")])
    instruments: List[DummyInstrument] = field(default_factory=lambda: [DummyInstrument("")])


class DummyHost:
    """Minimal host for connection testing."""

    PLAYMODE_RESTART_PATTERN = PLAYMODE_RESTART_PATTERN
    PLAYMODE_CONTINUE_PATTERN = PLAYMODE_CONTINUE_PATTERN

    def __init__(self, song: Optional[DummySong] = None) -> None:
        self._song = song or DummySong()

    def song(self) -> DummySong:
        return self._song
