"""
Audio Collaborators.

The engine only needs one call: ``play(pitch, mode)``, which returns once
playback has finished. Synthesis itself lives outside this package; the
players here are the terminal and test stand-ins.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol

from rich.console import Console

from .engine.domain import PitchSpec

NOTE_SECONDS = 0.65
NOTE_GAP_SECONDS = 0.15
HELD_EXTRA_SECONDS = 0.2
TAIL_SECONDS = 0.1

SIMULTANEOUS_MODES = {"harmonic", "block"}


class AudioPlayer(Protocol):
    """Plays one item and blocks until playback completes."""

    def play(self, pitch: PitchSpec, mode: str) -> None: ...


def playback_seconds(pitch: PitchSpec, mode: str) -> float:
    """
    Nominal length of one playback.

    Args:
        pitch: Item pitch pattern (semitones, or progression steps)
        mode: Presentation variant

    Returns:
        Duration in seconds
    """
    if mode in SIMULTANEOUS_MODES:
        return NOTE_SECONDS + HELD_EXTRA_SECONDS + TAIL_SECONDS
    if mode in {"ascending", "descending"}:
        return 2 * NOTE_SECONDS + NOTE_GAP_SECONDS + TAIL_SECONDS
    # Sequences: one held chord per step
    steps = max(1, len(pitch))
    return steps * (NOTE_SECONDS + HELD_EXTRA_SECONDS + NOTE_GAP_SECONDS) + TAIL_SECONDS


class SilentPlayer:
    """Completes immediately. Used by tests and non-interactive runs."""

    def __init__(self) -> None:
        self.played: list[tuple[PitchSpec, str]] = []

    def play(self, pitch: PitchSpec, mode: str) -> None:
        self.played.append((pitch, mode))


class ConsolePlayer:
    """
    Terminal stand-in for a synthesizer.

    Shows a neutral playback cue (never the pitch pattern, which would give
    the answer away) and waits for the nominal playback duration.
    """

    def __init__(
        self,
        console: Console | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.console = console or Console()
        self._sleep = sleep

    def play(self, pitch: PitchSpec, mode: str) -> None:
        seconds = playback_seconds(pitch, mode)
        self.console.print(f"[dim]♪ playing ({mode})...[/dim]")
        self._sleep(seconds)
