from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from .stats import LiveScore, SessionSummary, StimulusKind


@dataclass(frozen=True, slots=True)
class StimulusParams:
    """What the surface should show for the current trial (pure data)."""

    prompt: str
    revealed: bool = False
    color: str | None = None
    object_x: float | None = None
    object_y: float | None = None
    object_width: int | None = None
    object_height: int | None = None


class Presentation(Protocol):
    """Rendering/input surface consumed by the session core.

    Implementations own drawing, hit-testing and audio. The core only ever
    talks to the surface through these calls.
    """

    def reset(self, prompt: str) -> None: ...
    def show_stimulus(self, kind: StimulusKind, params: StimulusParams) -> None: ...
    def clear_stimulus(self) -> None: ...
    def on_input(self, handler: Callable[[], bool]) -> None: ...
    def remove_input(self) -> None: ...
    def play_cue(self) -> None: ...
    def update_clock(self, seconds: int) -> None: ...
    def update_live_score(self, score: LiveScore) -> None: ...
    def show_final_summary(self, summary: SessionSummary) -> None: ...
