from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum


class StimulusKind(StrEnum):
    COLOR = "Color"
    SOUND = "Sound"
    CATCH = "Catch"


@dataclass(frozen=True, slots=True)
class Trial:
    kind: StimulusKind
    reaction_time_ms: int


@dataclass(frozen=True, slots=True)
class StatsSnapshot:
    count: int
    best: int
    average: int
    per_type: dict[StimulusKind, float]

    def features(self) -> tuple[float, float, float]:
        """Predictor input: per-type averages in fixed Color/Sound/Catch order."""

        return (
            float(self.per_type[StimulusKind.COLOR]),
            float(self.per_type[StimulusKind.SOUND]),
            float(self.per_type[StimulusKind.CATCH]),
        )


@dataclass(frozen=True, slots=True)
class LiveScore:
    attempts: int
    best: int
    average: int
    last_ms: int | None
    recent: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class SessionSummary:
    attempts: int
    best: int
    average: int
    missed: int
    per_type_avg_ms: dict[StimulusKind, int]


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


class StatsTracker:
    """Rolling trial history for one session plus derived aggregates.

    `history` may be a list owned elsewhere (the session state); records are
    appended to it in place. Aggregates are recomputed from history on demand
    and are 0 for an empty history or for a kind with no trials.
    """

    def __init__(self, history: list[Trial] | None = None, *, recent_slots: int = 5) -> None:
        if recent_slots <= 0:
            raise ValueError("recent_slots must be > 0")
        self._history: list[Trial] = [] if history is None else history
        self._recent = [0] * int(recent_slots)
        self._recent_index = 0
        self._last_ms: int | None = None

    @property
    def history(self) -> tuple[Trial, ...]:
        return tuple(self._history)

    def __len__(self) -> int:
        return len(self._history)

    def record(self, trial: Trial) -> LiveScore:
        self._history.append(trial)
        self._recent[self._recent_index] = int(trial.reaction_time_ms)
        self._recent_index = (self._recent_index + 1) % len(self._recent)
        self._last_ms = int(trial.reaction_time_ms)
        return self.live_score()

    def reset(self) -> None:
        self._history.clear()
        self._recent = [0] * len(self._recent)
        self._recent_index = 0
        self._last_ms = None

    def snapshot(self) -> StatsSnapshot:
        rts = [t.reaction_time_ms for t in self._history]
        if rts:
            best = min(rts)
            average = round_half_up(sum(rts) / len(rts))
        else:
            best = 0
            average = 0
        return StatsSnapshot(
            count=len(rts),
            best=best,
            average=average,
            per_type={kind: self._kind_mean(kind) for kind in StimulusKind},
        )

    def live_score(self) -> LiveScore:
        snap = self.snapshot()
        return LiveScore(
            attempts=snap.count,
            best=snap.best,
            average=snap.average,
            last_ms=self._last_ms,
            recent=tuple(self._recent),
        )

    def summary(self, *, missed: int = 0) -> SessionSummary:
        snap = self.snapshot()
        return SessionSummary(
            attempts=snap.count,
            best=snap.best,
            average=snap.average,
            missed=int(missed),
            per_type_avg_ms={kind: round_half_up(avg) for kind, avg in snap.per_type.items()},
        )

    def _kind_mean(self, kind: StimulusKind) -> float:
        rts = [t.reaction_time_ms for t in self._history if t.kind == kind]
        if not rts:
            return 0.0
        return sum(rts) / len(rts)
