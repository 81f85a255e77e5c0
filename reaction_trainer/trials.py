from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from enum import StrEnum

from .clock import TimerHandle, TimerQueue
from .config import TrialTimingConfig
from .difficulty import DifficultyAdvisor
from .presentation import Presentation, StimulusParams
from .state import SessionState
from .stats import StatsTracker, StimulusKind, Trial

log = logging.getLogger(__name__)

ARMED_COLOR = "#950000"
PALETTE: tuple[str, ...] = (
    "#009578",
    "#0047AB",
    "#FF8C00",
    "#800080",
    "#00CED1",
    "#FFD700",
    "#FF1493",
    "#32CD32",
    "#FF4500",
    "#8B0000",
    "#1E90FF",
    "#00FF7F",
)
PROMPTS: dict[StimulusKind, str] = {
    StimulusKind.COLOR: "Click when color changes...",
    StimulusKind.SOUND: "Click when you hear sound!",
    StimulusKind.CATCH: "Click the falling stick!",
}


class TrialPhase(StrEnum):
    IDLE = "idle"
    ARMED = "armed"
    PENDING = "pending"
    RESOLVED = "resolved"


class SlotState(StrEnum):
    UNARMED = "unarmed"
    ARMED = "armed"
    CONSUMED = "consumed"


class InputSlot:
    """One-shot input gate for a single trial.

    `consume()` is the only way out of ARMED and succeeds exactly once per
    arming, whichever of input or auto-expiry gets there first.
    """

    __slots__ = ("_state",)

    def __init__(self) -> None:
        self._state = SlotState.UNARMED

    @property
    def state(self) -> SlotState:
        return self._state

    def arm(self) -> None:
        self._state = SlotState.ARMED

    def consume(self) -> bool:
        if self._state is not SlotState.ARMED:
            return False
        self._state = SlotState.CONSUMED
        return True

    def disarm(self) -> None:
        self._state = SlotState.UNARMED


@dataclass(frozen=True, slots=True)
class FallingObject:
    x: float
    y: float
    width: int
    height: int
    px_per_tick: float
    tick_s: float
    floor_y: float

    @property
    def landed(self) -> bool:
        return self.y >= self.floor_y


def advance_falling(obj: FallingObject, dt_s: float) -> FallingObject:
    """Pure simulation step: move the object down by dt_s worth of ticks."""

    if dt_s <= 0.0:
        return obj
    return replace(obj, y=obj.y + obj.px_per_tick * (dt_s / obj.tick_s))


class StimulusGenerator:
    """Seeded source of per-trial randomness (kind, color, drop column)."""

    KINDS: tuple[StimulusKind, ...] = (StimulusKind.COLOR, StimulusKind.SOUND, StimulusKind.CATCH)

    def __init__(self, *, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def next_kind(self) -> StimulusKind:
        return self._rng.choice(self.KINDS)

    def next_color(self) -> str:
        return str(self._rng.choice(PALETTE))

    def next_object_x(self, max_x: float) -> float:
        return float(self._rng.uniform(0.0, max(0.0, float(max_x))))


class TrialScheduler:
    """Runs one trial at a time: IDLE -> ARMED -> PENDING -> RESOLVED.

    - ARMED: the pre-reveal delay is elapsing; no input path exists yet.
    - PENDING: the stimulus is live and the input slot is armed. For catch
      trials a fall tick races the slot; whichever consumes it first decides
      between a recorded trial and a silent miss.
    - RESOLVED: timers cancelled, input detached; the next trial starts
      unless the session is no longer active.

    Difficulty is sampled when a trial starts, so a tier change only ever
    affects the following trial.
    """

    def __init__(
        self,
        *,
        timers: TimerQueue,
        presentation: Presentation,
        advisor: DifficultyAdvisor,
        generator: StimulusGenerator,
        timing: TrialTimingConfig | None = None,
    ) -> None:
        self._timers = timers
        self._presentation = presentation
        self._advisor = advisor
        self._gen = generator
        self._timing = timing or TrialTimingConfig()

        self._state: SessionState | None = None
        self._stats: StatsTracker | None = None

        self._phase = TrialPhase.IDLE
        self._kind: StimulusKind | None = None
        self._tier = 1
        self._slot = InputSlot()
        self._reveal_handle: TimerHandle | None = None
        self._tick_handle: TimerHandle | None = None
        self._falling: FallingObject | None = None
        self._started_at_s: float | None = None
        self._missed = 0
        self._trials_started = 0

    @property
    def phase(self) -> TrialPhase:
        return self._phase

    @property
    def current_kind(self) -> StimulusKind | None:
        return self._kind

    @property
    def current_tier(self) -> int:
        return self._tier

    @property
    def missed(self) -> int:
        return self._missed

    @property
    def trials_started(self) -> int:
        return self._trials_started

    @property
    def falling(self) -> FallingObject | None:
        return self._falling

    @property
    def input_slot(self) -> InputSlot:
        return self._slot

    def reveal_delay_s(self, tier: int) -> float:
        t = self._timing
        delay_ms = max(t.min_delay_ms, t.max_delay_ms - int(tier) * t.delay_step_ms)
        return delay_ms / 1000.0

    def fall_px_per_tick(self, tier: int) -> float:
        t = self._timing
        return float(t.fall_base_px_per_tick + int(tier) * t.fall_px_per_tier)

    def begin(self, state: SessionState, stats: StatsTracker) -> None:
        self.cancel()
        self._state = state
        self._stats = stats
        self._missed = 0
        self._trials_started = 0

    def start_next_trial(self) -> None:
        # A trial still in flight is superseded; its input path goes inert.
        self._teardown(TrialPhase.IDLE)
        if not self._session_active():
            return
        assert self._state is not None

        kind = self._gen.next_kind()
        self._kind = kind
        self._tier = self._state.difficulty_tier
        self._phase = TrialPhase.ARMED
        self._slot.disarm()
        self._trials_started += 1

        self._presentation.show_stimulus(
            kind,
            StimulusParams(prompt=PROMPTS[kind], revealed=False, color=ARMED_COLOR),
        )

        if kind is StimulusKind.CATCH:
            delay_s = self._timing.catch_setup_ms / 1000.0
        else:
            delay_s = self.reveal_delay_s(self._tier)
        self._reveal_handle = self._timers.call_later(delay_s, self._reveal)

    def submit_input(self) -> bool:
        """Handle a click/press. Returns True only if it recorded a trial."""

        if self._phase is not TrialPhase.PENDING or not self._session_active():
            return False
        if not self._slot.consume():
            return False
        assert self._kind is not None and self._started_at_s is not None

        elapsed_s = self._timers.now() - self._started_at_s
        trial = Trial(kind=self._kind, reaction_time_ms=max(0, int(round(elapsed_s * 1000.0))))
        self._teardown(TrialPhase.RESOLVED)
        self._record(trial)
        self.start_next_trial()
        return True

    def cancel(self) -> None:
        self._teardown(TrialPhase.IDLE)

    def _reveal(self) -> None:
        self._reveal_handle = None
        if self._phase is not TrialPhase.ARMED or not self._session_active():
            return
        kind = self._kind
        assert kind is not None

        prompt = PROMPTS[kind]
        if kind is StimulusKind.COLOR:
            params = StimulusParams(prompt=prompt, revealed=True, color=self._gen.next_color())
        elif kind is StimulusKind.SOUND:
            params = StimulusParams(prompt=prompt, revealed=True, color=ARMED_COLOR)
            try:
                self._presentation.play_cue()
            except Exception:
                log.debug("audio cue failed; continuing without sound", exc_info=True)
        else:
            t = self._timing
            self._falling = FallingObject(
                x=self._gen.next_object_x(t.play_area_width_px - t.object_width_px),
                y=-float(t.object_height_px),
                width=t.object_width_px,
                height=t.object_height_px,
                px_per_tick=self.fall_px_per_tick(self._tier),
                tick_s=t.fall_tick_s,
                floor_y=float(t.play_area_height_px),
            )
            params = self._falling_params(self._falling)

        self._started_at_s = self._timers.now()
        self._phase = TrialPhase.PENDING
        self._slot.arm()
        self._presentation.show_stimulus(kind, params)
        self._presentation.on_input(self.submit_input)

        if kind is StimulusKind.CATCH:
            self._tick_handle = self._timers.call_every(self._timing.fall_tick_s, self._tick_falling)

    def _tick_falling(self) -> None:
        obj = self._falling
        if self._phase is not TrialPhase.PENDING or obj is None or not self._session_active():
            if self._tick_handle is not None:
                self._tick_handle.cancel()
                self._tick_handle = None
            return

        obj = advance_falling(obj, self._timing.fall_tick_s)
        self._falling = obj
        if not obj.landed:
            self._presentation.show_stimulus(StimulusKind.CATCH, self._falling_params(obj))
            return

        if not self._slot.consume():
            return
        self._missed += 1
        log.debug("catch trial missed (object reached y=%.1f)", obj.y)
        self._teardown(TrialPhase.RESOLVED)
        self.start_next_trial()

    def _record(self, trial: Trial) -> None:
        state = self._state
        stats = self._stats
        assert state is not None and stats is not None

        score = stats.record(trial)
        log.debug("recorded %s trial: %d ms", trial.kind, trial.reaction_time_ms)
        self._presentation.update_live_score(score)
        self._advisor.request(
            stats.snapshot().features(),
            generation=state.generation,
            apply=state.set_tier,
        )

    def _teardown(self, phase: TrialPhase) -> None:
        had_trial = self._phase in (TrialPhase.ARMED, TrialPhase.PENDING)
        if self._reveal_handle is not None:
            self._reveal_handle.cancel()
            self._reveal_handle = None
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None
        if self._slot.state is SlotState.ARMED:
            self._slot.disarm()
        self._falling = None
        self._started_at_s = None
        if had_trial:
            self._presentation.remove_input()
            self._presentation.clear_stimulus()
        self._phase = phase

    def _session_active(self) -> bool:
        return self._state is not None and self._state.active

    def _falling_params(self, obj: FallingObject) -> StimulusParams:
        return StimulusParams(
            prompt=PROMPTS[StimulusKind.CATCH],
            revealed=True,
            color=ARMED_COLOR,
            object_x=obj.x,
            object_y=obj.y,
            object_width=obj.width,
            object_height=obj.height,
        )
