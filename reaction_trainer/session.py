from __future__ import annotations

import logging
from concurrent.futures import Executor
from enum import StrEnum

from .clock import Clock, TimerHandle, TimerQueue
from .config import SessionConfig, TrialTimingConfig
from .difficulty import DifficultyAdvisor, Predictor
from .presentation import Presentation
from .state import SessionState
from .stats import SessionSummary, StatsTracker
from .trials import StimulusGenerator, TrialScheduler

log = logging.getLogger(__name__)

READY_PROMPT = "Get Ready..."


class SessionPhase(StrEnum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    ENDED = "ended"


class SessionController:
    """Owns one timed session at a time: NOT_STARTED -> RUNNING -> ENDED.

    Time is entirely via the injected Clock; `update()` must be called from
    the frame loop to fire due timers and apply finished predictions.
    `start()` may be called again from any phase and fully replaces the
    previous session.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        presentation: Presentation,
        seed: int,
        predictor: Predictor | None = None,
        executor: Executor | None = None,
        config: SessionConfig | None = None,
        timing: TrialTimingConfig | None = None,
        generator: StimulusGenerator | None = None,
    ) -> None:
        self._cfg = config or SessionConfig()
        self._presentation = presentation
        self._timers = TimerQueue(clock=clock)
        self._advisor = DifficultyAdvisor(predictor, executor=executor)
        self._scheduler = TrialScheduler(
            timers=self._timers,
            presentation=presentation,
            advisor=self._advisor,
            generator=generator or StimulusGenerator(seed=seed),
            timing=timing,
        )

        self._phase = SessionPhase.NOT_STARTED
        self._generation = 0
        self._state = SessionState(generation=0, remaining_s=self._cfg.duration_s, active=False)
        self._stats = StatsTracker(self._state.history, recent_slots=self._cfg.recent_slots)
        self._countdown: TimerHandle | None = None
        self._summary: SessionSummary | None = None

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def stats(self) -> StatsTracker:
        return self._stats

    @property
    def scheduler(self) -> TrialScheduler:
        return self._scheduler

    @property
    def advisor(self) -> DifficultyAdvisor:
        return self._advisor

    @property
    def timers(self) -> TimerQueue:
        return self._timers

    def summary(self) -> SessionSummary | None:
        return self._summary

    def start(self) -> None:
        if self._phase is SessionPhase.RUNNING:
            self._shutdown()

        self._generation += 1
        self._state = SessionState(generation=self._generation, remaining_s=self._cfg.duration_s)
        self._stats = StatsTracker(self._state.history, recent_slots=self._cfg.recent_slots)
        self._summary = None
        self._advisor.reset()
        self._phase = SessionPhase.RUNNING

        self._presentation.reset(READY_PROMPT)
        self._presentation.update_clock(self._state.remaining_s)
        self._presentation.update_live_score(self._stats.live_score())

        self._countdown = self._timers.call_every(self._cfg.countdown_interval_s, self._tick)
        log.info("session %d started (%ds)", self._generation, self._state.remaining_s)

        self._scheduler.begin(self._state, self._stats)
        self._scheduler.start_next_trial()

    def end(self) -> None:
        if self._phase is not SessionPhase.RUNNING:
            return
        self._finish()

    def update(self) -> None:
        self._timers.run_due()
        if self._phase is SessionPhase.RUNNING:
            self._advisor.poll(self._generation)

    def submit_input(self) -> bool:
        return self._scheduler.submit_input()

    def _tick(self) -> None:
        if self._phase is not SessionPhase.RUNNING or not self._state.active:
            if self._countdown is not None:
                self._countdown.cancel()
            return
        self._state.remaining_s = max(0, self._state.remaining_s - 1)
        self._presentation.update_clock(self._state.remaining_s)
        if self._state.remaining_s <= 0:
            self._finish()

    def _shutdown(self) -> None:
        self._state.active = False
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None
        self._scheduler.cancel()
        self._advisor.reset()

    def _finish(self) -> None:
        self._shutdown()
        self._phase = SessionPhase.ENDED
        self._summary = self._stats.summary(missed=self._scheduler.missed)
        log.info(
            "session %d ended: %d trials, %d missed, avg %d ms",
            self._generation,
            self._summary.attempts,
            self._summary.missed,
            self._summary.average,
        )
        self._presentation.show_final_summary(self._summary)
