from __future__ import annotations

from collections.abc import Sequence

import pytest

from reaction_trainer.session import READY_PROMPT, SessionController, SessionPhase
from reaction_trainer.stats import StimulusKind, Trial
from reaction_trainer.trials import StimulusGenerator, TrialPhase
from tests.fakes import (
    DeferredExecutor,
    FakeClock,
    FakePresentation,
    ScriptedGenerator,
    StubPredictor,
)


def _controller(
    *,
    kinds: Sequence[StimulusKind] = (),
    generator: StimulusGenerator | None = None,
    predictor: object | None = None,
    executor: DeferredExecutor | None = None,
) -> tuple[FakeClock, FakePresentation, SessionController]:
    clock = FakeClock()
    pres = FakePresentation()
    controller = SessionController(
        clock=clock,
        presentation=pres,
        seed=5,
        predictor=predictor,  # type: ignore[arg-type]
        executor=executor,
        generator=generator or ScriptedGenerator(kinds),
    )
    return clock, pres, controller


def _step(clock: FakeClock, controller: SessionController, dt: float) -> None:
    clock.advance(dt)
    controller.update()


def test_start_resets_display_and_arms_first_trial() -> None:
    _, pres, controller = _controller(kinds=[StimulusKind.SOUND])
    assert controller.phase is SessionPhase.NOT_STARTED

    controller.start()
    assert controller.phase is SessionPhase.RUNNING
    assert pres.prompts == [READY_PROMPT]
    assert pres.clock_values == [30]
    assert pres.scores[-1].attempts == 0
    assert controller.state.active is True
    assert controller.state.difficulty_tier == 1
    assert controller.scheduler.phase is TrialPhase.ARMED
    assert controller.scheduler.current_kind is StimulusKind.SOUND


def test_thirty_ticks_end_session_exactly_once() -> None:
    clock, pres, controller = _controller()
    controller.start()

    for _ in range(29):
        _step(clock, controller, 1.0)
    assert controller.phase is SessionPhase.RUNNING
    assert controller.state.remaining_s == 1
    assert controller.scheduler.phase is TrialPhase.PENDING

    _step(clock, controller, 1.0)
    assert controller.phase is SessionPhase.ENDED
    assert controller.state.active is False
    assert controller.state.remaining_s == 0
    assert len(pres.summaries) == 1
    assert pres.clock_values == list(range(30, -1, -1))

    # The in-flight trial is gone and nothing else gets scheduled.
    assert controller.scheduler.phase is TrialPhase.IDLE
    assert pres.handler is None
    assert controller.timers.pending() == 0
    started = controller.scheduler.trials_started
    for _ in range(10):
        _step(clock, controller, 1.0)
    assert controller.scheduler.trials_started == started
    assert len(pres.summaries) == 1
    assert controller.submit_input() is False


def test_session_end_during_armed_trial_cancels_reveal() -> None:
    clock, pres, controller = _controller()
    controller.start()
    for _ in range(29):
        _step(clock, controller, 1.0)
        if controller.scheduler.phase is TrialPhase.PENDING:
            assert pres.click() is True
    _step(clock, controller, 0.3)
    assert controller.scheduler.phase is TrialPhase.ARMED
    recorded = len(controller.state.history)
    shown = len(pres.stimuli)

    controller.end()
    assert controller.phase is SessionPhase.ENDED
    _step(clock, controller, 5.0)
    assert len(pres.stimuli) == shown
    assert len(controller.state.history) == recorded
    assert controller.timers.pending() == 0


def test_external_end_is_idempotent_and_leaks_no_timers() -> None:
    clock, pres, controller = _controller(kinds=[StimulusKind.CATCH])
    controller.start()
    _step(clock, controller, 0.9)
    assert controller.scheduler.phase is TrialPhase.PENDING

    controller.end()
    controller.end()
    assert controller.phase is SessionPhase.ENDED
    assert len(pres.summaries) == 1
    assert controller.timers.pending() == 0

    _step(clock, controller, 3.0)
    assert controller.scheduler.missed == 0
    assert controller.state.remaining_s == 30


def test_summary_matches_example_history() -> None:
    kinds = [StimulusKind.COLOR, StimulusKind.SOUND, StimulusKind.COLOR]
    clock, pres, controller = _controller(kinds=kinds)
    controller.start()
    for rt in (0.2, 0.15, 0.3):
        _step(clock, controller, 1.4)
        _step(clock, controller, rt)
        assert pres.click() is True

    controller.end()
    summary = controller.summary()
    assert summary is not None
    assert pres.summaries == [summary]
    assert summary.best == 150
    assert summary.average == 217
    assert summary.per_type_avg_ms == {
        StimulusKind.COLOR: 250,
        StimulusKind.SOUND: 150,
        StimulusKind.CATCH: 0,
    }


def test_restart_fully_replaces_previous_session() -> None:
    clock, pres, controller = _controller(predictor=StubPredictor(tier=3))
    controller.start()
    first_state = controller.state
    _step(clock, controller, 1.4)
    _step(clock, controller, 0.2)
    assert pres.click() is True
    assert first_state.difficulty_tier == 3

    controller.start()
    assert first_state.active is False
    assert controller.state is not first_state
    assert controller.state.generation == first_state.generation + 1
    assert controller.state.history == []
    assert controller.state.difficulty_tier == 1
    assert controller.state.remaining_s == 30
    # A silent restart does not produce a summary for the abandoned run.
    assert pres.summaries == []
    # One countdown and one trial timer only.
    assert controller.timers.pending() == 2


def test_restart_after_end_is_reentrant() -> None:
    clock, pres, controller = _controller()
    controller.start()
    for _ in range(30):
        _step(clock, controller, 1.0)
    assert controller.phase is SessionPhase.ENDED

    controller.start()
    assert controller.phase is SessionPhase.RUNNING
    assert controller.summary() is None
    for _ in range(30):
        _step(clock, controller, 1.0)
    assert controller.phase is SessionPhase.ENDED
    assert len(pres.summaries) == 2


def test_async_prediction_never_blocks_and_applies_later() -> None:
    executor = DeferredExecutor()
    clock, pres, controller = _controller(predictor=StubPredictor(tier=3), executor=executor)
    controller.start()
    _step(clock, controller, 1.4)
    _step(clock, controller, 0.2)
    assert pres.click() is True

    # Prediction still outstanding: the next trial already runs on tier 1.
    assert controller.scheduler.current_tier == 1
    assert controller.advisor.pending() == 1

    executor.run_all()
    controller.update()
    assert controller.state.difficulty_tier == 3
    assert controller.scheduler.current_tier == 1

    _step(clock, controller, 1.4)
    _step(clock, controller, 0.2)
    assert pres.click() is True
    assert controller.scheduler.current_tier == 3


def test_stale_async_prediction_is_not_applied_to_new_session() -> None:
    executor = DeferredExecutor()
    clock, pres, controller = _controller(predictor=StubPredictor(tier=3), executor=executor)
    controller.start()
    _step(clock, controller, 1.4)
    _step(clock, controller, 0.2)
    assert pres.click() is True

    controller.start()
    executor.run_all()
    controller.update()
    assert controller.state.difficulty_tier == 1


def _scripted_run(seed: int) -> tuple[list[Trial], int, int]:
    """Bot reacts 250 ms after every reveal (catch too) until time runs out."""

    class SlowLearner:
        def predict(self, features: Sequence[float]) -> int:
            color, _, _ = features
            return 3 if 0 < color < 300 else 2

    clock, pres, controller = _controller(
        generator=StimulusGenerator(seed=seed),
        predictor=SlowLearner(),
    )
    controller.start()

    pending_since: float | None = None
    for _ in range(4000):
        _step(clock, controller, 1.0 / 60.0)
        if controller.phase is SessionPhase.ENDED:
            break
        if controller.scheduler.phase is not TrialPhase.PENDING:
            pending_since = None
            continue
        if pending_since is None:
            pending_since = clock.now()
        elif clock.now() - pending_since >= 0.25:
            pres.click()
            pending_since = None
    else:
        raise AssertionError("session did not end")

    return list(controller.state.history), controller.scheduler.missed, controller.state.difficulty_tier


def test_headless_scripted_run_is_exactly_deterministic() -> None:
    history_1, missed_1, tier_1 = _scripted_run(seed=1234)
    history_2, missed_2, tier_2 = _scripted_run(seed=1234)

    assert history_1 == history_2
    assert (missed_1, tier_1) == (missed_2, tier_2)
    assert len(history_1) >= 10
    assert missed_1 == 0
    assert {t.kind for t in history_1} <= set(StimulusKind)
    assert all(240 <= t.reaction_time_ms <= 290 for t in history_1)
    saw_color = any(t.kind is StimulusKind.COLOR for t in history_1)
    assert tier_1 == (3 if saw_color else 2)


def test_invalid_session_config_rejected() -> None:
    from reaction_trainer.config import SessionConfig

    with pytest.raises(ValueError):
        SessionConfig(duration_s=0)
    with pytest.raises(ValueError):
        SessionConfig(countdown_interval_s=0.0)
