from __future__ import annotations

import pytest

from reaction_trainer.clock import TimerQueue
from tests.fakes import FakeClock


def test_call_later_fires_once_at_deadline() -> None:
    clock = FakeClock()
    timers = TimerQueue(clock=clock)
    fired: list[float] = []
    handle = timers.call_later(0.5, lambda: fired.append(clock.now()))

    clock.advance(0.49)
    assert timers.run_due() == 0
    assert handle.active is True

    clock.advance(0.01)
    assert timers.run_due() == 1
    assert fired == [pytest.approx(0.5)]
    assert handle.active is False

    clock.advance(5.0)
    assert timers.run_due() == 0
    assert len(fired) == 1


def test_call_every_catches_up_after_clock_jump() -> None:
    clock = FakeClock()
    timers = TimerQueue(clock=clock)
    ticks: list[int] = []
    timers.call_every(1.0, lambda: ticks.append(len(ticks)))

    clock.advance(3.0)
    assert timers.run_due() == 3
    assert ticks == [0, 1, 2]


def test_dispatch_order_is_deadline_then_scheduling_order() -> None:
    clock = FakeClock()
    timers = TimerQueue(clock=clock)
    order: list[str] = []
    timers.call_later(0.3, lambda: order.append("a"))
    timers.call_later(0.1, lambda: order.append("b"))
    timers.call_later(0.3, lambda: order.append("c"))

    clock.advance(1.0)
    timers.run_due()
    assert order == ["b", "a", "c"]


def test_handle_cancelled_mid_dispatch_never_fires() -> None:
    clock = FakeClock()
    timers = TimerQueue(clock=clock)
    fired: list[str] = []
    later = timers.call_later(0.2, lambda: fired.append("later"))
    timers.call_later(0.1, later.cancel)

    clock.advance(1.0)
    assert timers.run_due() == 1
    assert fired == []
    assert timers.pending() == 0


def test_interval_can_cancel_itself() -> None:
    clock = FakeClock()
    timers = TimerQueue(clock=clock)
    count = 0

    def tick() -> None:
        nonlocal count
        count += 1
        if count == 2:
            handle.cancel()

    handle = timers.call_every(0.02, tick)
    clock.advance(1.0)
    timers.run_due()
    assert count == 2
    assert handle.active is False


def test_callback_may_schedule_follow_up_in_same_dispatch() -> None:
    clock = FakeClock()
    timers = TimerQueue(clock=clock)
    fired: list[str] = []

    def first() -> None:
        fired.append("first")
        timers.call_later(0.0, lambda: fired.append("second"))

    timers.call_later(0.1, first)
    clock.advance(0.1)
    assert timers.run_due() == 2
    assert fired == ["first", "second"]


def test_cancel_all_and_validation() -> None:
    clock = FakeClock()
    timers = TimerQueue(clock=clock)
    timers.call_later(1.0, lambda: None)
    timers.call_every(0.5, lambda: None)
    assert timers.pending() == 2

    timers.cancel_all()
    assert timers.pending() == 0

    with pytest.raises(ValueError):
        timers.call_later(-0.1, lambda: None)
    with pytest.raises(ValueError):
        timers.call_every(0.0, lambda: None)
