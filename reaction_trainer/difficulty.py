from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Protocol

log = logging.getLogger(__name__)

MIN_TIER = 1
MAX_TIER = 3
TIERS: tuple[int, ...] = (1, 2, 3)


class Predictor(Protocol):
    """Maps (color_avg, sound_avg, catch_avg) in ms to a tier in 1..3."""

    def predict(self, features: Sequence[float]) -> int: ...


def coerce_tier(raw: object) -> int | None:
    """Return raw as a valid tier, or None if it is not one."""

    if isinstance(raw, bool):
        return None
    try:
        tier = int(raw)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return None
    if tier != raw or tier not in TIERS:
        return None
    return tier


@dataclass(slots=True)
class _PendingPrediction:
    generation: int
    future: Future[int]
    apply: Callable[[int], None]


class DifficultyAdvisor:
    """Requests the next difficulty tier from an optional predictor.

    Inline mode (no executor) calls the predictor synchronously so the result
    applies to the very next trial. With an executor the call runs off-thread
    and `poll()` applies finished results on the caller's thread; results
    tagged with an older session generation are dropped. Until a result lands
    the previous tier stays in effect.

    Any predictor failure disables adaptation for the advisor's lifetime.
    """

    def __init__(self, predictor: Predictor | None, *, executor: Executor | None = None) -> None:
        self._predictor = predictor
        self._executor = executor
        self._pending: list[_PendingPrediction] = []

    @property
    def enabled(self) -> bool:
        return self._predictor is not None

    def pending(self) -> int:
        return len(self._pending)

    def request(
        self,
        features: Sequence[float],
        *,
        generation: int,
        apply: Callable[[int], None],
    ) -> None:
        predictor = self._predictor
        if predictor is None:
            return
        vector = [float(v) for v in features]

        if self._executor is None:
            try:
                raw = predictor.predict(vector)
            except Exception as exc:
                self._disable(exc)
                return
            self._apply(raw, apply)
            return

        future = self._executor.submit(predictor.predict, vector)
        self._pending.append(_PendingPrediction(generation=generation, future=future, apply=apply))

    def poll(self, current_generation: int) -> None:
        if not self._pending:
            return
        still_pending: list[_PendingPrediction] = []
        for item in self._pending:
            if not item.future.done():
                if item.generation == current_generation:
                    still_pending.append(item)
                else:
                    item.future.cancel()
                continue
            if item.generation != current_generation:
                log.debug("dropping stale prediction from session %d", item.generation)
                continue
            if item.future.cancelled():
                continue
            exc = item.future.exception()
            if exc is not None:
                self._disable(exc)
                still_pending = []
                break
            self._apply(item.future.result(), item.apply)
        self._pending = still_pending

    def reset(self) -> None:
        for item in self._pending:
            item.future.cancel()
        self._pending.clear()

    def _apply(self, raw: object, apply: Callable[[int], None]) -> None:
        tier = coerce_tier(raw)
        if tier is None:
            log.warning("predictor returned invalid tier %r; keeping current tier", raw)
            return
        apply(tier)

    def _disable(self, exc: BaseException) -> None:
        log.warning("adaptive difficulty disabled: predictor raised %r", exc, exc_info=exc)
        self._predictor = None
        self.reset()
