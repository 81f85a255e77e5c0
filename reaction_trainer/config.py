from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DATASET_ENV = "REACTION_TRAINER_DATASET"
DISABLE_ADAPTIVE_ENV = "REACTION_TRAINER_DISABLE_ADAPTIVE"
SEED_ENV = "REACTION_TRAINER_SEED"
LOG_LEVEL_ENV = "REACTION_TRAINER_LOG_LEVEL"


def default_dataset_path() -> Path:
    return Path(__file__).resolve().parent / "data" / "adaptive_reaction_dataset.csv"


@dataclass(frozen=True, slots=True)
class SessionConfig:
    duration_s: int = 30
    countdown_interval_s: float = 1.0
    recent_slots: int = 5

    def __post_init__(self) -> None:
        if self.duration_s <= 0:
            raise ValueError("duration_s must be > 0")
        if self.countdown_interval_s <= 0.0:
            raise ValueError("countdown_interval_s must be > 0")
        if self.recent_slots <= 0:
            raise ValueError("recent_slots must be > 0")


@dataclass(frozen=True, slots=True)
class TrialTimingConfig:
    # Color/Sound reveal delay: max(min_delay_ms, max_delay_ms - tier * delay_step_ms).
    max_delay_ms: int = 1500
    min_delay_ms: int = 300
    delay_step_ms: int = 100

    catch_setup_ms: int = 800
    fall_base_px_per_tick: float = 7.0
    fall_px_per_tier: float = 2.0
    fall_tick_s: float = 0.02

    object_width_px: int = 40
    object_height_px: int = 80
    play_area_width_px: int = 600
    play_area_height_px: int = 320

    def __post_init__(self) -> None:
        if self.min_delay_ms < 0:
            raise ValueError("min_delay_ms must be >= 0")
        if self.max_delay_ms < self.min_delay_ms:
            raise ValueError("max_delay_ms must be >= min_delay_ms")
        if self.catch_setup_ms < 0:
            raise ValueError("catch_setup_ms must be >= 0")
        if self.fall_tick_s <= 0.0:
            raise ValueError("fall_tick_s must be > 0")
        if self.fall_base_px_per_tick <= 0.0:
            raise ValueError("fall_base_px_per_tick must be > 0")
        if self.play_area_height_px <= 0 or self.play_area_width_px <= self.object_width_px:
            raise ValueError("play area must be larger than the falling object")


@dataclass(frozen=True, slots=True)
class ClassifierConfig:
    dataset_path: Path = field(default_factory=default_dataset_path)
    epochs: int = 10
    batch_size: int = 32
    learning_rate: float = 1e-3
    seed: int = 0
    enabled: bool = True

    def __post_init__(self) -> None:
        if self.epochs <= 0:
            raise ValueError("epochs must be > 0")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        if self.learning_rate <= 0.0:
            raise ValueError("learning_rate must be > 0")


@dataclass(frozen=True, slots=True)
class AppConfig:
    session: SessionConfig = field(default_factory=SessionConfig)
    timing: TrialTimingConfig = field(default_factory=TrialTimingConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    seed: int | None = None

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> AppConfig:
        env = os.environ if environ is None else environ

        dataset_raw = env.get(DATASET_ENV, "").strip()
        dataset_path = Path(dataset_raw) if dataset_raw else default_dataset_path()
        enabled = env.get(DISABLE_ADAPTIVE_ENV, "0").strip() != "1"

        seed: int | None = None
        seed_raw = env.get(SEED_ENV, "").strip()
        if seed_raw:
            try:
                seed = int(seed_raw)
            except ValueError:
                seed = None

        return cls(
            classifier=ClassifierConfig(dataset_path=dataset_path, enabled=enabled),
            seed=seed,
        )
