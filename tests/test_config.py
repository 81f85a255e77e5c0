from __future__ import annotations

from pathlib import Path

import pytest

from reaction_trainer.config import (
    DATASET_ENV,
    DISABLE_ADAPTIVE_ENV,
    SEED_ENV,
    AppConfig,
    ClassifierConfig,
    TrialTimingConfig,
    default_dataset_path,
)


def test_defaults_without_environment() -> None:
    cfg = AppConfig.from_env({})
    assert cfg.seed is None
    assert cfg.classifier.enabled is True
    assert cfg.classifier.dataset_path == default_dataset_path()
    assert cfg.session.duration_s == 30
    assert cfg.timing.max_delay_ms == 1500


def test_environment_overrides() -> None:
    cfg = AppConfig.from_env(
        {
            DATASET_ENV: "/tmp/custom.csv",
            DISABLE_ADAPTIVE_ENV: "1",
            SEED_ENV: " 42 ",
        }
    )
    assert cfg.classifier.dataset_path == Path("/tmp/custom.csv")
    assert cfg.classifier.enabled is False
    assert cfg.seed == 42


def test_unparseable_seed_falls_back_to_random() -> None:
    assert AppConfig.from_env({SEED_ENV: "abc"}).seed is None


def test_disable_flag_requires_exact_one() -> None:
    assert AppConfig.from_env({DISABLE_ADAPTIVE_ENV: "yes"}).classifier.enabled is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"min_delay_ms": -1},
        {"max_delay_ms": 200, "min_delay_ms": 300},
        {"fall_tick_s": 0.0},
        {"play_area_width_px": 40},
    ],
)
def test_timing_validation(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        TrialTimingConfig(**kwargs)  # type: ignore[arg-type]


def test_classifier_validation() -> None:
    with pytest.raises(ValueError):
        ClassifierConfig(epochs=0)
    with pytest.raises(ValueError):
        ClassifierConfig(learning_rate=0.0)
