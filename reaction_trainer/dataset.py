from __future__ import annotations

import csv
import math
from dataclasses import dataclass
from pathlib import Path

from .difficulty import TIERS

FEATURE_COUNT = 3


class DatasetError(ValueError):
    """Raised when training data is missing columns or holds bad values."""


@dataclass(frozen=True, slots=True)
class TrainingRow:
    features: tuple[float, float, float]
    tier: int


def parse_training_csv(text: str, *, source: str = "<string>") -> list[TrainingRow]:
    """Parse `feature1,feature2,feature3,tier` rows after a header row."""

    rows: list[TrainingRow] = []
    reader = csv.reader(text.strip().splitlines())
    for line_no, cols in enumerate(reader, start=1):
        if line_no == 1:
            continue
        if not cols or all(c.strip() == "" for c in cols):
            continue
        if len(cols) < FEATURE_COUNT + 1:
            raise DatasetError(f"{source}:{line_no}: expected 4 columns, got {len(cols)}")
        try:
            f1, f2, f3 = (float(c) for c in cols[:FEATURE_COUNT])
            tier_f = float(cols[FEATURE_COUNT])
        except ValueError as exc:
            raise DatasetError(f"{source}:{line_no}: non-numeric value") from exc
        if not all(math.isfinite(v) for v in (f1, f2, f3, tier_f)):
            raise DatasetError(f"{source}:{line_no}: non-finite value")
        tier = int(tier_f)
        if tier != tier_f or tier not in TIERS:
            raise DatasetError(f"{source}:{line_no}: tier must be 1, 2 or 3 (got {cols[FEATURE_COUNT]!r})")
        rows.append(TrainingRow(features=(f1, f2, f3), tier=tier))
    return rows


def load_training_rows(path: Path) -> list[TrainingRow]:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise DatasetError(f"{p}: not valid UTF-8 text") from exc
    rows = parse_training_csv(text, source=str(p))
    if not rows:
        raise DatasetError(f"{p}: no training rows")
    return rows
