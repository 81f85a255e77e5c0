from __future__ import annotations

import logging
from collections.abc import Sequence

import torch
import torch.nn as nn
import torch.nn.functional as F

from .config import ClassifierConfig
from .dataset import DatasetError, TrainingRow, load_training_rows
from .difficulty import Predictor, TIERS

log = logging.getLogger(__name__)


class TierClassifier(nn.Module):
    def __init__(self, feature_dim: int = 3, tier_count: int = len(TIERS)) -> None:
        super().__init__()
        self.net = nn.Sequential(
            nn.Linear(feature_dim, 16),
            nn.ReLU(),
            nn.Linear(16, 8),
            nn.ReLU(),
            nn.Linear(8, tier_count),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.net(x)


class TorchTierPredictor:
    """Predictor backed by a trained TierClassifier (argmax over tiers)."""

    def __init__(self, model: TierClassifier) -> None:
        self._model = model
        self._model.eval()

    @property
    def model(self) -> TierClassifier:
        return self._model

    def predict(self, features: Sequence[float]) -> int:
        x = torch.tensor([list(features)], dtype=torch.float32)
        with torch.no_grad():
            logits = self._model(x)
            tier_index = int(torch.argmax(logits, dim=-1).item())
        return TIERS[tier_index]


def train_tier_predictor(rows: Sequence[TrainingRow], config: ClassifierConfig | None = None) -> TorchTierPredictor:
    cfg = config or ClassifierConfig()
    if not rows:
        raise DatasetError("no training rows")

    torch.manual_seed(cfg.seed)
    generator = torch.Generator().manual_seed(cfg.seed)

    model = TierClassifier()
    optimizer = torch.optim.Adam(model.parameters(), lr=cfg.learning_rate)

    # Tiers 1..3 map to class indices 0..2.
    inputs = torch.tensor([list(r.features) for r in rows], dtype=torch.float32)
    labels = torch.tensor([r.tier - 1 for r in rows], dtype=torch.int64)

    n = inputs.size(0)
    model.train()
    for epoch in range(cfg.epochs):
        perm = torch.randperm(n, generator=generator)
        epoch_loss = 0.0
        batches = 0
        for start in range(0, n, cfg.batch_size):
            idx = perm[start : start + cfg.batch_size]
            logits = model(inputs[idx])
            loss = F.cross_entropy(logits, labels[idx])

            optimizer.zero_grad()
            loss.backward()
            optimizer.step()
            epoch_loss += float(loss.item())
            batches += 1
        log.debug("epoch %d loss=%.4f", epoch + 1, epoch_loss / max(1, batches))

    return TorchTierPredictor(model)


def build_predictor(config: ClassifierConfig | None = None) -> Predictor | None:
    """Train the tier predictor from CSV, or return None to run non-adaptively."""

    cfg = config or ClassifierConfig()
    if not cfg.enabled:
        log.info("adaptive difficulty disabled by configuration")
        return None
    try:
        rows = load_training_rows(cfg.dataset_path)
        predictor = train_tier_predictor(rows, cfg)
    except (OSError, ValueError, RuntimeError) as exc:
        log.warning("adaptive difficulty disabled: %s", exc)
        return None
    log.info("tier classifier trained on %d rows from %s", len(rows), cfg.dataset_path)
    return predictor
