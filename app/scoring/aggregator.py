from __future__ import annotations

from typing import Iterable, Literal, Mapping

from app.core.config.scoring import get_metric_weights, normalize_weights
from app.schemas.scorecard import ScoreMetric

Side = Literal["optimized", "original"]


class WeightedAggregator:
    """Weighted sum of clamped metric scores over a fixed, normalised weight table."""

    def __init__(self, weights: Mapping[str, float] | None = None):
        self._weights = normalize_weights(dict(weights if weights is not None else get_metric_weights()))

    @property
    def weights(self) -> dict[str, float]:
        return dict(self._weights)

    def without(self, metric_name: str) -> "WeightedAggregator":
        remaining = {name: weight for name, weight in self._weights.items() if name != metric_name}
        return WeightedAggregator(remaining)

    def overall(self, metrics: Iterable[ScoreMetric], side: Side = "optimized") -> float:
        if side not in ("optimized", "original"):
            raise ValueError(f"Unknown score side: {side!r}")
        scores = {
            metric.name: metric.optimized_score if side == "optimized" else metric.original_score
            for metric in metrics
        }
        present = {name: weight for name, weight in self._weights.items() if name in scores}
        total_weight = sum(present.values())
        if total_weight <= 0:
            return 0.0
        weighted = sum(weight * max(0.0, min(100.0, scores[name])) for name, weight in present.items())
        return round(max(0.0, min(100.0, weighted / total_weight)), 2)
