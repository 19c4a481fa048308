import unittest

import support  # noqa: F401

from app.core.config.scoring import METRIC_NAMES, get_metric_weights
from app.schemas.scorecard import ScoreMetric
from app.scoring.aggregator import WeightedAggregator


def _metrics(scores: dict[str, tuple[float, float]]) -> list[ScoreMetric]:
    return [
        ScoreMetric(name=name, original_score=original, optimized_score=optimized)
        for name, (original, optimized) in scores.items()
    ]


class WeightedAggregatorTests(unittest.TestCase):
    def setUp(self):
        self.aggregator = WeightedAggregator()

    def test_default_weights_are_normalised(self):
        weights = self.aggregator.weights
        self.assertEqual(set(weights), set(METRIC_NAMES))
        self.assertAlmostEqual(sum(weights.values()), 1.0)
        self.assertAlmostEqual(weights["Keyword Match"], 0.30)
        self.assertEqual(get_metric_weights(), weights)

    def test_overall_uses_same_table_for_both_sides(self):
        metrics = _metrics({name: (20.0, 70.0) for name in METRIC_NAMES})
        self.assertEqual(self.aggregator.overall(metrics, "optimized"), 70.0)
        self.assertEqual(self.aggregator.overall(metrics, "original"), 20.0)

    def test_weighted_sum(self):
        scores = {name: (0.0, 0.0) for name in METRIC_NAMES}
        scores["Keyword Match"] = (0.0, 100.0)
        scores["Customization Level"] = (100.0, 0.0)
        metrics = _metrics(scores)
        self.assertEqual(self.aggregator.overall(metrics), 30.0)
        self.assertEqual(self.aggregator.overall(metrics, "original"), 5.0)

    def test_overall_stays_in_range(self):
        for value in (0.0, 100.0):
            metrics = _metrics({name: (value, value) for name in METRIC_NAMES})
            self.assertEqual(self.aggregator.overall(metrics), value)
            self.assertEqual(self.aggregator.overall(metrics, "original"), value)

    def test_missing_metrics_renormalise_remaining_weights(self):
        metrics = _metrics({"Keyword Match": (10.0, 80.0)})
        self.assertEqual(self.aggregator.overall(metrics), 80.0)
        self.assertEqual(self.aggregator.overall([]), 0.0)

    def test_ordering_preserved_when_a_metric_is_removed(self):
        stronger = _metrics(
            {name: (0.0, score) for name, score in zip(METRIC_NAMES, (90, 85, 70, 60, 95, 50, 80, 75))}
        )
        weaker = _metrics(
            {name: (0.0, score) for name, score in zip(METRIC_NAMES, (60, 70, 65, 40, 33.33, 50, 75, 60))}
        )
        self.assertGreater(self.aggregator.overall(stronger), self.aggregator.overall(weaker))
        for name in METRIC_NAMES:
            reduced = self.aggregator.without(name)
            self.assertNotIn(name, reduced.weights)
            self.assertAlmostEqual(sum(reduced.weights.values()), 1.0)
            self.assertGreaterEqual(reduced.overall(stronger), reduced.overall(weaker))

    def test_custom_weights_are_validated(self):
        with self.assertRaises(RuntimeError):
            WeightedAggregator({"Keyword Match": -1})
        with self.assertRaises(RuntimeError):
            WeightedAggregator({"Keyword Match": 0})
        self.assertEqual(WeightedAggregator({"Keyword Match": 3, "Skills Match": 1}).weights["Keyword Match"], 0.75)

    def test_unknown_side_is_rejected(self):
        with self.assertRaises(ValueError):
            self.aggregator.overall([], "best")


if __name__ == "__main__":
    unittest.main()
