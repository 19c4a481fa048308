import json
import unittest

from support import FIXED_NOW, JD_INFO, FakeEmbedder, make_run, pipeline_client

from app.core.config.scoring import METRIC_NAMES
from app.core.errors import RunNotFoundError
from app.scoring.engine import ScorecardEngine
from app.store.runs import RunStore


def metric(scorecard, name):
    return next(item for item in scorecard.metrics if item.name == name)


class ScorecardEngineTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.store = RunStore(":memory:")
        self.store.init()
        self.store.create_run(make_run())

    def tearDown(self):
        self.store.close()

    def _engine(self, client=None, embedder=None):
        return ScorecardEngine(
            self.store,
            client or pipeline_client(),
            embedder or FakeEmbedder(),
            clock=lambda: FIXED_NOW,
        )

    async def test_metrics_in_fixed_order_and_range(self):
        scorecard = await self._engine().compute("run-1")

        self.assertEqual([item.name for item in scorecard.metrics], list(METRIC_NAMES))
        for item in scorecard.metrics:
            self.assertGreaterEqual(item.original_score, 0.0)
            self.assertLessEqual(item.optimized_score, 100.0)
        self.assertGreaterEqual(scorecard.overall_score, 0.0)
        self.assertLessEqual(scorecard.overall_score, 100.0)
        self.assertGreater(scorecard.overall_score, scorecard.original_overall_score)
        self.assertEqual(scorecard.red_flags, [])
        self.assertEqual(scorecard.missing_keywords, [])
        self.assertEqual(scorecard.strong_matches, ["Python", "Kubernetes", "PostgreSQL"])

    async def test_recompute_is_idempotent_and_upserts(self):
        engine = self._engine()
        first = await engine.compute("run-1")
        second = await engine.compute("run-1")

        self.assertEqual(first.model_dump_json(), second.model_dump_json())
        self.assertEqual(self.store.count_scorecards("run-1"), 1)
        self.assertEqual(self.store.get_scorecard("run-1"), second)

    async def test_role_alignment_comes_from_generator(self):
        client = pipeline_client()
        scorecard = await self._engine(client).compute("run-1")

        role = metric(scorecard, "Role Alignment")
        self.assertEqual((role.original_score, role.optimized_score), (40.0, 80.0))
        score_prompts = [call[1] for call in client.calls_for("score")]
        self.assertEqual(len(score_prompts), 2)
        self.assertTrue(any("Metric: Role Alignment" in prompt for prompt in score_prompts))
        self.assertTrue(any("Metric: Experience Alignment" in prompt for prompt in score_prompts))

    async def test_degenerate_keyword_heuristic_uses_fallback(self):
        self.store.create_run(make_run("run-2", jd_info={**JD_INFO, "keywords": ["Rust", "Erlang"]}))
        client = pipeline_client()
        scorecard = await self._engine(client).compute("run-2")

        keyword = metric(scorecard, "Keyword Match")
        self.assertEqual((keyword.original_score, keyword.optimized_score), (40.0, 80.0))
        self.assertTrue(any("Metric: Keyword Match" in call[1] for call in client.calls_for("score")))

    async def test_fallback_output_is_parsed_defensively(self):
        self.store.create_run(make_run("run-3", jd_info={**JD_INFO, "keywords": ["Rust"]}))
        client = pipeline_client(score=json.dumps({"original": "n/a", "optimized": 250}))
        scorecard = await self._engine(client).compute("run-3")

        keyword = metric(scorecard, "Keyword Match")
        self.assertEqual((keyword.original_score, keyword.optimized_score), (0.0, 100.0))

    async def test_generator_failure_keeps_heuristics(self):
        client = pipeline_client(score=RuntimeError("rate limited"))
        scorecard = await self._engine(client).compute("run-1")

        role = metric(scorecard, "Role Alignment")
        self.assertEqual((role.original_score, role.optimized_score), (0.0, 0.0))
        experience = metric(scorecard, "Experience Alignment")
        self.assertEqual(experience.optimized_score, 88.89)
        self.assertEqual(len(scorecard.metrics), len(METRIC_NAMES))

    async def test_customization_uses_embeddings(self):
        scorecard = await self._engine().compute("run-1")
        customization = metric(scorecard, "Customization Level")
        self.assertEqual((customization.original_score, customization.optimized_score), (60.0, 80.0))

    async def test_embedding_failure_defaults_customization_to_zero(self):
        embedder = FakeEmbedder(error=ConnectionError("embedding service down"))
        scorecard = await self._engine(embedder=embedder).compute("run-1")

        customization = metric(scorecard, "Customization Level")
        self.assertEqual((customization.original_score, customization.optimized_score), (0.0, 0.0))
        self.assertEqual(embedder.calls, 1)
        self.assertGreater(scorecard.overall_score, 0.0)

    async def test_missing_keywords_reported_for_optimized_resume(self):
        run = make_run("run-4")
        run.optimized_resume.skills = ["Python"]
        self.store.create_run(run)
        scorecard = await self._engine().compute("run-4")
        self.assertEqual(scorecard.missing_keywords, ["Kubernetes", "PostgreSQL"])
        self.assertEqual(scorecard.strong_matches, ["Python"])
        self.assertEqual(scorecard.improvements[0].category, "Skills")
        self.assertIn("Kubernetes, PostgreSQL", scorecard.improvements[0].suggestion)

    async def test_sentence_requirements_report_missing_skills(self):
        run = make_run(
            "run-5",
            jd_info={**JD_INFO, "requirements": ["Python, Kubernetes, PostgreSQL required", "Own billing reliability"]},
        )
        run.optimized_resume.skills = ["Python"]
        self.store.create_run(run)
        scorecard = await self._engine().compute("run-5")

        self.assertEqual(scorecard.missing_keywords, ["Kubernetes", "PostgreSQL"])
        self.assertEqual(scorecard.strong_matches, ["Python"])
        skills = metric(scorecard, "Skills Match")
        self.assertEqual(skills.optimized_score, 33.33)

    async def test_unknown_or_deleted_run_is_not_found(self):
        with self.assertRaises(RunNotFoundError):
            await self._engine().compute("missing")

        self.assertTrue(self.store.soft_delete_run("run-1", "owner-1"))
        with self.assertRaises(RunNotFoundError):
            await self._engine().compute("run-1")


if __name__ == "__main__":
    unittest.main()
