import os
import tempfile
import unittest
from datetime import timedelta

from support import FIXED_NOW, make_run

from app.schemas.scorecard import Scorecard, ScoreMetric
from app.store.runs import RunStore


class RunStoreTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.store = RunStore(os.path.join(self.tmpdir.name, "nested", "runs.db"))
        self.store.init()

    def tearDown(self):
        self.store.close()
        self.tmpdir.cleanup()

    def test_round_trips_run(self):
        run = make_run()
        self.store.create_run(run)
        loaded = self.store.get_run("run-1")

        self.assertEqual(loaded, run)
        self.assertEqual(loaded.original_resume.work[0].from_, "2020-01")
        self.assertIsNone(self.store.get_run("nope"))

    def test_history_is_newest_first_and_scoped_to_owner(self):
        older = make_run("older")
        newer = make_run("newer").model_copy(update={"created_at": FIXED_NOW + timedelta(days=1)})
        self.store.create_run(older)
        self.store.create_run(newer)
        self.store.create_run(make_run("other", owner_id="owner-2"))

        history = self.store.list_runs("owner-1")
        self.assertEqual([item.id for item in history], ["newer", "older"])
        self.assertEqual(history[0].job_title, "Senior Backend Engineer")
        self.assertEqual(history[0].company, "Acme Cloud")
        self.assertEqual(len(self.store.list_runs("owner-1", limit=1)), 1)

    def test_soft_delete_hides_run(self):
        self.store.create_run(make_run())
        self.assertFalse(self.store.soft_delete_run("run-1", "someone-else"))
        self.assertTrue(self.store.soft_delete_run("run-1", "owner-1"))
        self.assertFalse(self.store.soft_delete_run("run-1", "owner-1"))

        self.assertIsNone(self.store.get_run("run-1"))
        self.assertIsNotNone(self.store.get_run("run-1", include_deleted=True).deleted_at)
        self.assertEqual(self.store.list_runs("owner-1"), [])

    def test_scorecard_upsert_overwrites(self):
        first = Scorecard(
            run_id="run-1",
            overall_score=50.0,
            original_overall_score=40.0,
            metrics=[ScoreMetric(name="Keyword Match", original_score=40.0, optimized_score=50.0)],
            computed_at=FIXED_NOW,
        )
        second = first.model_copy(update={"overall_score": 60.0, "red_flags": ["No email address provided."]})
        self.store.upsert_scorecard(first)
        self.store.upsert_scorecard(second)

        self.assertEqual(self.store.count_scorecards("run-1"), 1)
        self.assertEqual(self.store.get_scorecard("run-1"), second)
        self.assertIsNone(self.store.get_scorecard("run-2"))


if __name__ == "__main__":
    unittest.main()
