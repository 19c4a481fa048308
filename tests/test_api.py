import dataclasses
import json
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from support import JOB_DESCRIPTION, RESUME_TEXT, FakeEmbedder, pipeline_client

from app.core.config import settings
from app.core.dependencies import get_embedder, get_generation_client
from app.core.rate_limit import limiter
from app.main import app
from app.store.runs import RunStore, get_run_store
from app.streaming.emitter import NDJSON_MEDIA_TYPE


def ndjson(response):
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


class ResumeApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._limiter_enabled = limiter.enabled
        limiter.enabled = False
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls):
        limiter.enabled = cls._limiter_enabled

    def setUp(self):
        self.store = RunStore(":memory:")
        self.store.init()
        self.ai = pipeline_client()
        app.dependency_overrides[get_generation_client] = lambda: self.ai
        app.dependency_overrides[get_embedder] = lambda: FakeEmbedder()
        app.dependency_overrides[get_run_store] = lambda: self.store

    def tearDown(self):
        app.dependency_overrides.clear()
        self.store.close()

    def _optimize(self, user_id="user-1", **overrides):
        payload = {"resumeText": RESUME_TEXT, "jobDescription": JOB_DESCRIPTION, "fileName": "cv.pdf"}
        payload.update(overrides)
        response = self.client.post("/v1/optimize-resume", json=payload, headers={"X-User-Id": user_id})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith(NDJSON_MEDIA_TYPE))
        return ndjson(response)

    def test_health(self):
        response = self.client.get("/v1/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "healthy")

    def test_optimize_streams_frames_until_complete(self):
        frames = self._optimize()
        self.assertEqual(frames[0], {"status": "started"})
        self.assertEqual(frames[-1]["status"], "complete")
        statuses = [frame["status"] for frame in frames]
        self.assertEqual(statuses.count("complete") + statuses.count("error"), 1)
        self.assertTrue(frames[-1]["data"]["runId"])

    def test_empty_resume_returns_single_error_frame(self):
        frames = self._optimize(resumeText="")
        self.assertEqual(frames, [{"status": "error", "error": "resumeText is required."}])
        self.assertEqual(self.ai.calls, [])

    def test_history_is_scoped_to_caller(self):
        run_id = self._optimize()[-1]["data"]["runId"]

        history = self.client.get("/v1/history", headers={"X-User-Id": "user-1"}).json()
        self.assertEqual([item["id"] for item in history], [run_id])
        self.assertEqual(history[0]["jobTitle"], "Senior Backend Engineer")
        self.assertEqual(self.client.get("/v1/history", headers={"X-User-Id": "user-2"}).json(), [])

        detail = self.client.get(f"/v1/history/{run_id}", headers={"X-User-Id": "user-1"})
        self.assertEqual(detail.status_code, 200)
        body = detail.json()
        self.assertEqual(body["runId"], run_id)
        self.assertEqual(body["fileName"], "cv.pdf")
        self.assertIsNone(body["scorecard"])

        other = self.client.get(f"/v1/history/{run_id}", headers={"X-User-Id": "user-2"})
        self.assertEqual(other.status_code, 404)

    def test_score_then_delete(self):
        run_id = self._optimize()[-1]["data"]["runId"]

        response = self.client.post("/v1/score", json={"runId": run_id})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["runId"], run_id)
        self.assertEqual(len(body["metrics"]), 8)
        self.assertIn("originalScore", body["metrics"][0])
        self.assertIsInstance(body["strongMatches"], list)
        self.assertIsInstance(body["improvements"], list)

        detail = self.client.get(f"/v1/history/{run_id}", headers={"X-User-Id": "user-1"}).json()
        self.assertEqual(detail["scorecard"]["overallScore"], body["overallScore"])

        deleted = self.client.delete(f"/v1/history/{run_id}", headers={"X-User-Id": "user-1"})
        self.assertEqual(deleted.json(), {"runId": run_id, "deleted": True})
        self.assertEqual(self.client.post("/v1/score", json={"runId": run_id}).status_code, 404)
        self.assertEqual(
            self.client.delete(f"/v1/history/{run_id}", headers={"X-User-Id": "user-1"}).status_code,
            404,
        )

    def test_score_unknown_run_is_404(self):
        response = self.client.post("/v1/score", json={"runId": "does-not-exist"})
        self.assertEqual(response.status_code, 404)

    def test_protected_mode_requires_api_key(self):
        protected = dataclasses.replace(settings, auth_mode="protected", api_key="secret")
        with patch("app.core.security.settings", protected):
            self.assertEqual(self.client.get("/v1/history").status_code, 401)
            response = self.client.get("/v1/history", headers={"X-API-Key": "secret"})
            self.assertEqual(response.status_code, 200)


if __name__ == "__main__":
    unittest.main()
