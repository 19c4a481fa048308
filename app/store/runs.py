from __future__ import annotations

import json
import os
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Any

from app.core.config import settings
from app.schemas.optimization import OptimizationRun, RunSummary
from app.schemas.scorecard import Scorecard

_store: "RunStore | None" = None
_store_lock = threading.Lock()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RunStore:
    """sqlite persistence for optimization runs and their scorecards."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._conn_lock = threading.Lock()

    @property
    def db_path(self) -> str:
        return self._db_path

    def _get_connection(self) -> sqlite3.Connection:
        with self._conn_lock:
            if self._conn is not None:
                return self._conn

            directory = os.path.dirname(self._db_path)
            if directory and self._db_path != ":memory:":
                os.makedirs(directory, exist_ok=True)

            conn = sqlite3.connect(
                self._db_path,
                check_same_thread=False,
                timeout=5,
                isolation_level=None,
            )
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA busy_timeout=5000;")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS optimization_runs (
                    run_id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    job_title TEXT NOT NULL,
                    company TEXT NOT NULL,
                    payload_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    deleted_at TEXT
                );
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_optimization_runs_owner
                ON optimization_runs (owner_id, created_at);
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS scorecards (
                    run_id TEXT PRIMARY KEY,
                    overall_score REAL NOT NULL,
                    original_overall_score REAL NOT NULL,
                    payload_json TEXT NOT NULL,
                    computed_at TEXT NOT NULL
                );
                """
            )
            self._conn = conn
            return conn

    def init(self) -> None:
        self._get_connection()

    def close(self) -> None:
        with self._conn_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def create_run(self, run: OptimizationRun) -> None:
        conn = self._get_connection()
        payload_json = run.model_dump_json(by_alias=True)
        with self._conn_lock:
            conn.execute(
                """
                INSERT INTO optimization_runs (
                    run_id, owner_id, job_title, company, payload_json, created_at, deleted_at
                ) VALUES (?, ?, ?, ?, ?, ?, NULL)
                """,
                (
                    run.run_id,
                    run.owner_id,
                    run.jd_info.target_title,
                    run.jd_info.target_company,
                    payload_json,
                    run.created_at.isoformat(),
                ),
            )
            conn.commit()

    def get_run(self, run_id: str, *, include_deleted: bool = False) -> OptimizationRun | None:
        conn = self._get_connection()
        with self._conn_lock:
            cur = conn.execute(
                "SELECT payload_json, deleted_at FROM optimization_runs WHERE run_id = ?",
                (run_id,),
            )
            row = cur.fetchone()

        if not row:
            return None
        if row[1] and not include_deleted:
            return None
        run = OptimizationRun.model_validate_json(row[0])
        if row[1]:
            run = run.model_copy(update={"deleted_at": datetime.fromisoformat(row[1])})
        return run

    def list_runs(self, owner_id: str, limit: int = 50) -> list[RunSummary]:
        conn = self._get_connection()
        with self._conn_lock:
            cur = conn.execute(
                """
                SELECT run_id, created_at, job_title, company
                FROM optimization_runs
                WHERE owner_id = ? AND deleted_at IS NULL
                ORDER BY created_at DESC
                LIMIT ?
                """,
                (owner_id, max(1, int(limit))),
            )
            rows = cur.fetchall()

        return [
            RunSummary(
                id=row[0],
                date=datetime.fromisoformat(row[1]),
                job_title=row[2],
                company=row[3],
            )
            for row in rows
        ]

    def soft_delete_run(self, run_id: str, owner_id: str) -> bool:
        conn = self._get_connection()
        with self._conn_lock:
            cur = conn.execute(
                """
                UPDATE optimization_runs SET deleted_at = ?
                WHERE run_id = ? AND owner_id = ? AND deleted_at IS NULL
                """,
                (_utc_now().isoformat(), run_id, owner_id),
            )
            conn.commit()
            return cur.rowcount > 0

    def upsert_scorecard(self, scorecard: Scorecard) -> None:
        conn = self._get_connection()
        computed_at = scorecard.computed_at or _utc_now()
        payload_json = scorecard.model_dump_json(by_alias=True)
        with self._conn_lock:
            conn.execute(
                """
                INSERT INTO scorecards (
                    run_id, overall_score, original_overall_score, payload_json, computed_at
                ) VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(run_id) DO UPDATE SET
                    overall_score = excluded.overall_score,
                    original_overall_score = excluded.original_overall_score,
                    payload_json = excluded.payload_json,
                    computed_at = excluded.computed_at
                """,
                (
                    scorecard.run_id,
                    scorecard.overall_score,
                    scorecard.original_overall_score,
                    payload_json,
                    computed_at.isoformat(),
                ),
            )
            conn.commit()

    def get_scorecard(self, run_id: str) -> Scorecard | None:
        conn = self._get_connection()
        with self._conn_lock:
            cur = conn.execute("SELECT payload_json FROM scorecards WHERE run_id = ?", (run_id,))
            row = cur.fetchone()
        if not row:
            return None
        return Scorecard.model_validate_json(row[0])

    def count_scorecards(self, run_id: str) -> int:
        conn = self._get_connection()
        with self._conn_lock:
            cur = conn.execute("SELECT COUNT(*) FROM scorecards WHERE run_id = ?", (run_id,))
            row: Any = cur.fetchone()
        return int(row[0]) if row else 0


def get_run_store() -> RunStore:
    global _store
    with _store_lock:
        if _store is None:
            _store = RunStore(settings.runs_db_path)
        return _store
