from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import date, datetime, timezone
from typing import Callable, Mapping

from app.ai.types import AIClient, EmbeddingClient
from app.core.errors import RunNotFoundError
from app.schemas.optimization import OptimizationRun
from app.schemas.scorecard import Scorecard, ScoreMetric
from app.store.runs import RunStore

from . import metrics
from .aggregator import WeightedAggregator
from .fallback import GenerativeScorer, PairScore
from .improvements import suggest_improvements
from .red_flags import extract_red_flags

logger = logging.getLogger(__name__)

KEYWORD_MATCH = "Keyword Match"
EXPERIENCE_ALIGNMENT = "Experience Alignment"
BULLET_STRENGTH = "Bullet Strength"
ROLE_ALIGNMENT = "Role Alignment"
SKILLS_MATCH = "Skills Match"
EDUCATION = "Education & Certifications"
FORMATTING = "Formatting & Structure"
CUSTOMIZATION = "Customization Level"

_INSTRUCTIONS = {
    KEYWORD_MATCH: "How well does each resume use the job's important keywords and phrases in context?",
    EXPERIENCE_ALIGNMENT: (
        "How well does the seniority of each resume's experience (titles, scope, years) "
        "match the seniority the job asks for?"
    ),
    ROLE_ALIGNMENT: (
        "Compare job titles, responsibilities and scope in each resume with the target role. "
        "How closely does each candidate's past work resemble this role?"
    ),
    SKILLS_MATCH: "How well do the skills shown in each resume cover the job's required skills?",
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _requirement_lines(job_description: str) -> list[str]:
    lines = []
    for line in job_description.splitlines():
        stripped = line.strip()
        if stripped.startswith(("-", "•")):
            text = stripped.lstrip("-• ").strip()
            if text:
                lines.append(text)
    return lines


class ScorecardEngine:
    """Scores a persisted run's original and optimized résumés and upserts the scorecard."""

    def __init__(
        self,
        store: RunStore,
        client: AIClient,
        embedder: EmbeddingClient,
        *,
        weights: Mapping[str, float] | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._store = store
        self._embedder = embedder
        self._scorer = GenerativeScorer(client)
        self._aggregator = WeightedAggregator(weights)
        self._clock = clock

    async def compute(self, run_id: str) -> Scorecard:
        started_at = time.perf_counter()
        run = await asyncio.to_thread(self._store.get_run, run_id)
        if run is None:
            raise RunNotFoundError(run_id)

        metric_list = await self._metrics(run)
        now = self._clock()
        optimized_gap = metrics.skill_gap(
            run.optimized_resume, self._requirements(run), keywords=self._keywords(run)
        )
        red_flags = extract_red_flags(run.optimized_resume, today=now.date())
        scorecard = Scorecard(
            run_id=run.run_id,
            overall_score=self._aggregator.overall(metric_list, "optimized"),
            original_overall_score=self._aggregator.overall(metric_list, "original"),
            metrics=metric_list,
            red_flags=red_flags,
            missing_keywords=optimized_gap.missing_keywords,
            strong_matches=optimized_gap.matched,
            improvements=suggest_improvements(metric_list, optimized_gap.missing_keywords, red_flags=red_flags),
            computed_at=now,
        )
        await asyncio.to_thread(self._store.upsert_scorecard, scorecard)
        logger.info(
            json.dumps(
                {
                    "event": "scorecard_computed",
                    "run_id": run.run_id,
                    "overall_score": scorecard.overall_score,
                    "original_overall_score": scorecard.original_overall_score,
                    "red_flags": len(scorecard.red_flags),
                    "duration_ms": int((time.perf_counter() - started_at) * 1000),
                }
            )
        )
        return scorecard

    @staticmethod
    def _requirements(run: OptimizationRun) -> list[str]:
        return list(run.jd_info.requirements) or _requirement_lines(run.job_description)

    @staticmethod
    def _keywords(run: OptimizationRun) -> list[str]:
        return list(run.jd_info.keywords) or metrics.extract_keywords(run.job_description)

    async def _metrics(self, run: OptimizationRun) -> list[ScoreMetric]:
        original, optimized = run.original_resume, run.optimized_resume
        job_description = run.job_description
        original_text = metrics.flatten_resume(original)
        optimized_text = metrics.flatten_resume(optimized)
        keywords = self._keywords(run)
        requirements = self._requirements(run)
        target_title = run.jd_info.target_title
        today: date = self._clock().date()

        def fallback_args() -> dict[str, str]:
            return {
                "job_description": job_description,
                "original_text": original_text,
                "optimized_text": optimized_text,
            }

        keyword = await self._scorer.with_fallback(
            KEYWORD_MATCH,
            PairScore(
                metrics.keyword_match_score(original_text, keywords),
                metrics.keyword_match_score(optimized_text, keywords),
            ),
            instruction=_INSTRUCTIONS[KEYWORD_MATCH],
            **fallback_args(),
        )

        experience = PairScore(
            metrics.experience_alignment_score(original, job_description, target_title),
            metrics.experience_alignment_score(optimized, job_description, target_title),
        ).clamped()
        refined = await self._scorer.score_pair(
            EXPERIENCE_ALIGNMENT, _INSTRUCTIONS[EXPERIENCE_ALIGNMENT], **fallback_args()
        )
        if refined is not None:
            experience = PairScore(
                (experience.original + refined.original) / 2,
                (experience.optimized + refined.optimized) / 2,
            ).clamped()

        bullets = PairScore(
            metrics.bullet_strength_score(original.all_bullets()),
            metrics.bullet_strength_score(optimized.all_bullets()),
        )

        role = await self._scorer.score_pair(ROLE_ALIGNMENT, _INSTRUCTIONS[ROLE_ALIGNMENT], **fallback_args())
        if role is None:
            role = PairScore(0.0, 0.0)

        skills = await self._scorer.with_fallback(
            SKILLS_MATCH,
            PairScore(
                metrics.skills_match_score(original, requirements, keywords=keywords),
                metrics.skills_match_score(optimized, requirements, keywords=keywords),
            ),
            instruction=_INSTRUCTIONS[SKILLS_MATCH],
            **fallback_args(),
        )

        education = PairScore(
            metrics.education_certifications_score(original, job_description, today=today),
            metrics.education_certifications_score(optimized, job_description, today=today),
        )
        formatting = PairScore(metrics.formatting_score(original), metrics.formatting_score(optimized))
        customization = await self._customization(job_description, original_text, optimized_text)

        pairs = (
            (KEYWORD_MATCH, keyword),
            (EXPERIENCE_ALIGNMENT, experience),
            (BULLET_STRENGTH, bullets),
            (ROLE_ALIGNMENT, role),
            (SKILLS_MATCH, skills),
            (EDUCATION, education),
            (FORMATTING, formatting),
            (CUSTOMIZATION, customization),
        )
        return [
            ScoreMetric(name=name, original_score=pair.clamped().original, optimized_score=pair.clamped().optimized)
            for name, pair in pairs
        ]

    async def _customization(self, job_description: str, original_text: str, optimized_text: str) -> PairScore:
        try:
            vectors = await self._embedder.embed([job_description, original_text, optimized_text])
            if len(vectors) != 3:
                raise ValueError(f"expected 3 embeddings, got {len(vectors)}")
            job_vector, original_vector, optimized_vector = vectors
            return PairScore(
                metrics.customization_similarity(job_vector, original_vector),
                metrics.customization_similarity(job_vector, optimized_vector),
            )
        except Exception as exc:  # noqa: BLE001 - embedding failures never abort scoring
            logger.warning(json.dumps({"event": "customization_embedding_failed", "error": type(exc).__name__}))
            return PairScore(0.0, 0.0)
