from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

from app.ai.types import AIClient
from app.core import events
from app.core.config import settings
from app.core.errors import GenerationError, InputValidationError
from app.schemas.optimization import (
    BulletRewriteResult,
    JobDescriptionInfo,
    KeywordAssignment,
    OptimizationRun,
    OptimizeRequest,
    VerbMemory,
)
from app.schemas.resume import ResumeDocument
from app.store.runs import RunStore
from app.streaming.emitter import ProgressStreamEmitter

from . import descriptors, stages
from .cache import ParsedResumeCache, resume_cache_key
from .descriptors import StageDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _short_hash(value: str | None) -> str:
    normalized = (value or "").strip()
    if not normalized:
        return ""
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:12]


class StageFailedError(RuntimeError):
    def __init__(self, stage: StageDescriptor, cause: BaseException):
        code = getattr(cause, "code", "stage_failed")
        super().__init__(f"{stage.label} failed ({code}).")
        self.stage = stage
        self.code = code


class OptimizationOrchestrator:
    """Runs one tailoring pipeline per call and reports progress through an emitter.

    Stages are awaited strictly in order. Required stages abort the run with a
    single error frame; best-effort stages keep their pre-stage value on failure.
    Nothing is persisted unless every required stage succeeded.
    """

    def __init__(
        self,
        client: AIClient,
        store: RunStore,
        cache: ParsedResumeCache | None = None,
        *,
        ai_model: str = "",
        max_resume_chars: int | None = None,
        max_job_description_chars: int | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._client = client
        self._store = store
        self._cache = cache
        self._ai_model = ai_model
        self._max_resume_chars = max_resume_chars or settings.max_resume_chars
        self._max_job_description_chars = max_job_description_chars or settings.max_job_description_chars
        self._clock = clock

    def validate(self, request: OptimizeRequest) -> None:
        resume_text = (request.resume_text or "").strip()
        job_description = (request.job_description or "").strip()
        if not resume_text:
            raise InputValidationError("resumeText is required.")
        if not job_description:
            raise InputValidationError("jobDescription is required.")
        if len(resume_text) > self._max_resume_chars:
            raise InputValidationError(f"resumeText exceeds {self._max_resume_chars} characters.")
        if len(job_description) > self._max_job_description_chars:
            raise InputValidationError(
                f"jobDescription exceeds {self._max_job_description_chars} characters."
            )

    async def run(
        self,
        request: OptimizeRequest,
        owner_id: str,
        emitter: ProgressStreamEmitter,
    ) -> OptimizationRun | None:
        started_at = time.perf_counter()
        try:
            self.validate(request)
        except InputValidationError as exc:
            logger.info(json.dumps({"event": "pipeline_rejected", "reason": str(exc)}))
            await emitter.error(str(exc))
            return None

        logger.info(
            json.dumps(
                {
                    "event": "pipeline_started",
                    "owner_hash": _short_hash(owner_id),
                    "resume_len": len(request.resume_text),
                    "job_description_len": len(request.job_description),
                }
            )
        )

        try:
            await emitter.started()
            await emitter.progress(events.AUTHENTICATING)
            run = await self._execute(request, owner_id, emitter)
        except StageFailedError as exc:
            await emitter.error(str(exc))
            return None
        except Exception as exc:
            logger.exception(
                json.dumps(
                    {
                        "event": "pipeline_error",
                        "error": type(exc).__name__,
                        "duration_ms": int((time.perf_counter() - started_at) * 1000),
                    }
                )
            )
            if not emitter.terminated:
                await emitter.error("Resume optimization failed unexpectedly.")
            return None

        await emitter.complete(run.completion_payload())
        logger.info(
            json.dumps(
                {
                    "event": "pipeline_complete",
                    "run_id": run.run_id,
                    "bullets": len(run.bullet_rewrites),
                    "duration_ms": int((time.perf_counter() - started_at) * 1000),
                }
            )
        )
        return run

    async def _run_stage(
        self,
        stage: StageDescriptor,
        call: Callable[[], Awaitable[T]],
        *,
        fallback: T | None = None,
        context: dict[str, Any] | None = None,
    ) -> T | None:
        started = time.perf_counter()
        try:
            return await call()
        except Exception as exc:
            record = {
                "event": "pipeline_stage_failed" if stage.required else "pipeline_stage_skipped",
                "step": stage.step,
                "criticality": stage.criticality.value,
                "error": type(exc).__name__,
                "code": getattr(exc, "code", None),
                "duration_ms": int((time.perf_counter() - started) * 1000),
            }
            if context:
                record.update(context)
            if stage.required:
                logger.warning(json.dumps(record))
                raise StageFailedError(stage, exc) from exc
            if not isinstance(exc, GenerationError):
                logger.exception(json.dumps(record))
            else:
                logger.warning(json.dumps(record))
            return fallback

    async def _execute(
        self,
        request: OptimizeRequest,
        owner_id: str,
        emitter: ProgressStreamEmitter,
    ) -> OptimizationRun:
        job_description = request.job_description.strip()
        resume_text = request.resume_text.strip()

        jd_info: JobDescriptionInfo = await self._run_stage(
            descriptors.EXTRACT_JD_INFO,
            lambda: stages.extract_jd_info(self._client, job_description),
        )
        await emitter.progress(
            events.EXTRACTING_JD_INFO,
            {
                "targetTitle": jd_info.target_title,
                "targetCompany": jd_info.target_company,
                "keywords": list(jd_info.keywords),
            },
        )

        original: ResumeDocument = await self._run_stage(
            descriptors.PARSE_RESUME,
            lambda: stages.parse_resume(self._client, resume_text, cache=self._cache),
        )
        positions = original.bullet_positions()
        await emitter.progress(
            events.PARSING_RESUME,
            {"workEntries": len(original.work), "bullets": len(positions)},
        )

        assignments: list[KeywordAssignment] = await self._run_stage(
            descriptors.MAP_KEYWORDS,
            lambda: stages.map_keywords(self._client, original, list(jd_info.keywords)),
        )
        await emitter.progress(events.MAPPING_KEYWORDS, {"assignments": len(assignments)})

        bullet_results = await self._rewrite_bullets(
            original, job_description, jd_info, assignments, emitter
        )

        optimized = original.clone()
        for result in bullet_results:
            optimized.work[result.work_index].bullets[result.bullet_index] = result.rewritten_bullet
        rewritten_bullets = tuple(result.rewritten_bullet for result in bullet_results)

        summary = await self._run_stage(
            descriptors.REWRITE_SUMMARY,
            lambda: stages.rewrite_summary(
                self._client,
                stages.SummaryContext(
                    original_summary=original.summary,
                    optimized_bullets=rewritten_bullets,
                    skills=tuple(original.skills),
                    jd_info=jd_info,
                    job_description=job_description,
                    experience_snapshot=stages.experience_snapshot(original, today=self._clock().date()),
                ),
            ),
            fallback=original.summary,
        )
        optimized.summary = summary
        await emitter.progress(events.REWRITING_SUMMARY, {"rewritten": summary != original.summary})

        skills = await self._run_stage(
            descriptors.REWRITE_SKILLS,
            lambda: stages.rewrite_skills(
                self._client,
                stages.SkillsContext(
                    original_skills=tuple(original.skills),
                    optimized_summary=summary,
                    optimized_bullets=rewritten_bullets,
                    jd_info=jd_info,
                    job_description=job_description,
                ),
            ),
            fallback=list(original.skills),
        )
        optimized.skills = list(skills)
        await emitter.progress(events.REWRITING_SKILLS, {"skills": list(skills)})

        if original.projects:
            projects = await self._run_stage(
                descriptors.REWRITE_PROJECTS,
                lambda: stages.rewrite_projects(
                    self._client,
                    stages.ProjectsContext(
                        projects=tuple(original.projects),
                        jd_info=jd_info,
                        job_description=job_description,
                        skills=tuple(skills),
                        summary=summary,
                    ),
                ),
                fallback=[project.model_copy(deep=True) for project in original.projects],
            )
            optimized.projects = list(projects)
            await emitter.progress(events.REWRITING_PROJECTS, {"projects": len(projects)})

        run = OptimizationRun(
            run_id=uuid.uuid4().hex,
            owner_id=owner_id,
            created_at=self._clock(),
            job_description=job_description,
            template_id=request.template_id,
            file_name=request.file_name,
            original_text_hash=resume_cache_key(resume_text),
            original_resume=original,
            optimized_resume=optimized,
            jd_info=jd_info,
            bullet_rewrites=bullet_results,
            summary_rewrite=summary,
            skills_rewrite=list(skills),
            ai_model=self._ai_model,
        )

        async def _persist() -> None:
            await asyncio.to_thread(self._store.create_run, run)

        await self._run_stage(descriptors.PERSIST, _persist)
        await emitter.progress(events.PERSIST, {"runId": run.run_id})
        return run

    async def _rewrite_bullets(
        self,
        original: ResumeDocument,
        job_description: str,
        jd_info: JobDescriptionInfo,
        assignments: list[KeywordAssignment],
        emitter: ProgressStreamEmitter,
    ) -> list[BulletRewriteResult]:
        assigned = {(item.work_index, item.bullet_index): item.assigned_keywords for item in assignments}
        positions = original.bullet_positions()
        total = len(positions)
        memory = VerbMemory()
        results: list[BulletRewriteResult] = []

        for index, (work_index, bullet_index) in enumerate(positions):
            work = original.work[work_index]
            request = stages.BulletRewriteRequest(
                work_index=work_index,
                bullet_index=bullet_index,
                bullet=work.bullets[bullet_index],
                assigned_keywords=tuple(assigned.get((work_index, bullet_index), [])),
                job_title=work.title,
                company=work.company,
                job_description=job_description,
                skills=tuple(original.skills),
                jd_info=jd_info,
            )
            result, memory = await self._run_stage(
                descriptors.REWRITE_BULLET,
                lambda: stages.rewrite_bullet(self._client, request, memory),
                context={"work_index": work_index, "bullet_index": bullet_index},
            )
            results.append(result)
            await emitter.progress(
                events.REWRITING_BULLET,
                {
                    "workIndex": work_index,
                    "bulletIndex": bullet_index,
                    "index": index + 1,
                    "total": total,
                    "rewrittenBullet": result.rewritten_bullet,
                    "keywordsUsed": list(result.keywords_used),
                },
            )
        return results
