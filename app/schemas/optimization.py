from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Literal

from pydantic import ConfigDict, Field, field_validator

from .resume import CamelModel, ResumeDocument

FrameStatus = Literal["started", "progress", "complete", "error"]

_VERB_CHARS = re.compile(r"[^A-Za-z]")


class OptimizeRequest(CamelModel):
    resume_text: str = ""
    job_description: str = ""
    template_id: str | None = None
    file_name: str | None = None


class JobDescriptionInfo(CamelModel):
    target_title: str = ""
    target_company: str = ""
    requirements: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)


class KeywordAssignment(CamelModel):
    work_index: int = Field(ge=0)
    bullet_index: int = Field(ge=0)
    assigned_keywords: list[str] = Field(default_factory=list)

    @field_validator("assigned_keywords", mode="before")
    @classmethod
    def _dedupe_keywords(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        seen: set[str] = set()
        keywords: list[str] = []
        for item in value:
            if not isinstance(item, str):
                continue
            text = item.strip()
            if not text or text.lower() in seen:
                continue
            seen.add(text.lower())
            keywords.append(text)
        return keywords


class BulletRewriteResult(CamelModel):
    work_index: int
    bullet_index: int
    original_bullet: str = ""
    rewritten_bullet: str
    keywords_used: list[str] = Field(default_factory=list)


def keywords_present(text: str, keywords: list[str]) -> list[str]:
    """Keywords whose text appears in ``text`` as a case-insensitive substring."""
    lowered = text.lower()
    return [keyword for keyword in keywords if keyword and keyword.lower() in lowered]


def opening_verb(bullet: str) -> str:
    """First whitespace-delimited token, lower-cased, letters only when it has any."""
    tokens = bullet.strip().split()
    if not tokens:
        return ""
    token = tokens[0].lower()
    return _VERB_CHARS.sub("", token) or token


class VerbMemory(CamelModel):
    """Opening verbs already used by earlier bullet rewrites in a run."""

    model_config = ConfigDict(frozen=True)

    verbs: tuple[str, ...] = ()

    def with_bullet(self, bullet: str) -> "VerbMemory":
        verb = opening_verb(bullet)
        if not verb:
            return self
        return VerbMemory(verbs=(*self.verbs, verb))

    def __contains__(self, verb: object) -> bool:
        return isinstance(verb, str) and verb.lower() in self.verbs

    def __len__(self) -> int:
        return len(self.verbs)


class OptimizationRun(CamelModel):
    run_id: str
    owner_id: str
    created_at: datetime
    deleted_at: datetime | None = None
    job_description: str
    template_id: str | None = None
    file_name: str | None = None
    original_text_hash: str
    original_resume: ResumeDocument
    optimized_resume: ResumeDocument
    jd_info: JobDescriptionInfo
    bullet_rewrites: list[BulletRewriteResult] = Field(default_factory=list)
    summary_rewrite: str = ""
    skills_rewrite: list[str] = Field(default_factory=list)
    ai_model: str = ""

    def completion_payload(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "originalResume": self.original_resume.to_wire(),
            "optimizedResume": self.optimized_resume.to_wire(),
            "keywords": list(self.jd_info.keywords),
            "requirements": list(self.jd_info.requirements),
            "targetTitle": self.jd_info.target_title,
            "targetCompany": self.jd_info.target_company,
            "bulletRewrites": [item.model_dump(mode="json", by_alias=True) for item in self.bullet_rewrites],
        }


class RunSummary(CamelModel):
    id: str
    date: datetime
    job_title: str
    company: str


class ProgressFrame(CamelModel):
    status: FrameStatus
    step: str | None = None
    data: dict[str, Any] | None = None
    error: str | None = None

    def to_line(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True) + "\n"
