from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from .resume import CamelModel


class ScoreMetric(CamelModel):
    name: str
    original_score: float = Field(ge=0.0, le=100.0)
    optimized_score: float = Field(ge=0.0, le=100.0)


class SkillGap(CamelModel):
    matched: list[str] = Field(default_factory=list)
    missing_keywords: list[str] = Field(default_factory=list)


class Improvement(CamelModel):
    category: str
    priority: Literal["high", "medium", "low"]
    suggestion: str
    impact: int = Field(ge=0, le=100)


class Scorecard(CamelModel):
    run_id: str
    overall_score: float = Field(ge=0.0, le=100.0)
    original_overall_score: float = Field(ge=0.0, le=100.0)
    metrics: list[ScoreMetric] = Field(default_factory=list)
    red_flags: list[str] = Field(default_factory=list)
    missing_keywords: list[str] = Field(default_factory=list)
    strong_matches: list[str] = Field(default_factory=list)
    improvements: list[Improvement] = Field(default_factory=list)
    computed_at: datetime | None = None


class ScoreRequest(CamelModel):
    run_id: str = Field(min_length=1, max_length=200)
