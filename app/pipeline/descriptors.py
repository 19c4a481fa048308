from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.core import events


class StageCriticality(str, Enum):
    REQUIRED = "required"
    BEST_EFFORT = "best_effort"


@dataclass(frozen=True)
class StageDescriptor:
    step: str
    label: str
    criticality: StageCriticality

    @property
    def required(self) -> bool:
        return self.criticality is StageCriticality.REQUIRED


EXTRACT_JD_INFO = StageDescriptor(events.EXTRACTING_JD_INFO, "Analyzing job description", StageCriticality.REQUIRED)
PARSE_RESUME = StageDescriptor(events.PARSING_RESUME, "Parsing resume", StageCriticality.REQUIRED)
MAP_KEYWORDS = StageDescriptor(events.MAPPING_KEYWORDS, "Mapping keywords to bullets", StageCriticality.REQUIRED)
REWRITE_BULLET = StageDescriptor(events.REWRITING_BULLET, "Rewriting bullet", StageCriticality.REQUIRED)
REWRITE_SUMMARY = StageDescriptor(events.REWRITING_SUMMARY, "Rewriting summary", StageCriticality.BEST_EFFORT)
REWRITE_SKILLS = StageDescriptor(events.REWRITING_SKILLS, "Rewriting skills", StageCriticality.BEST_EFFORT)
REWRITE_PROJECTS = StageDescriptor(events.REWRITING_PROJECTS, "Rewriting projects", StageCriticality.BEST_EFFORT)
PERSIST = StageDescriptor(events.PERSIST, "Saving optimization", StageCriticality.REQUIRED)

PIPELINE_STAGES: tuple[StageDescriptor, ...] = (
    EXTRACT_JD_INFO,
    PARSE_RESUME,
    MAP_KEYWORDS,
    REWRITE_BULLET,
    REWRITE_SUMMARY,
    REWRITE_SKILLS,
    REWRITE_PROJECTS,
    PERSIST,
)
