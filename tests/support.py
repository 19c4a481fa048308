import json
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

# Marker phrases found in each stage's system prompt.
ROUTES = {
    "jd": "job description parsing assistant",
    "parse": "professional resume parser",
    "map": "keyword mapping assistant",
    "bullet": "world-class resume editor",
    "summary": "Rewrite the professional summary",
    "skills": "rewriting the Skills section",
    "projects": "rewriting the Projects section",
    "score": "expert resume evaluator",
}

JOB_DESCRIPTION = (
    "Senior Backend Engineer at Acme Cloud\n"
    "- Python services at scale\n"
    "- Kubernetes in production\n"
    "- PostgreSQL data modelling\n"
    "Bachelor's degree in Computer Science or equivalent."
)

RESUME_TEXT = "Jane Doe\njane@example.com\nSoftware Engineer at Initech 2019 - Present\n- Built APIs\n"

PARSED_RESUME: dict[str, Any] = {
    "name": "Jane Doe",
    "contact": {"email": "jane@example.com", "phone": "+1 555 0100", "links": ["https://github.com/jane"]},
    "summary": "Backend engineer who ships reliable services.",
    "skills": ["Python", "Docker"],
    "work": [
        {
            "company": "Initech",
            "title": "Software Engineer",
            "from": "2020-01",
            "to": "Present",
            "bullets": [
                "Built internal APIs for billing",
                "Worked with product on roadmap",
                "Maintained CI pipelines",
            ],
        },
        {
            "company": "Globex",
            "title": "Junior Developer",
            "from": "2017-06",
            "to": "2019-12",
            "bullets": ["Fixed bugs in the payments service", "Wrote unit tests"],
        },
    ],
    "education": [{"institution": "State University", "degree": "Bachelor of Science", "field": "Computer Science"}],
    "projects": [{"name": "tracer", "description": "A tiny tracing library", "technologies": ["Python"]}],
}

JD_INFO = {
    "targetTitle": "Senior Backend Engineer",
    "targetCompany": "Acme Cloud",
    "requirements": ["Python", "Kubernetes", "PostgreSQL"],
    "keywords": ["Python", "Kubernetes", "PostgreSQL", "APIs"],
}

ASSIGNMENTS = {
    "assignments": [
        {"workIndex": 0, "bulletIndex": 0, "assignedKeywords": ["Python", "APIs"]},
        {"workIndex": 0, "bulletIndex": 2, "assignedKeywords": ["Kubernetes"]},
        {"workIndex": 1, "bulletIndex": 0, "assignedKeywords": ["PostgreSQL"]},
    ]
}

OPENING_VERBS = ["Led", "Built", "Optimized", "Delivered", "Designed", "Automated"]

_BULLET_RE = re.compile(r"ORIGINAL BULLET:\n(.*?)\n\n", re.DOTALL)
_KEYWORDS_RE = re.compile(r"ASSIGNED KEYWORDS:\n(.*?)\n\n", re.DOTALL)


def bullet_from_prompt(user_prompt: str) -> str:
    match = _BULLET_RE.search(user_prompt)
    return match.group(1).strip() if match else ""


def keywords_from_prompt(user_prompt: str) -> list[str]:
    match = _KEYWORDS_RE.search(user_prompt)
    if not match or match.group(1).strip() == "none":
        return []
    return [item.strip() for item in match.group(1).split(",") if item.strip()]


class ScriptedAIClient:
    """AIClient double that answers per stage and records every call.

    A route value may be a string, an exception instance (raised), or a callable
    ``(system_prompt, user_prompt) -> str``.
    """

    def __init__(self, **routes: Any):
        self.routes = routes
        self.calls: list[tuple[str, str, str]] = []

    def _route(self, system_prompt: str) -> str:
        for name, marker in ROUTES.items():
            if marker in system_prompt:
                return name
        raise AssertionError(f"unrouted prompt: {system_prompt[:80]}")

    def calls_for(self, route: str) -> list[tuple[str, str, str]]:
        return [call for call in self.calls if call[0] == route]

    async def complete(self, system_prompt: str, user_prompt: str, *, json_mode: bool = False) -> str:
        route = self._route(system_prompt)
        self.calls.append((route, system_prompt, user_prompt))
        if route not in self.routes:
            raise AssertionError(f"no scripted reply for route '{route}'")
        reply = self.routes[route]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(system_prompt, user_prompt)
        return reply


def default_bullet_writer() -> Callable[[str, str], str]:
    counter = {"n": 0}

    def write(system_prompt: str, user_prompt: str) -> str:
        verb = OPENING_VERBS[counter["n"] % len(OPENING_VERBS)]
        counter["n"] += 1
        original = bullet_from_prompt(user_prompt)
        keywords = keywords_from_prompt(user_prompt)
        suffix = f" using {keywords[0]}" if keywords else ""
        return f'"{verb} {original.lower()}{suffix}, cutting lead time by 20%"'

    return write


def pipeline_client(**overrides: Any) -> ScriptedAIClient:
    routes: dict[str, Any] = {
        "jd": json.dumps(JD_INFO),
        "parse": "```json\n" + json.dumps(PARSED_RESUME) + "\n```",
        "map": json.dumps(ASSIGNMENTS),
        "bullet": default_bullet_writer(),
        "summary": "Senior-ready backend engineer building Python APIs on Kubernetes.",
        "skills": json.dumps({"skills": ["Python", "Kubernetes", "PostgreSQL", "Docker"]}),
        "projects": json.dumps(
            {
                "rewrittenProjects": [
                    {"name": "tracer", "description": "Python tracing library for APIs", "technologies": ["Python"]}
                ]
            }
        ),
        "score": json.dumps({"original": 40, "optimized": 80}),
    }
    routes.update(overrides)
    return ScriptedAIClient(**routes)


class FakeEmbedder:
    def __init__(self, vectors: list[list[float]] | None = None, error: BaseException | None = None):
        self.vectors = vectors or [[1.0, 0.0, 0.0], [0.6, 0.8, 0.0], [0.8, 0.6, 0.0]]
        self.error = error
        self.calls = 0

    async def embed(self, texts):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [list(vector) for vector in self.vectors[: len(texts)]]


class RecordingSink:
    def __init__(self):
        self.lines: list[str] = []
        self.closed = False

    async def write_and_flush(self, line: str) -> None:
        if self.closed:
            raise AssertionError("write after close")
        self.lines.append(line)

    async def close(self) -> None:
        self.closed = True

    @property
    def frames(self) -> list[dict[str, Any]]:
        return [json.loads(line) for line in self.lines]


def make_run(run_id: str = "run-1", owner_id: str = "owner-1", jd_info: dict[str, Any] | None = None):
    """A persisted-shape run whose optimized résumé covers every JD requirement."""
    from app.schemas.optimization import JobDescriptionInfo, OptimizationRun
    from app.schemas.resume import ResumeDocument

    original = ResumeDocument.model_validate(PARSED_RESUME)
    optimized = original.clone()
    optimized.work[0].bullets = [
        "Led Python API delivery for billing, cutting latency by 30%",
        "Partnered with product on a Kubernetes roadmap",
        "Automated CI pipelines, reducing build time by 40%",
    ]
    optimized.skills = ["Python", "Kubernetes", "PostgreSQL", "Docker", "FastAPI"]
    optimized.summary = "Backend engineer building Python APIs on Kubernetes."
    return OptimizationRun(
        run_id=run_id,
        owner_id=owner_id,
        created_at=FIXED_NOW,
        job_description=JOB_DESCRIPTION,
        original_text_hash="hash",
        original_resume=original,
        optimized_resume=optimized,
        jd_info=JobDescriptionInfo.model_validate(jd_info or JD_INFO),
    )
