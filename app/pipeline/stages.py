from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from pydantic import ValidationError

from app.ai.types import AIClient
from app.core import events
from app.core.errors import MalformedOutputError
from app.schemas.optimization import (
    BulletRewriteResult,
    JobDescriptionInfo,
    KeywordAssignment,
    VerbMemory,
    keywords_present,
    opening_verb,
)
from app.schemas.resume import Project, ResumeDocument
from app.services.generation import (
    clean_text_reply,
    generate_json,
    generate_text,
    parse_json_payload,
    strip_code_fences,
)

from .cache import ParsedResumeCache, resume_cache_key

logger = logging.getLogger(__name__)

MAX_BULLETS_PER_KEYWORD = 3
MAX_KEYWORDS = 15

_YEAR_RE = re.compile(r"\b(19|20)\d{2}\b")
_BULLET_MARKER_RE = re.compile(r"^\s*(?:[-*•●▪]|\d+[.)])\s+")


def _safe_str_list(value: Any, max_items: int = 50) -> list[str]:
    if not isinstance(value, list):
        return []
    output: list[str] = []
    for item in value:
        if not isinstance(item, str):
            continue
        text = re.sub(r"\s+", " ", item).strip()
        if text:
            output.append(text)
        if len(output) >= max_items:
            break
    return output


def _list_from_reply(content: str, key: str) -> list[Any]:
    """Accept either ``{"<key>": [...]}`` or a bare JSON array."""
    if strip_code_fences(content).startswith("["):
        return parse_json_payload(content, expect=list)
    payload = parse_json_payload(content, expect=dict)
    value = payload.get(key)
    if not isinstance(value, list):
        raise MalformedOutputError(f"Expected '{key}' to be a JSON array.")
    return value


# --- extracting_jd_info -----------------------------------------------------

_JD_SYSTEM_PROMPT = """
You are a job description parsing assistant. Extract key information for tailoring a resume.
Respond ONLY with valid, minified JSON:
{"targetTitle": string, "targetCompany": string, "requirements": [string], "keywords": [string]}
- requirements: concrete qualifications and responsibilities, one per item.
- keywords: the 5 to 15 most important skills, tools or domain terms, as they are written in the posting.
"""


def _fallback_keywords(requirements: list[str]) -> list[str]:
    short = [item for item in requirements if len(item.split()) <= 4]
    return short[:MAX_KEYWORDS]


async def extract_jd_info(client: AIClient, job_description: str) -> JobDescriptionInfo:
    payload = await generate_json(
        client,
        system_prompt=_JD_SYSTEM_PROMPT,
        user_prompt=job_description,
        stage=events.EXTRACTING_JD_INFO,
    )
    target_title = payload.get("targetTitle")
    target_company = payload.get("targetCompany")
    requirements = payload.get("requirements")
    if not isinstance(target_title, str) or not isinstance(target_company, str) or not isinstance(requirements, list):
        raise MalformedOutputError("Unexpected job description extraction format.")

    clean_requirements = _safe_str_list(requirements)
    keywords = _safe_str_list(payload.get("keywords"), max_items=MAX_KEYWORDS)
    if not keywords:
        keywords = _fallback_keywords(clean_requirements)

    return JobDescriptionInfo(
        target_title=target_title.strip(),
        target_company=target_company.strip(),
        requirements=clean_requirements,
        keywords=keywords,
    )


# --- parsing_resume -----------------------------------------------------------

_PARSE_SYSTEM_PROMPT = """
You are a professional resume parser. Read the full resume and return valid JSON with the fields:
- name
- contact: { email, phone, links[] }
- summary
- work: [ { company, title, from, to, bullets[] } ]
- education: [ { institution, degree, field, from, to } ]
- skills[]
- certifications: [ { name, issuer, date, expiryDate } ]
- awards: [ { title, date, description } ]
- projects: [ { name, description, technologies[], link } ]
- languages[]

Rules:
- Capture all bullets under each role in work history, in their original order.
- Split bullets on lines starting with '-', '•' or '*' and remove the marker. Without markers, split on line breaks.
- Leave "to" empty for a current role.
- Only return structured, valid JSON with no extra text.
"""


async def parse_resume(
    client: AIClient,
    resume_text: str,
    *,
    cache: ParsedResumeCache | None = None,
) -> ResumeDocument:
    key = resume_cache_key(resume_text)
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            logger.info("parse_resume_cache_hit key=%s", key[:12])
            return cached

    payload = await generate_json(
        client,
        system_prompt=_PARSE_SYSTEM_PROMPT,
        user_prompt=resume_text,
        stage=events.PARSING_RESUME,
    )
    try:
        document = ResumeDocument.model_validate(payload)
    except ValidationError as exc:
        raise MalformedOutputError(f"Parsed resume has an unexpected shape: {exc.error_count()} errors.") from exc

    if cache is not None:
        cache.put(key, document)
    return document


# --- mapping_keywords ---------------------------------------------------------

_MAP_SYSTEM_PROMPT = """
You are a resume keyword mapping assistant.
Assign the most relevant keywords to each work experience bullet based on content overlap, relevance and intent.

Rules:
- Only assign keywords to work experience bullets.
- A keyword may be assigned to no more than 3 bullets in total.
- A bullet may receive multiple keywords.
- Only include bullets that have at least one keyword assigned.
- Refer to bullets by index only; do not repeat bullet text.

Output ONLY valid minified JSON:
{"assignments": [{"workIndex": number, "bulletIndex": number, "assignedKeywords": [string]}]}
"""


def _validate_assignments(raw: list[Any], resume: ResumeDocument) -> list[KeywordAssignment]:
    merged: dict[tuple[int, int], KeywordAssignment] = {}
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            assignment = KeywordAssignment.model_validate(item)
        except ValidationError:
            continue
        wi, bi = assignment.work_index, assignment.bullet_index
        if wi >= len(resume.work) or bi >= len(resume.work[wi].bullets):
            logger.warning("map_keywords_out_of_range work_index=%s bullet_index=%s", wi, bi)
            continue
        existing = merged.get((wi, bi))
        if existing is None:
            merged[(wi, bi)] = assignment
            continue
        combined = existing.assigned_keywords + assignment.assigned_keywords
        merged[(wi, bi)] = KeywordAssignment(work_index=wi, bullet_index=bi, assigned_keywords=combined)

    assignments = [merged[position] for position in sorted(merged) if merged[position].assigned_keywords]

    # The per-keyword cap belongs to the generator's contract; violations are only reported.
    usage: dict[str, int] = {}
    for assignment in assignments:
        for keyword in assignment.assigned_keywords:
            usage[keyword.lower()] = usage.get(keyword.lower(), 0) + 1
    over_cap = sum(1 for count in usage.values() if count > MAX_BULLETS_PER_KEYWORD)
    if over_cap:
        logger.warning("map_keywords_cap_exceeded keywords=%s", over_cap)
    return assignments


async def map_keywords(
    client: AIClient,
    resume: ResumeDocument,
    keywords: list[str],
) -> list[KeywordAssignment]:
    if not keywords or not resume.bullet_positions():
        return []

    work_section = [
        {"workIndex": wi, "title": item.title, "company": item.company, "bullets": item.bullets}
        for wi, item in enumerate(resume.work)
    ]
    user_prompt = (
        f"Resume work section:\n{json.dumps(work_section, ensure_ascii=False)}\n\n"
        f"Keywords to assign:\n{json.dumps(keywords, ensure_ascii=False)}"
    )
    content = await generate_text(
        client,
        system_prompt=_MAP_SYSTEM_PROMPT,
        user_prompt=user_prompt,
        stage=events.MAPPING_KEYWORDS,
        json_mode=True,
    )
    return _validate_assignments(_list_from_reply(content, "assignments"), resume)


# --- rewriting_bullet ---------------------------------------------------------

@dataclass(frozen=True)
class BulletRewriteRequest:
    work_index: int
    bullet_index: int
    bullet: str
    assigned_keywords: tuple[str, ...]
    job_title: str
    company: str
    job_description: str
    skills: tuple[str, ...]
    jd_info: JobDescriptionInfo


_BULLET_SYSTEM_PROMPT = """
You are a world-class resume editor.
Rewrite a single work experience bullet so it is more impactful and better aligned with a specific job description.

Rules:
- Start with a strong action verb.
- Do not start the bullet with any of these verbs: {avoid_verbs}.
- Include quantifiable outcomes where the original supports them.
- Improve clarity and brevity.
- Weave in the assigned keywords only where they make the bullet clearer or more relevant; never stuff keywords.
- Never invent responsibilities; preserve the original intent and scope.
- Respond with exactly one sentence and nothing else.
"""


async def rewrite_bullet(
    client: AIClient,
    request: BulletRewriteRequest,
    memory: VerbMemory,
) -> tuple[BulletRewriteResult, VerbMemory]:
    """Rewrite one bullet and return the result with the extended verb memory.

    The opening verb of the rewrite is added to the memory whether or not the
    generator honoured the avoid list.
    """
    avoid_verbs = ", ".join(memory.verbs) or "none"
    jd = request.jd_info
    user_prompt = (
        f"ORIGINAL BULLET:\n{request.bullet}\n\n"
        f"CONTEXT:\n- Company: {request.company or 'N/A'}\n- Title: {request.job_title or 'N/A'}\n"
        f"- Skills: {', '.join(request.skills) or 'N/A'}\n\n"
        f"TARGET ROLE:\n- Title: {jd.target_title or 'N/A'}\n- Company: {jd.target_company or 'N/A'}\n"
        f"- Requirements: {'; '.join(jd.requirements) or 'N/A'}\n\n"
        f"ASSIGNED KEYWORDS:\n{', '.join(request.assigned_keywords) or 'none'}\n\n"
        f"FULL JOB DESCRIPTION:\n{request.job_description}"
    )
    content = await generate_text(
        client,
        system_prompt=_BULLET_SYSTEM_PROMPT.format(avoid_verbs=avoid_verbs),
        user_prompt=user_prompt,
        stage=events.REWRITING_BULLET,
    )
    rewritten = _BULLET_MARKER_RE.sub("", clean_text_reply(content)).strip()
    if not rewritten:
        raise MalformedOutputError("Bullet rewrite returned no text.")

    result = BulletRewriteResult(
        work_index=request.work_index,
        bullet_index=request.bullet_index,
        original_bullet=request.bullet,
        rewritten_bullet=rewritten,
        keywords_used=keywords_present(rewritten, list(request.assigned_keywords)),
    )
    verb = opening_verb(rewritten)
    if verb in memory:
        logger.info(
            json.dumps(
                {
                    "event": "bullet_verb_repeated",
                    "verb": verb,
                    "work_index": request.work_index,
                    "bullet_index": request.bullet_index,
                }
            )
        )
    return result, memory.with_bullet(rewritten)


# --- rewriting_summary --------------------------------------------------------

@dataclass(frozen=True)
class SummaryContext:
    original_summary: str
    optimized_bullets: tuple[str, ...]
    skills: tuple[str, ...]
    jd_info: JobDescriptionInfo
    job_description: str
    experience_snapshot: str


def _first_year(value: str | None) -> int | None:
    if not value:
        return None
    match = _YEAR_RE.search(value)
    return int(match.group(0)) if match else None


def experience_snapshot(resume: ResumeDocument, *, today: date | None = None) -> str:
    current_year = (today or date.today()).year
    companies = list(dict.fromkeys(item.company for item in resume.work if item.company))
    titles = list(dict.fromkeys(item.title for item in resume.work if item.title))

    end_years = [_first_year(item.to) or current_year for item in resume.work]
    fallback_start = end_years[0] if end_years else current_year
    start_years = [_first_year(item.from_) or fallback_start for item in resume.work]
    years = max(end_years) - min(start_years) if end_years and start_years else 0

    parts = []
    if years > 0:
        parts.append(f"{years}+ years of experience")
    if companies:
        parts.append(f"across {', '.join(companies)}")
    if titles:
        parts.append(f"roles as {', '.join(titles)}")
    return (", ".join(parts) + ".") if parts else ""


_SUMMARY_SYSTEM_PROMPT = """
You are a professional resume writer. Rewrite the professional summary for the target role.
- 2 to 4 sentences, first-person implied (no "I").
- Ground every claim in the optimized bullets, skills and experience snapshot provided.
- Use the job's language and the most important keywords naturally.
- Return only the rewritten summary; no labels, quotes or formatting.
"""


async def rewrite_summary(client: AIClient, context: SummaryContext) -> str:
    jd = context.jd_info
    user_prompt = (
        f"ORIGINAL SUMMARY:\n{context.original_summary or 'N/A'}\n\n"
        f"EXPERIENCE SNAPSHOT:\n{context.experience_snapshot or 'N/A'}\n\n"
        f"OPTIMIZED BULLETS:\n" + "\n".join(f"- {bullet}" for bullet in context.optimized_bullets) + "\n\n"
        f"SKILLS: {', '.join(context.skills) or 'N/A'}\n\n"
        f"TARGET ROLE:\n- Title: {jd.target_title or 'N/A'}\n- Company: {jd.target_company or 'N/A'}\n"
        f"- Requirements: {'; '.join(jd.requirements) or 'N/A'}\n- Keywords: {', '.join(jd.keywords) or 'N/A'}\n\n"
        f"JOB DESCRIPTION:\n{context.job_description}"
    )
    content = await generate_text(
        client,
        system_prompt=_SUMMARY_SYSTEM_PROMPT,
        user_prompt=user_prompt,
        stage=events.REWRITING_SUMMARY,
    )
    rewritten = clean_text_reply(content)
    if not rewritten:
        raise MalformedOutputError("Summary rewrite returned no text.")
    return rewritten


# --- rewriting_skills ---------------------------------------------------------

@dataclass(frozen=True)
class SkillsContext:
    original_skills: tuple[str, ...]
    optimized_summary: str
    optimized_bullets: tuple[str, ...]
    jd_info: JobDescriptionInfo
    job_description: str


_SKILLS_SYSTEM_PROMPT = """
You are a professional resume editor rewriting the Skills section of a resume.
- Align the skills with the target job title and description.
- Use concise, domain-specific terms only (no generic traits like "team player").
- Incorporate relevant keywords the candidate's experience supports; remove outdated or irrelevant skills.
- Avoid duplication.
Respond only with JSON: {"skills": [string]}
"""


async def rewrite_skills(client: AIClient, context: SkillsContext) -> list[str]:
    jd = context.jd_info
    user_prompt = (
        f"TARGET ROLE:\n- Title: {jd.target_title or 'N/A'}\n- Company: {jd.target_company or 'N/A'}\n"
        f"- Requirements: {'; '.join(jd.requirements) or 'N/A'}\n- Keywords: {', '.join(jd.keywords) or 'N/A'}\n\n"
        f"RESUME CONTEXT:\n- Summary: {context.optimized_summary or 'N/A'}\n"
        f"- Optimized bullets:\n" + "\n".join(f"  - {bullet}" for bullet in context.optimized_bullets) + "\n"
        f"- Original skills: {', '.join(context.original_skills) or 'N/A'}\n\n"
        f"JOB DESCRIPTION:\n{context.job_description}"
    )
    content = await generate_text(
        client,
        system_prompt=_SKILLS_SYSTEM_PROMPT,
        user_prompt=user_prompt,
        stage=events.REWRITING_SKILLS,
        json_mode=True,
    )
    raw = _list_from_reply(content, "skills")
    skills = list(dict.fromkeys(_safe_str_list(raw, max_items=40)))
    if not skills:
        raise MalformedOutputError("Skills rewrite returned an empty list.")
    return skills


# --- rewriting_projects -------------------------------------------------------

@dataclass(frozen=True)
class ProjectsContext:
    projects: tuple[Project, ...]
    jd_info: JobDescriptionInfo
    job_description: str
    skills: tuple[str, ...] = field(default_factory=tuple)
    summary: str = ""


_PROJECTS_SYSTEM_PROMPT = """
You are a professional resume editor rewriting the Projects section for a target role.
- Keep every project, in the same order, with the same name.
- Tighten each description and surface the technologies and outcomes relevant to the job.
- Never invent technologies or results.
Respond only with JSON: {"rewrittenProjects": [{"name": string, "description": string, "technologies": [string]}]}
"""


async def rewrite_projects(client: AIClient, context: ProjectsContext) -> list[Project]:
    if not context.projects:
        return []
    jd = context.jd_info
    projects_json = json.dumps(
        [project.model_dump(mode="json", by_alias=True) for project in context.projects],
        ensure_ascii=False,
    )
    user_prompt = (
        f"PROJECTS:\n{projects_json}\n\n"
        f"TARGET ROLE:\n- Title: {jd.target_title or 'N/A'}\n- Company: {jd.target_company or 'N/A'}\n"
        f"- Requirements: {'; '.join(jd.requirements) or 'N/A'}\n- Keywords: {', '.join(jd.keywords) or 'N/A'}\n\n"
        f"CANDIDATE SUMMARY: {context.summary or 'N/A'}\nCANDIDATE SKILLS: {', '.join(context.skills) or 'N/A'}\n\n"
        f"JOB DESCRIPTION:\n{context.job_description}"
    )
    payload = await generate_json(
        client,
        system_prompt=_PROJECTS_SYSTEM_PROMPT,
        user_prompt=user_prompt,
        stage=events.REWRITING_PROJECTS,
    )
    raw = payload.get("rewrittenProjects")
    if not isinstance(raw, list) or len(raw) != len(context.projects):
        raise MalformedOutputError("Projects rewrite must return one entry per original project.")

    rewritten: list[Project] = []
    for original, item in zip(context.projects, raw):
        if not isinstance(item, dict):
            raise MalformedOutputError("Projects rewrite returned a non-object entry.")
        description = item.get("description")
        if not isinstance(description, str) or not description.strip():
            raise MalformedOutputError("Projects rewrite returned an empty description.")
        rewritten.append(
            original.model_copy(
                update={
                    "description": description.strip(),
                    "technologies": _safe_str_list(item.get("technologies")) or list(original.technologies),
                }
            )
        )
    return rewritten
