from __future__ import annotations

import math
import re
from datetime import date
from typing import Iterable

from app.core.config.scoring import get_scoring_value
from app.schemas.resume import ResumeDocument
from app.schemas.scorecard import SkillGap
from app.semantic.embeddings import cosine_similarity
from app.taxonomy import TaxonomyProvider, get_default_taxonomy_provider

_WORD_RE = re.compile(r"[a-z]+")
_SKILL_TOKEN_RE = re.compile(r"[a-z0-9\+#\./]+", re.IGNORECASE)
_YEAR_RE = re.compile(r"\b(19|20)\d{2}\b")
_DIGIT_RE = re.compile(r"\d")
_FLUFF_RE = re.compile(r"^(Responsible for|Worked with|Assisted in)", re.IGNORECASE)
_IMPACT_PATTERN_RE = re.compile(r"^[A-Z]\w+ .+ by \d+%")

_STOP_WORDS = frozenset(
    {
        "about", "above", "after", "also", "been", "being", "both", "from", "have", "having",
        "into", "more", "most", "must", "other", "over", "such", "than", "that", "their",
        "them", "then", "there", "these", "they", "this", "those", "through", "very", "were",
        "what", "when", "where", "which", "while", "will", "with", "within", "would", "your",
        "ours", "able", "well", "including",
    }
)

VERB_STRENGTH: dict[str, int] = {
    "lead": 10,
    "execute": 9,
    "build": 9,
    "manage": 8,
    "optimize": 8,
    "support": 5,
    "help": 4,
    "assist": 4,
    "work": 3,
}
_IRREGULAR_VERBS = {"led": "lead", "built": "build", "leading": "lead"}

_DEGREE_LEVELS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("phd", "ph.d", "doctor"), 5),
    (("master", "msc", "m.sc", "mba"), 4),
    (("bachelor", "bsc", "b.sc", "b.s.", "b.a."), 3),
    (("associate",), 2),
    (("high school",), 1),
)

# Checked from most to least senior; the first match wins.
_SENIORITY_LEVELS: tuple[tuple[re.Pattern[str], int], ...] = (
    (re.compile(r"\b(chief|c-level|cto|ceo|cfo|cio)\b"), 8),
    (re.compile(r"\b(vp|vice president)\b"), 7),
    (re.compile(r"\b(director|head of)\b"), 6),
    (re.compile(r"\b(manager|mgr)\b"), 5),
    (re.compile(r"\b(lead|principal|staff)\b"), 4),
    (re.compile(r"\b(senior|sr)\b"), 3),
    (re.compile(r"\b(associate|junior|jr|entry[- ]level|graduate)\b"), 2),
    (re.compile(r"\b(intern|internship|trainee)\b"), 1),
)
DEFAULT_SENIORITY = 3


def _round(value: float) -> float:
    return round(max(0.0, min(100.0, value)), 2)


def _share(count: int, total: int) -> float:
    return (count / total) * 100 if total else 0.0


def flatten_resume(resume: ResumeDocument) -> str:
    """Render a résumé as plain prose for full-text scoring and embeddings."""
    parts: list[str] = []
    if resume.summary:
        parts.append(f"Summary: {resume.summary}")
    for item in resume.work:
        parts.append(f"Worked at {item.company} as {item.title}")
        if item.bullets:
            parts.append(f"Key achievements: {', '.join(item.bullets)}")
    for item in resume.education:
        parts.append(f"Education: {item.degree} at {item.institution}")
    if resume.skills:
        parts.append(f"Skills: {', '.join(resume.skills)}")
    for item in resume.projects:
        parts.append(f"Project {item.name}: {item.description}")
    return ". ".join(parts)


def extract_keywords(text: str, min_length: int | None = None) -> list[str]:
    """Unique lower-case words of at least ``min_length`` letters, in first-seen order."""
    if min_length is None:
        min_length = int(get_scoring_value("keyword_match.min_keyword_length", 4))
    seen: dict[str, None] = {}
    for word in _WORD_RE.findall((text or "").lower()):
        if len(word) >= min_length and word not in _STOP_WORDS:
            seen.setdefault(word, None)
    return list(seen)


def _occurrences(lowered_text: str, keyword: str) -> int:
    needle = keyword.strip().lower()
    if not needle:
        return 0
    pattern = r"(?<![a-z0-9])" + re.escape(needle) + r"(?![a-z0-9])"
    return len(re.findall(pattern, lowered_text))


def keyword_match_score(text: str, keywords: Iterable[str]) -> float:
    """Case-insensitive occurrences of job keywords per résumé word, as a percentage capped at 100."""
    keyword_list = [keyword for keyword in keywords if keyword and keyword.strip()]
    word_count = len((text or "").split())
    if not keyword_list or word_count == 0:
        return 0.0
    lowered = text.lower()
    occurrences = sum(_occurrences(lowered, keyword) for keyword in keyword_list)
    return _round(_share(occurrences, word_count))


def keyword_coverage(text: str, keywords: Iterable[str]) -> tuple[list[str], list[str]]:
    """Split keywords into (present, missing) for a résumé text."""
    lowered = (text or "").lower()
    present: list[str] = []
    missing: list[str] = []
    for keyword in keywords:
        if not keyword or not keyword.strip():
            continue
        (present if _occurrences(lowered, keyword) else missing).append(keyword)
    return present, missing


def seniority_level(text: str | None, default: int = DEFAULT_SENIORITY) -> int:
    lowered = (text or "").lower()
    for pattern, level in _SENIORITY_LEVELS:
        if pattern.search(lowered):
            return level
    return default


def target_seniority(job_description: str, target_title: str | None = None) -> int:
    if target_title:
        level = seniority_level(target_title, default=0)
        if level:
            return level
    return seniority_level(job_description)


def _start_year(value: str | None) -> int:
    match = _YEAR_RE.search(value or "")
    return int(match.group(0)) if match else 0


def experience_alignment_score(
    resume: ResumeDocument,
    job_description: str,
    target_title: str | None = None,
) -> float:
    if not resume.work:
        return 0.0
    target = target_seniority(job_description, target_title)
    # Newest first; undated roles sort last.
    ordered = sorted(
        enumerate(resume.work),
        key=lambda pair: (_start_year(pair[1].from_), -pair[0]),
        reverse=True,
    )
    weights = [1 / (index + 1) for index in range(len(ordered))]
    weighted = sum(seniority_level(item.title) * weight for (_, item), weight in zip(ordered, weights))
    average = weighted / sum(weights)
    return _round((average / target) * 100)


def _verb_root(token: str) -> str:
    verb = re.sub(r"[^a-z]", "", token.lower())
    if verb in VERB_STRENGTH:
        return verb
    if verb in _IRREGULAR_VERBS:
        return _IRREGULAR_VERBS[verb]
    for suffix, replacement in (("ing", ""), ("ing", "e"), ("ed", ""), ("ed", "e"), ("d", ""), ("s", "")):
        if verb.endswith(suffix):
            candidate = verb[: -len(suffix)] + replacement
            if candidate in VERB_STRENGTH:
                return candidate
    return verb


def bullet_strength_score(bullets: list[str]) -> float:
    """Average of verb impact, quantification, conciseness, fluff, bloat and impact-pattern sub-scores."""
    bullets = [bullet.strip() for bullet in bullets if bullet and bullet.strip()]
    if not bullets:
        return 0.0

    ideal_length = float(get_scoring_value("bullet_strength.ideal_length", 20))
    sigma = float(get_scoring_value("bullet_strength.length_sigma", 10))
    bloat_threshold = int(get_scoring_value("bullet_strength.bloat_threshold", 60))
    default_strength = float(get_scoring_value("bullet_strength.default_verb_strength", 5))
    total = len(bullets)

    strengths = [VERB_STRENGTH.get(_verb_root(bullet.split()[0]), default_strength) for bullet in bullets]
    verb_score = (sum(strengths) / total) / max(VERB_STRENGTH.values()) * 100

    quant_score = _share(sum(1 for bullet in bullets if _DIGIT_RE.search(bullet)), total)

    lengths = [len(bullet.split()) for bullet in bullets]
    diff = sum(lengths) / total - ideal_length
    concise_score = math.exp(-(diff * diff) / (2 * sigma * sigma)) * 100

    fluff_score = _share(sum(1 for bullet in bullets if not _FLUFF_RE.match(bullet)), total)
    bloat_score = _share(sum(1 for length in lengths if length <= bloat_threshold), total)
    pattern_score = _share(sum(1 for bullet in bullets if _IMPACT_PATTERN_RE.match(bullet)), total)

    composite = (verb_score + quant_score + concise_score + fluff_score + bloat_score + pattern_score) / 6
    return _round(composite)


# Common English words that are also skill aliases; only counted when a
# requirement or skill entry is exactly that word.
_AMBIGUOUS_ALIASES = frozenset({"go", "rest", "ai", "ts", "js", "py"})
_TERM_EDGE = " .,;:/()[]"
_MAX_TERM_WORDS = 3
_QUALIFICATION_WORDS = frozenset(
    {"degree", "bachelor", "bachelors", "master", "masters", "phd", "years", "year", "experience", "equivalent"}
)


def _skill_mentions(text: str, taxonomy: TaxonomyProvider) -> list[tuple[str, str]]:
    """(surface text, canonical id) of taxonomy skills mentioned in ``text``, longest match first."""
    spans = [(match.start(), match.end()) for match in _SKILL_TOKEN_RE.finditer(text)]
    mentions: list[tuple[str, str]] = []
    idx = 0
    while idx < len(spans):
        for n in (3, 2, 1):
            if idx + n > len(spans):
                continue
            start, end = spans[idx][0], spans[idx + n - 1][1]
            surface = text[start:end].strip(_TERM_EDGE)
            normalized, canonical_id = taxonomy.normalize_skill(surface)
            if canonical_id and not (n == 1 and normalized in _AMBIGUOUS_ALIASES):
                mentions.append((surface, canonical_id))
                idx += n
                break
        else:
            idx += 1
    return mentions


def job_skill_terms(
    sources: Iterable[str],
    taxonomy: TaxonomyProvider | None = None,
    *,
    allow_unknown: bool = False,
) -> list[str]:
    """Distinct skills named by job requirements or keywords, in first-seen order.

    An entry that is itself a known skill counts as one skill. Other entries
    contribute every known skill mentioned inside them. With ``allow_unknown``
    a short entry that mentions none is kept as a skill of its own.
    """
    taxonomy = taxonomy or get_default_taxonomy_provider()
    terms: dict[str, str] = {}
    for source in sources:
        text = (source or "").strip().strip(_TERM_EDGE)
        if not text:
            continue
        normalized, canonical_id = taxonomy.normalize_skill(text)
        if canonical_id:
            terms.setdefault(canonical_id, text)
            continue
        mentions = _skill_mentions(text, taxonomy)
        if mentions:
            for surface, mention_id in mentions:
                terms.setdefault(mention_id, surface)
        elif (
            allow_unknown
            and len(text.split()) <= _MAX_TERM_WORDS
            and not set(_WORD_RE.findall(normalized)) & _QUALIFICATION_WORDS
        ):
            terms.setdefault(normalized, text)
    return list(terms.values())


def _resume_skill_ids(resume: ResumeDocument, taxonomy: TaxonomyProvider) -> set[str]:
    ids: set[str] = set()
    for skill in resume.skills:
        if not skill.strip():
            continue
        ids.add(taxonomy.canonical(skill))
        ids.update(canonical_id for _, canonical_id in _skill_mentions(skill, taxonomy))
    return ids


def skill_gap(
    resume: ResumeDocument,
    requirements: list[str],
    taxonomy: TaxonomyProvider | None = None,
    *,
    keywords: Iterable[str] = (),
) -> SkillGap:
    """Per-skill coverage of the job's skills by the résumé's skills list, aliases normalised.

    Skills come from the requirements; the keywords are used only when the
    requirements name none.
    """
    taxonomy = taxonomy or get_default_taxonomy_provider()
    terms = job_skill_terms(requirements, taxonomy) or job_skill_terms(
        keywords, taxonomy, allow_unknown=True
    )
    skill_ids = _resume_skill_ids(resume, taxonomy)

    matched: list[str] = []
    missing: list[str] = []
    for term in terms:
        (matched if taxonomy.canonical(term) in skill_ids else missing).append(term)
    return SkillGap(matched=matched, missing_keywords=missing)


def skills_match_score(
    resume: ResumeDocument,
    requirements: list[str],
    taxonomy: TaxonomyProvider | None = None,
    *,
    keywords: Iterable[str] = (),
) -> float:
    gap = skill_gap(resume, requirements, taxonomy, keywords=keywords)
    total = len(gap.matched) + len(gap.missing_keywords)
    return _round(_share(len(gap.matched), total))


def degree_level(degree: str) -> int:
    lowered = (degree or "").lower()
    for markers, level in _DEGREE_LEVELS:
        if any(marker in lowered for marker in markers):
            return level
    return 3


def _target_degree_level(job_description: str) -> int:
    lowered = (job_description or "").lower()
    for markers, level in _DEGREE_LEVELS:
        if any(marker in lowered for marker in markers):
            return level
    return 3


def education_certifications_score(
    resume: ResumeDocument,
    job_description: str,
    *,
    today: date | None = None,
) -> float:
    weights = get_scoring_value("education.weights", {}) or {}
    recency_years = int(get_scoring_value("education.certification_recency_years", 5))
    current_year = (today or date.today()).year
    jd_keywords = set(extract_keywords(job_description))

    candidate = max((degree_level(item.degree) for item in resume.education), default=0)
    target = _target_degree_level(job_description)
    degree_score = min(100.0, (candidate / target) * 100) if target else 0.0

    fields = [item.field for item in resume.education if item.field]
    field_score = 100.0
    if fields:
        hits = sum(1 for value in fields if set(extract_keywords(value)) & jd_keywords)
        field_score = _share(hits, len(fields))

    certs = [item for item in resume.certifications if item.name]
    relevance_score = 0.0
    recency_score = 100.0
    if certs:
        relevant = sum(1 for item in certs if any(keyword in item.name.lower() for keyword in jd_keywords))
        relevance_score = _share(relevant, len(certs))

        def _cert_year(item) -> int:
            match = _YEAR_RE.search(item.expiry_date or item.date or "")
            return int(match.group(0)) if match else current_year

        recent = sum(1 for item in certs if current_year - _cert_year(item) <= recency_years)
        recency_score = _share(recent, len(certs))

    composite = (
        degree_score * float(weights.get("degree_level", 0.4))
        + field_score * float(weights.get("field_match", 0.2))
        + relevance_score * float(weights.get("certification_relevance", 0.25))
        + recency_score * float(weights.get("certification_recency", 0.15))
    )
    return _round(composite)


_SECTION_MARKERS = (
    ("Summary", "Summary:"),
    ("Experience", "Worked at"),
    ("Education", "Education:"),
    ("Skills", "Skills:"),
    ("Projects", "Project "),
)


def _skills_length_score(count: int) -> float:
    ideal_min = int(get_scoring_value("formatting.skills_ideal_min", 5))
    ideal_max = int(get_scoring_value("formatting.skills_ideal_max", 15))
    hard_max = int(get_scoring_value("formatting.skills_hard_max", 20))
    if count == 0:
        return 0.0
    if ideal_min <= count <= ideal_max:
        return 100.0
    if count < ideal_min:
        return (count / ideal_min) * 100
    return min(100.0, (hard_max / count) * 100)


def formatting_score(resume: ResumeDocument) -> float:
    present = {
        "Summary": bool(resume.summary.strip()),
        "Experience": bool(resume.work),
        "Education": bool(resume.education),
        "Skills": bool(resume.skills),
        "Projects": bool(resume.projects),
    }
    presence_score = _share(sum(present.values()), len(present))

    flat = flatten_resume(resume)
    desired = [name for name, _ in _SECTION_MARKERS if present[name]]
    actual = sorted(desired, key=lambda name: flat.find(dict(_SECTION_MARKERS)[name]))
    order_score = _share(sum(1 for a, b in zip(actual, desired) if a == b), len(desired)) if desired else 100.0

    contact = resume.contact
    contact_fields = [bool(contact.email), bool(contact.phone), bool(contact.links)]
    contact_score = _share(sum(contact_fields), len(contact_fields))

    composite = (presence_score + order_score + _skills_length_score(len(resume.skills)) + contact_score) / 4
    return _round(composite)


def customization_similarity(job_vector: list[float], resume_vector: list[float]) -> float:
    return _round(cosine_similarity(job_vector, resume_vector) * 100)
