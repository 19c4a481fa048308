from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from app.core.config.scoring import get_scoring_value
from app.schemas.resume import ResumeDocument

_PRESENT_WORDS = frozenset({"present", "current", "now", "today", "ongoing"})
_MONTHS = {
    name: index
    for index, names in enumerate(
        (
            ("jan", "january"), ("feb", "february"), ("mar", "march"), ("apr", "april"),
            ("may",), ("jun", "june"), ("jul", "july"), ("aug", "august"),
            ("sep", "sept", "september"), ("oct", "october"), ("nov", "november"), ("dec", "december"),
        ),
        start=1,
    )
    for name in names
}
_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})(?:-(\d{1,2}))?")
_SLASH_RE = re.compile(r"^(\d{1,2})/(\d{4})$")
_MONTH_YEAR_RE = re.compile(r"^([a-z]+)\.?,?\s+(\d{4})$")
_YEAR_RE = re.compile(r"^(\d{4})$")


def parse_resume_date(value: str | None, *, today: date, end: bool = False) -> date | None:
    """Parse the loose date formats found on résumés; ``Present`` resolves to ``today``."""
    text = (value or "").strip().lower()
    if not text:
        return None
    if text in _PRESENT_WORDS:
        return today

    match = _ISO_RE.match(text)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        day = int(match.group(3) or 1)
        return _safe_date(year, month, day)

    match = _SLASH_RE.match(text)
    if match:
        return _safe_date(int(match.group(2)), int(match.group(1)), 1)

    match = _MONTH_YEAR_RE.match(text)
    if match and match.group(1) in _MONTHS:
        return _safe_date(int(match.group(2)), _MONTHS[match.group(1)], 1)

    match = _YEAR_RE.match(text)
    if match:
        return date(int(match.group(1)), 12, 31) if end else date(int(match.group(1)), 1, 1)
    return None


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


@dataclass(frozen=True)
class _Role:
    title: str
    company: str
    start: date
    end: date
    ongoing: bool

    @property
    def label(self) -> str:
        return f"{self.title or 'Untitled role'} at {self.company or 'unknown company'}"


def _roles(resume: ResumeDocument, today: date) -> list[_Role]:
    roles: list[_Role] = []
    for item in resume.work:
        start = parse_resume_date(item.from_, today=today)
        if start is None:
            continue
        end = parse_resume_date(item.to, today=today, end=True)
        ongoing = end is None or (item.to or "").strip().lower() in _PRESENT_WORDS
        roles.append(_Role(item.title, item.company, start, end or today, ongoing))
    roles.sort(key=lambda role: role.start)
    return roles


def extract_red_flags(resume: ResumeDocument, *, today: date | None = None) -> list[str]:
    today = today or date.today()
    gap_days = int(get_scoring_value("red_flags.gap_days", 180))
    short_role_days = int(get_scoring_value("red_flags.short_role_days", 180))
    warnings: list[str] = []

    roles = _roles(resume, today)
    for prev, curr in zip(roles, roles[1:]):
        gap = (curr.start - prev.end).days
        if gap > gap_days:
            warnings.append(f"Significant gap of {gap} days between {prev.label} and {curr.label}.")
        if curr.start < prev.end:
            warnings.append(f"Overlap detected between {prev.label} and {curr.label}.")

    for role in roles:
        duration = (role.end - role.start).days
        if not role.ongoing and duration < short_role_days:
            warnings.append(f"{role.label} lasted only {duration} days.")

    for item in resume.work:
        if not item.bullets:
            warnings.append(
                f"{item.title or 'Untitled role'} at {item.company or 'unknown company'} has no bullet points."
            )

    contact = resume.contact
    if not contact.email:
        warnings.append("No email address provided.")
    if not contact.phone and not contact.links:
        warnings.append("No phone number or profile link provided.")
    return warnings
