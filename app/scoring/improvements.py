from __future__ import annotations

from typing import Iterable

from app.core.config.scoring import get_scoring_value
from app.schemas.scorecard import Improvement, ScoreMetric

_PRIORITY_WEIGHT = {"high": 3, "medium": 2, "low": 1}

# (metric, threshold key, default threshold, category, priority, impact, suggestion)
_METRIC_RULES: tuple[tuple[str, str, float, str, str, int, str], ...] = (
    (
        "Keyword Match",
        "keyword_match",
        2.0,
        "Keywords",
        "high",
        20,
        "Increase keyword density by working more job-relevant terms into your summary and bullets.",
    ),
    (
        "Experience Alignment",
        "experience_alignment",
        60.0,
        "Experience",
        "medium",
        18,
        "Highlight experience at the seniority the role asks for and describe the scope you owned.",
    ),
    (
        "Bullet Strength",
        "bullet_strength",
        60.0,
        "Bullets",
        "medium",
        16,
        "Open bullets with strong action verbs and quantify results with numbers or percentages.",
    ),
    (
        "Formatting & Structure",
        "formatting",
        80.0,
        "ATS Compatibility",
        "medium",
        15,
        "Use standard section headers, complete contact details and a focused skills list.",
    ),
    (
        "Education & Certifications",
        "education",
        50.0,
        "Education",
        "low",
        8,
        "List degrees and recent certifications relevant to the role.",
    ),
    (
        "Customization Level",
        "customization",
        50.0,
        "Customization",
        "low",
        10,
        "Mirror the job description's language so the resume reads as written for this role.",
    ),
)


def suggest_improvements(
    metrics: Iterable[ScoreMetric],
    missing_skills: list[str],
    *,
    red_flags: list[str] | None = None,
) -> list[Improvement]:
    """Ranked hints from the optimized side's weak metrics, missing skills and red flags.

    Sorted by priority, then by impact; ties keep rule order.
    """
    scores = {item.name: item.optimized_score for item in metrics}
    improvements: list[Improvement] = []

    skills_threshold = float(get_scoring_value("improvements.thresholds.skills_match", 70))
    if missing_skills and scores.get("Skills Match", 0.0) < skills_threshold:
        improvements.append(
            Improvement(
                category="Skills",
                priority="high",
                suggestion=f"Add these missing key skills: {', '.join(missing_skills[:5])}",
                impact=25,
            )
        )

    for name, key, default, category, priority, impact, suggestion in _METRIC_RULES:
        if name not in scores:
            continue
        threshold = float(get_scoring_value(f"improvements.thresholds.{key}", default))
        if scores[name] < threshold:
            improvements.append(
                Improvement(category=category, priority=priority, suggestion=suggestion, impact=impact)
            )

    if red_flags:
        improvements.append(
            Improvement(
                category="Red Flags",
                priority="low",
                suggestion=f"Address {len(red_flags)} red flag(s) a recruiter may ask about, starting with: {red_flags[0]}",
                impact=5,
            )
        )

    return sorted(improvements, key=lambda item: (-_PRIORITY_WEIGHT[item.priority], -item.impact))
