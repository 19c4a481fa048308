from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

_SCORING_CONFIG_CACHE: dict[str, Any] | None = None
_SCORING_CONFIG_PATH = Path(__file__).resolve().parents[3] / "config" / "scoring.yaml"

# Order is the order metrics appear on a scorecard.
METRIC_NAMES: tuple[str, ...] = (
    "Keyword Match",
    "Experience Alignment",
    "Bullet Strength",
    "Role Alignment",
    "Skills Match",
    "Education & Certifications",
    "Formatting & Structure",
    "Customization Level",
)


def get_scoring_config() -> dict[str, Any]:
    """Load scoring config from repo-level config/scoring.yaml and cache it."""
    global _SCORING_CONFIG_CACHE

    if _SCORING_CONFIG_CACHE is not None:
        return _SCORING_CONFIG_CACHE

    if not _SCORING_CONFIG_PATH.exists():
        raise RuntimeError(
            f"Scoring config not found at '{_SCORING_CONFIG_PATH}'. "
            "Expected file: config/scoring.yaml"
        )

    try:
        raw = _SCORING_CONFIG_PATH.read_text(encoding="utf-8")
    except OSError as exc:
        raise RuntimeError(
            f"Failed to read scoring config '{_SCORING_CONFIG_PATH}': {exc}"
        ) from exc

    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise RuntimeError(
            f"Invalid YAML in scoring config '{_SCORING_CONFIG_PATH}': {exc}"
        ) from exc

    if not isinstance(parsed, dict):
        raise RuntimeError(
            f"Invalid scoring config '{_SCORING_CONFIG_PATH}': expected a top-level mapping."
        )

    _SCORING_CONFIG_CACHE = parsed
    return _SCORING_CONFIG_CACHE


def get_scoring_value(path: str, default: Any = None) -> Any:
    """Get nested config value using dot path notation, e.g. 'bullet_strength.ideal_length'."""
    if not path:
        return default

    current: Any = get_scoring_config()
    for key in path.split("."):
        if not isinstance(current, dict):
            return default
        if key not in current:
            return default
        current = current[key]
    return current


def normalize_weights(raw: dict[str, Any]) -> dict[str, float]:
    """Validate a metric -> weight mapping and rescale it so the weights sum to 1.0."""
    weights: dict[str, float] = {}
    for name, value in raw.items():
        try:
            weight = float(value)
        except (TypeError, ValueError) as exc:
            raise RuntimeError(f"Weight for metric '{name}' is not numeric: {value!r}") from exc
        if weight < 0:
            raise RuntimeError(f"Weight for metric '{name}' must be non-negative.")
        weights[str(name)] = weight

    total = sum(weights.values())
    if total <= 0:
        raise RuntimeError("Metric weights must contain at least one positive value.")
    return {name: weight / total for name, weight in weights.items()}


def get_metric_weights() -> dict[str, float]:
    raw = get_scoring_value("scorecard.weights")
    if not isinstance(raw, dict) or not raw:
        raise RuntimeError("Scoring config is missing 'scorecard.weights'.")
    unknown = set(raw) - set(METRIC_NAMES)
    if unknown:
        raise RuntimeError(f"Unknown metrics in 'scorecard.weights': {sorted(unknown)}")
    return normalize_weights(raw)
