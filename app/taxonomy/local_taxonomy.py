from __future__ import annotations

import json
import re
from pathlib import Path

_SPACE_RE = re.compile(r"\s+")
_EDGE_PUNCT = " .,;:()[]{}\"'"


class LocalTaxonomy:
    """Skill alias table loaded from a JSON mapping of alias -> canonical ID."""

    def __init__(self, synonyms_path: str | Path | None = None) -> None:
        path = Path(synonyms_path) if synonyms_path else Path(__file__).with_name("synonyms.json")
        self._synonyms = self._load_synonyms(path)

    @staticmethod
    def _load_synonyms(path: Path) -> dict[str, str]:
        with path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
        return {_normalize(str(key)): str(value).strip().lower() for key, value in raw.items()}

    def normalize_skill(self, raw: str) -> tuple[str, str | None]:
        normalized = _normalize(raw)
        return normalized, self._synonyms.get(normalized)

    def canonical(self, raw: str) -> str:
        normalized, canonical_id = self.normalize_skill(raw)
        return canonical_id or normalized


def _normalize(raw: str) -> str:
    return _SPACE_RE.sub(" ", raw.strip().lower()).strip(_EDGE_PUNCT)
