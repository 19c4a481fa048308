from __future__ import annotations

from typing import Protocol


class TaxonomyProvider(Protocol):
    def normalize_skill(self, raw: str) -> tuple[str, str | None]:
        """Return normalized skill text and its canonical ID when the alias is known."""

    def canonical(self, raw: str) -> str:
        """Return the canonical ID for a skill, or its normalized text."""
