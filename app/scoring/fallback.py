from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any

from app.ai.types import AIClient
from app.core.errors import GenerationError
from app.services.generation import generate_json

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """
You are an expert resume evaluator scoring two versions of the same resume against one job description.
Metric: {metric}
{instruction}
Score each version from 0 to 100.
Respond ONLY with JSON: {{"original": number, "optimized": number}}
"""


@dataclass(frozen=True)
class PairScore:
    original: float
    optimized: float

    def clamped(self) -> "PairScore":
        return PairScore(original=clamp_score(self.original), optimized=clamp_score(self.optimized))

    @property
    def degenerate(self) -> bool:
        """True when either side scored 0, the trigger for a generative second opinion."""
        return self.original == 0 or self.optimized == 0


def clamp_score(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return round(max(0.0, min(100.0, number)), 2)


def parse_pair(payload: dict[str, Any]) -> PairScore:
    return PairScore(
        original=clamp_score(payload.get("original")),
        optimized=clamp_score(payload.get("optimized")),
    )


class GenerativeScorer:
    def __init__(self, client: AIClient):
        self._client = client

    async def score_pair(
        self,
        metric_name: str,
        instruction: str,
        job_description: str,
        original_text: str,
        optimized_text: str,
    ) -> PairScore | None:
        """Ask the generator for an (original, optimized) score pair.

        Returns None on any generation or parse failure so callers keep their
        heuristic values.
        """
        user_prompt = (
            f"JOB DESCRIPTION:\n{job_description}\n\n"
            f"ORIGINAL RESUME:\n{original_text}\n\n"
            f"OPTIMIZED RESUME:\n{optimized_text}"
        )
        try:
            payload = await generate_json(
                self._client,
                system_prompt=_SYSTEM_PROMPT.format(metric=metric_name, instruction=instruction.strip()),
                user_prompt=user_prompt,
                stage=f"score:{metric_name}",
            )
        except GenerationError as exc:
            logger.warning(
                json.dumps({"event": "score_fallback_failed", "metric": metric_name, "code": exc.code})
            )
            return None
        return parse_pair(payload)

    async def with_fallback(
        self,
        metric_name: str,
        heuristic: PairScore,
        *,
        instruction: str,
        job_description: str,
        original_text: str,
        optimized_text: str,
    ) -> PairScore:
        heuristic = heuristic.clamped()
        if not heuristic.degenerate:
            return heuristic
        logger.info(json.dumps({"event": "score_fallback_triggered", "metric": metric_name}))
        generated = await self.score_pair(
            metric_name, instruction, job_description, original_text, optimized_text
        )
        return generated if generated is not None else heuristic
