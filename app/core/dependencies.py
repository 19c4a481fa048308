from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import HTTPException, status

from app.ai.factory import get_ai_client, get_embedding_client
from app.ai.types import AIClient, EmbeddingClient
from app.core.config import settings
from app.pipeline.cache import ParsedResumeCache

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_parse_cache() -> ParsedResumeCache:
    return ParsedResumeCache(
        max_entries=max(1, settings.parse_cache_max_entries),
        ttl_seconds=max(1.0, settings.parse_cache_ttl_seconds),
    )


def get_generation_client() -> AIClient:
    try:
        return get_ai_client()
    except (RuntimeError, ValueError) as exc:
        logger.error("generation_client_unavailable: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Text generation service is not configured.",
        ) from exc


def get_embedder() -> EmbeddingClient:
    try:
        return get_embedding_client()
    except (RuntimeError, ValueError) as exc:
        logger.error("embedding_client_unavailable: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Embedding service is not configured.",
        ) from exc
