from __future__ import annotations

import hashlib
import re
from typing import Sequence

import numpy as np

_TOKEN_PATTERN = re.compile(r"[a-z0-9\+#]+")


class SimpleEmbeddingProvider:
    """Hashed bag-of-words embedder for offline runs and tests."""

    def __init__(self, dimension: int = 64) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be greater than 0")
        self.dimension = dimension

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        return [self._embed_single(text) for text in texts]

    def _embed_single(self, text: str) -> list[float]:
        vector = np.zeros(self.dimension, dtype="float32")
        for token in _TOKEN_PATTERN.findall(text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).hexdigest()
            vector[int(digest[:8], 16) % self.dimension] += 1.0

        norm = float(np.linalg.norm(vector))
        if norm <= 0:
            return vector.tolist()
        return (vector / norm).tolist()


def cosine_similarity(left: Sequence[float], right: Sequence[float]) -> float:
    left_vec = np.asarray(left, dtype="float32")
    right_vec = np.asarray(right, dtype="float32")
    if left_vec.shape != right_vec.shape or left_vec.size == 0:
        return 0.0
    left_norm = float(np.linalg.norm(left_vec))
    right_norm = float(np.linalg.norm(right_vec))
    if left_norm <= 0 or right_norm <= 0:
        return 0.0
    return float(np.dot(left_vec, right_vec) / (left_norm * right_norm))
