"""Cosine-similarity scoring of chunk embeddings."""

import logging
from typing import Any, Optional, Sequence

import numpy as np

from citerag.models import Chunk

logger = logging.getLogger(__name__)


def as_vector(value: Any) -> Optional[np.ndarray]:
    """Coerce ``value`` to a finite 1-D float vector, or None if malformed."""
    if value is None:
        return None
    try:
        vec = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if vec.ndim != 1 or vec.size == 0 or not np.all(np.isfinite(vec)):
        return None
    return vec


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Compute cosine similarity between two vectors."""
    if a.shape != b.shape:
        return 0.0
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


class VectorScorer:
    """Score chunks by cosine similarity to a query embedding.

    A chunk with a missing, malformed or wrongly sized embedding scores
    exactly 0 instead of failing the batch.
    """

    def score(self, chunks: Sequence[Chunk], query_embedding: Any) -> list[float]:
        query_vec = as_vector(query_embedding)
        if query_vec is None:
            logger.warning("Query embedding is malformed; vector scores are all 0")
            return [0.0] * len(chunks)

        scores = []
        skipped = 0
        for chunk in chunks:
            vec = as_vector(chunk.embedding)
            if vec is None:
                skipped += 1
                scores.append(0.0)
                continue
            scores.append(cosine_similarity(query_vec, vec))

        if skipped:
            logger.debug(f"{skipped} chunk(s) without a usable embedding scored 0")
        return scores
