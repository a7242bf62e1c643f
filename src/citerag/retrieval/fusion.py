"""Reciprocal rank fusion of lexical and vector rankings."""

from typing import Sequence

from citerag.errors import FusionError
from citerag.models import Chunk, RetrievedChunk


def scores_to_ranks(scores: Sequence[float]) -> list[int]:
    """Turn scores into 0-based ranks, best first.

    Ties keep input order, so the ranking is deterministic.
    """
    order = sorted(range(len(scores)), key=lambda i: -scores[i])
    ranks = [0] * len(scores)
    for rank, idx in enumerate(order):
        ranks[idx] = rank
    return ranks


class RankFusion:
    """Merge two rankings with reciprocal rank fusion.

    ``k`` damps the influence of rank position: a larger ``k`` flattens
    the difference between the top and the tail of each ranking.
    """

    DEFAULT_K = 60

    def __init__(self, k: int = DEFAULT_K):
        self.k = k

    def fuse(
        self,
        bm25_scores: Sequence[float],
        vector_scores: Sequence[float],
        chunks: Sequence[Chunk],
        top_k: int,
    ) -> list[RetrievedChunk]:
        """Return the ``min(top_k, len(chunks))`` best chunks, ranked 1..n."""
        if top_k < 1:
            raise FusionError(f"top_k must be >= 1, got {top_k}")
        if not chunks:
            raise FusionError("Cannot fuse an empty chunk set")
        if len(bm25_scores) != len(chunks) or len(vector_scores) != len(chunks):
            raise FusionError(
                f"Score lists ({len(bm25_scores)}, {len(vector_scores)}) "
                f"do not match {len(chunks)} chunks"
            )

        bm25_ranks = scores_to_ranks(bm25_scores)
        vector_ranks = scores_to_ranks(vector_scores)
        fused = [
            1.0 / (self.k + bm25_rank + 1) + 1.0 / (self.k + vector_rank + 1)
            for bm25_rank, vector_rank in zip(bm25_ranks, vector_ranks)
        ]

        order = sorted(range(len(chunks)), key=lambda i: -fused[i])[:top_k]
        return [
            RetrievedChunk(chunk=chunks[idx], score=fused[idx], rank=rank)
            for rank, idx in enumerate(order, start=1)
        ]
