"""Hybrid lexical and vector retrieval."""

from citerag.retrieval.bm25 import BM25Scorer, tokenize
from citerag.retrieval.fusion import RankFusion, scores_to_ranks
from citerag.retrieval.vector import VectorScorer, cosine_similarity

__all__ = [
    "BM25Scorer",
    "VectorScorer",
    "RankFusion",
    "tokenize",
    "scores_to_ranks",
    "cosine_similarity",
]
