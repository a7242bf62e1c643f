"""Okapi BM25 lexical scoring over one document's chunk set."""

import math
from typing import Sequence

from rank_bm25 import BM25Okapi

from citerag.models import Chunk


def tokenize(text: str) -> list[str]:
    """Lower-case and split on whitespace runs."""
    return text.lower().split()


def idf(df: int, n_docs: int) -> float:
    """Smoothed inverse document frequency, always positive."""
    return math.log((n_docs - df + 0.5) / (df + 0.5) + 1)


class _ChunkBM25(BM25Okapi):
    """``BM25Okapi`` with the ``+1`` smoothed idf instead of epsilon flooring."""

    def _calc_idf(self, nd):
        for word, freq in nd.items():
            self.idf[word] = idf(freq, self.corpus_size)


class BM25Scorer:
    """Score chunks against a query by term statistics.

    Document frequencies are recomputed on every call over the chunks
    passed in; there is no persistent inverted index.
    """

    def __init__(self, k1: float = 1.5, b: float = 0.75):
        self.k1 = k1
        self.b = b

    def score(self, chunks: Sequence[Chunk], query: str) -> list[float]:
        """Return one score per chunk, in input order (higher is better)."""
        if not chunks:
            return []

        corpus = [tokenize(c.text) for c in chunks]
        # every chunk empty: average length is 0 and nothing can match
        if not any(corpus):
            return [0.0] * len(chunks)

        bm25 = _ChunkBM25(corpus, k1=self.k1, b=self.b)
        return [float(s) for s in bm25.get_scores(tokenize(query))]
