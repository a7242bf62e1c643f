"""citerag - grounded question answering over a single document."""

from citerag.chunkers import HierarchicalChunker
from citerag.config import Settings
from citerag.errors import (
    CiteRagError,
    DocumentStateError,
    FusionError,
    InputError,
    NotFoundError,
    ProviderError,
    QueryCancelledError,
)
from citerag.grounding import extract_citations, faithfulness
from citerag.pipeline import RagPipeline
from citerag.retrieval import BM25Scorer, RankFusion, VectorScorer

__version__ = "0.1.0"

__all__ = [
    "RagPipeline",
    "Settings",
    "HierarchicalChunker",
    "BM25Scorer",
    "VectorScorer",
    "RankFusion",
    "extract_citations",
    "faithfulness",
    "CiteRagError",
    "InputError",
    "NotFoundError",
    "DocumentStateError",
    "ProviderError",
    "FusionError",
    "QueryCancelledError",
]
