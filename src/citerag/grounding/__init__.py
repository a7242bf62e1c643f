"""Citation extraction and grounding metrics."""

from citerag.grounding.citations import (
    CitationCoverage,
    citation_coverage,
    extract_citations,
    faithfulness,
    format_citation,
)
from citerag.grounding.metrics import GroundingStats, format_stats, summarize_queries

__all__ = [
    "extract_citations",
    "faithfulness",
    "citation_coverage",
    "format_citation",
    "CitationCoverage",
    "GroundingStats",
    "summarize_queries",
    "format_stats",
]
