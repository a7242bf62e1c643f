"""Aggregate grounding metrics over a document's answered questions."""

from dataclasses import dataclass
from typing import Optional, Sequence

from citerag.models import PromptMode, Query

# Targets the hybrid pipeline is expected to meet
HALLUCINATION_TARGET = 0.08
CITATIONS_TARGET = 2.0


@dataclass(frozen=True)
class GroundingStats:
    """Averages over every stored query of one document."""

    query_count: int
    avg_faithfulness: float
    advanced_count: int
    avg_citations: float
    fallback_count: int = 0

    @property
    def hallucination_rate(self) -> float:
        """Share of answer sentences without a citation, on average."""
        return 1.0 - self.avg_faithfulness

    @property
    def advanced_share(self) -> float:
        return self.advanced_count / self.query_count

    @property
    def meets_hallucination_target(self) -> bool:
        return self.hallucination_rate < HALLUCINATION_TARGET

    @property
    def meets_citation_target(self) -> bool:
        return self.avg_citations >= CITATIONS_TARGET


def summarize_queries(queries: Sequence[Query]) -> Optional[GroundingStats]:
    """Aggregate ``queries``; ``None`` when nothing has been asked yet."""
    if not queries:
        return None

    n = len(queries)
    return GroundingStats(
        query_count=n,
        avg_faithfulness=sum(q.faithfulness_score for q in queries) / n,
        advanced_count=sum(1 for q in queries if q.prompt_mode is PromptMode.ADVANCED),
        avg_citations=sum(len(q.citations) for q in queries) / n,
        fallback_count=sum(1 for q in queries if q.used_fallback),
    )


def format_stats(stats: Optional[GroundingStats]) -> str:
    """Render stats as plain text lines for the CLI and the MCP server."""
    if stats is None:
        return "No questions asked yet"

    def mark(ok: bool) -> str:
        return "ok" if ok else "below target"

    return "\n".join(
        [
            f"Questions:          {stats.query_count} ({stats.fallback_count} extractive fallback)",
            f"Faithfulness:       {stats.avg_faithfulness:.1%}",
            f"Hallucination rate: {stats.hallucination_rate:.1%} "
            f"(target < {HALLUCINATION_TARGET:.0%}: {mark(stats.meets_hallucination_target)})",
            f"Advanced prompts:   {stats.advanced_count} ({stats.advanced_share:.0%})",
            f"Citations/answer:   {stats.avg_citations:.1f} "
            f"(target >= {CITATIONS_TARGET:g}: {mark(stats.meets_citation_target)})",
        ]
    )
