"""Citation extraction and faithfulness scoring of generated answers."""

import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from citerag.chunkers import split_sentences
from citerag.models import RetrievedChunk

CITATION_KEYWORD = "SOURCE"

# [SOURCE 3] or [SOURCE 3: free text]
_CITATION = re.compile(
    rf"\[{CITATION_KEYWORD}\s+([1-9]\d*)(?::\s*[^\]]+)?\]", re.IGNORECASE
)
_MARKER = re.compile(rf"\[{CITATION_KEYWORD}\s+[1-9]\d*", re.IGNORECASE)

MIN_SENTENCE_CHARS = 10


def format_citation(n: int) -> str:
    return f"[{CITATION_KEYWORD} {n}]"


def extract_citations(answer: str) -> set[str]:
    """Return the distinct source numbers cited in ``answer``."""
    return {match.group(1) for match in _CITATION.finditer(answer or "")}


def faithfulness(answer: str, retrieved: Sequence[RetrievedChunk] = ()) -> float:
    """Fraction of an answer's sentences that carry a citation marker.

    Sentences shorter than ``MIN_SENTENCE_CHARS`` are ignored. This is a
    grounding proxy: a cited sentence is assumed, not verified, to be
    supported by its source. Returns 0.0 when no sentence survives.
    """
    sentences = [
        s for s in split_sentences(answer or "") if len(s) >= MIN_SENTENCE_CHARS
    ]
    if not sentences:
        return 0.0
    cited = sum(1 for s in sentences if _MARKER.search(s))
    return cited / len(sentences)


@dataclass(frozen=True)
class CitationCoverage:
    """Citation labels split by whether they point at a prompt source."""

    valid: frozenset[str]
    dangling: frozenset[str]


def citation_coverage(
    citations: Iterable[str], retrieved: Sequence[RetrievedChunk]
) -> CitationCoverage:
    """Check cited labels against the 1-based sources shown in the prompt."""
    valid, dangling = set(), set()
    for label in citations:
        if 1 <= int(label) <= len(retrieved):
            valid.add(label)
        else:
            dangling.add(label)
    return CitationCoverage(valid=frozenset(valid), dangling=frozenset(dangling))
