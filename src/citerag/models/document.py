"""Core data models for documents, chunks and queries."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import numpy as np


def utc_now() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class DocumentStatus(str, Enum):
    """Lifecycle of a document's chunk-and-embed pass."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.COMPLETED, DocumentStatus.FAILED)


# Allowed moves; completed and failed are terminal.
_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.PENDING: frozenset(
        {DocumentStatus.PROCESSING, DocumentStatus.FAILED}
    ),
    DocumentStatus.PROCESSING: frozenset(
        {DocumentStatus.COMPLETED, DocumentStatus.FAILED}
    ),
    DocumentStatus.COMPLETED: frozenset(),
    DocumentStatus.FAILED: frozenset(),
}


def can_transition(src: DocumentStatus, dst: DocumentStatus) -> bool:
    """Check whether a document may move from ``src`` to ``dst``."""
    return dst in _TRANSITIONS[src]


class PromptMode(str, Enum):
    """Prompt template used for answer generation."""

    BASIC = "basic"
    ADVANCED = "advanced"


@dataclass
class Document:
    """A document submitted for question answering."""

    id: str
    filename: str
    text: str
    status: DocumentStatus = DocumentStatus.PENDING
    chunk_count: int = 0
    created_at: str = field(default_factory=utc_now)


@dataclass(frozen=True)
class ChunkMetadata:
    """Closed set of metadata attached to every chunk."""

    section_title: str
    section_level: int
    token_count: int
    chunk_type: str = "text"

    def to_dict(self) -> dict[str, Any]:
        return {
            "section_title": self.section_title,
            "section_level": self.section_level,
            "chunk_type": self.chunk_type,
            "token_count": self.token_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChunkMetadata":
        """Build metadata from a mapping, ignoring unknown keys."""
        return cls(
            section_title=str(data.get("section_title", "")),
            section_level=int(data.get("section_level", 0)),
            token_count=int(data.get("token_count", 0)),
            chunk_type=str(data.get("chunk_type", "text")),
        )


@dataclass(frozen=True, eq=False)
class Chunk:
    """A bounded passage of a document, the unit of retrieval.

    Drafts produced by a chunker have no ``id``, ``document_id`` or
    ``embedding``; the pipeline fills them in before persisting.
    """

    chunk_index: int
    text: str
    metadata: ChunkMetadata
    id: Optional[str] = None
    document_id: Optional[str] = None
    embedding: Optional[np.ndarray] = None

    def with_embedding(self, embedding: np.ndarray) -> "Chunk":
        return replace(self, embedding=embedding)

    def bind(self, chunk_id: str, document_id: str) -> "Chunk":
        """Return a copy owned by ``document_id``."""
        return replace(self, id=chunk_id, document_id=document_id)

    @property
    def section_title(self) -> str:
        return self.metadata.section_title


@dataclass(frozen=True)
class RetrievedChunk:
    """A chunk as ranked for a single query."""

    chunk: Chunk
    score: float
    rank: int

    @property
    def id(self) -> Optional[str]:
        return self.chunk.id

    @property
    def text(self) -> str:
        return self.chunk.text

    @property
    def section_title(self) -> str:
        return self.chunk.metadata.section_title

    def summary(self) -> dict[str, Any]:
        """Compact form stored with the query record."""
        return {
            "id": self.chunk.id,
            "chunk_index": self.chunk.chunk_index,
            "score": self.score,
            "rank": self.rank,
        }


@dataclass(frozen=True)
class Query:
    """An answered question. Never mutated after creation."""

    id: str
    document_id: str
    question: str
    answer: str
    prompt_mode: PromptMode
    retrieved_chunks: tuple[dict[str, Any], ...]
    citations: tuple[str, ...]
    faithfulness_score: float
    used_fallback: bool = False
    created_at: str = field(default_factory=utc_now)


@dataclass
class QueryResult:
    """Structured response handed back to the caller of ``answer_query``."""

    query_id: str
    answer: str
    citations: list[str]
    faithfulness_score: float
    retrieved_chunks: list[RetrievedChunk]
    used_fallback: bool = False
