"""Data models for citerag."""

from citerag.models.document import (
    Chunk,
    ChunkMetadata,
    Document,
    DocumentStatus,
    PromptMode,
    Query,
    QueryResult,
    RetrievedChunk,
    can_transition,
)

__all__ = [
    "Document",
    "DocumentStatus",
    "Chunk",
    "ChunkMetadata",
    "RetrievedChunk",
    "Query",
    "QueryResult",
    "PromptMode",
    "can_transition",
]
