"""Protocol definitions for extensible components."""

from citerag.protocols.chunker import ChunkingStrategy
from citerag.protocols.embedder import EmbeddingProvider
from citerag.protocols.generator import GenerationProvider
from citerag.protocols.repository import Repository

__all__ = [
    "ChunkingStrategy",
    "EmbeddingProvider",
    "GenerationProvider",
    "Repository",
]
