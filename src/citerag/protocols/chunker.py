"""Protocol for text chunking strategies."""

from typing import Protocol, runtime_checkable

from citerag.models import Chunk


@runtime_checkable
class ChunkingStrategy(Protocol):
    """Protocol for text chunking strategies.

    Implementations must be deterministic: identical input yields
    identical chunk boundaries and metadata.
    """

    def chunk(self, text: str, title_hint: str) -> list[Chunk]:
        """Split text into draft chunks numbered 0..N-1."""
        ...
