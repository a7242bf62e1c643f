"""Chunking strategies."""

from citerag.chunkers.hierarchical_chunker import (
    HierarchicalChunker,
    heading_level,
    split_sentences,
)

__all__ = ["HierarchicalChunker", "heading_level", "split_sentences"]
