"""Section-aware chunking strategy."""

import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from citerag.models import Chunk, ChunkMetadata

_MARKDOWN_HEADING = re.compile(r"(#{1,6})\s+(.+)")
_COLON_HEADING = re.compile(r"[A-Z][A-Za-z\s]{2,50}:")
_NUMBERED_HEADING = re.compile(r"\d+\.\s+[A-Z].{3,50}")
_CAPS_HEADING = re.compile(r"[A-Z][A-Z\s]{3,30}")

# A run of text ending in terminal punctuation, or trailing text with none.
_SENTENCE = re.compile(r"[^.!?]*[.!?]+|[^.!?]+$")


def _markdown_level(line: str) -> Optional[int]:
    match = _MARKDOWN_HEADING.fullmatch(line)
    return len(match.group(1)) if match else None


def _fixed_level(pattern: re.Pattern) -> Callable[[str], Optional[int]]:
    def rule(line: str) -> Optional[int]:
        return 1 if pattern.fullmatch(line) else None

    return rule


# Checked in order; the first rule returning a level classifies the line.
HEADING_RULES: tuple[tuple[str, Callable[[str], Optional[int]]], ...] = (
    ("markdown", _markdown_level),
    ("colon", _fixed_level(_COLON_HEADING)),
    ("numbered", _fixed_level(_NUMBERED_HEADING)),
    ("caps", _fixed_level(_CAPS_HEADING)),
)


def heading_level(line: str) -> Optional[int]:
    """Return the heading level of a stripped line, or None for body text."""
    for _, rule in HEADING_RULES:
        level = rule(line)
        if level is not None:
            return level
    return None


def clean_heading(line: str) -> str:
    """Strip markdown hashes and a trailing colon from a heading line."""
    return re.sub(r":$", "", re.sub(r"^#+\s*", "", line))


def split_sentences(text: str) -> list[str]:
    """Split text at runs of ``.``, ``!`` and ``?``.

    Text after the last terminal mark is kept as its own sentence, so
    joining the result reproduces the input modulo whitespace.
    """
    sentences = []
    for match in _SENTENCE.finditer(text):
        sentence = match.group(0).strip()
        if sentence:
            sentences.append(sentence)
    return sentences


@dataclass
class _Section:
    title: str
    level: int
    lines: list[str] = field(default_factory=list)


class HierarchicalChunker:
    """Split text into sections by heading, then pack sentences per section.

    - Headings are detected line by line with ``HEADING_RULES``
    - Each section's body is split into sentences and greedily packed
      while the whitespace token count stays within ``max_tokens``
    - A sentence longer than ``max_tokens`` becomes a chunk on its own
    """

    DEFAULT_MAX_TOKENS = 500
    DEFAULT_TITLE = "Document"

    def __init__(self, max_tokens: int = DEFAULT_MAX_TOKENS):
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        self.max_tokens = max_tokens

    def chunk(self, text: str, title_hint: str) -> list[Chunk]:
        """Split text into chunks with section metadata.

        Args:
            text: Raw document text
            title_hint: Title for content that precedes the first heading
                (usually the filename)

        Returns:
            Draft chunks numbered 0..N-1 in document order
        """
        if not text or not text.strip():
            return []

        drafts: list[tuple[str, ChunkMetadata]] = []
        section = _Section(title=title_hint or self.DEFAULT_TITLE, level=0)

        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line:
                continue

            level = heading_level(line)
            if level is None:
                section.lines.append(line)
                continue

            if section.lines:
                drafts.extend(self._pack_section(section))
            section = _Section(title=clean_heading(line), level=level)

        if section.lines:
            drafts.extend(self._pack_section(section))

        return [
            Chunk(chunk_index=idx, text=chunk_text, metadata=metadata)
            for idx, (chunk_text, metadata) in enumerate(drafts)
        ]

    def _pack_section(self, section: _Section) -> list[tuple[str, ChunkMetadata]]:
        """Greedily pack a section's sentences into token-bounded chunks."""
        packed: list[tuple[str, ChunkMetadata]] = []
        current: list[str] = []
        current_tokens = 0

        def flush() -> None:
            packed.append(
                (
                    " ".join(current),
                    ChunkMetadata(
                        section_title=section.title,
                        section_level=section.level,
                        token_count=current_tokens,
                    ),
                )
            )

        for sentence in split_sentences(" ".join(section.lines)):
            tokens = len(sentence.split())
            if current and current_tokens + tokens > self.max_tokens:
                flush()
                current = []
                current_tokens = 0
            current.append(sentence)
            current_tokens += tokens

        if current:
            flush()

        return packed
