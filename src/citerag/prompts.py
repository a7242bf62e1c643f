"""Prompt templates for grounded answer generation."""

from typing import Sequence

from citerag.grounding import format_citation
from citerag.grounding.citations import CITATION_KEYWORD
from citerag.models import PromptMode, RetrievedChunk

SYSTEM_MESSAGE = "You are an expert academic assistant."

INSUFFICIENT_INFORMATION = (
    "The provided information is not sufficient to answer the question."
)

FALLBACK_LABEL = "[Extractive fallback]"
FALLBACK_EXCERPT_CHARS = 300

BASIC_TEMPLATE = """Context:
{context}

Question: {question}

Based on the context, answer the question:
Answer:"""

ADVANCED_TEMPLATE = """You are a specialised academic assistant. Analyse the context and answer the question.

CONTEXT:
{context}

STRICT INSTRUCTIONS:
1. Use ONLY information from the context provided.
2. Include an explicit citation [{keyword} N] after every claim, where N is the number of the source.
3. If the information is insufficient, reply exactly: "{insufficient}"
4. Be precise and concise.

QUESTION: {question}

ANSWER WITH CITATIONS:"""


def build_context(retrieved: Sequence[RetrievedChunk]) -> str:
    """Render retrieved chunks as numbered sources, 1-based in rank order."""
    blocks = []
    for i, rc in enumerate(retrieved, start=1):
        short_id = (rc.id or "")[:8]
        title = rc.section_title or "Section"
        blocks.append(f"[{CITATION_KEYWORD} {i}: {short_id} | {title}]:\n{rc.text}")
    return "\n\n".join(blocks)


def build_prompt(
    question: str, retrieved: Sequence[RetrievedChunk], mode: PromptMode
) -> str:
    context = build_context(retrieved)
    if PromptMode(mode) is PromptMode.ADVANCED:
        return ADVANCED_TEMPLATE.format(
            context=context,
            question=question,
            keyword=CITATION_KEYWORD,
            insufficient=INSUFFICIENT_INFORMATION,
        )
    return BASIC_TEMPLATE.format(context=context, question=question)


def extractive_answer(retrieved: Sequence[RetrievedChunk], mode: PromptMode) -> str:
    """Answer built from the top chunk when generation is unavailable.

    The text is labelled as a fallback and quotes the source verbatim
    rather than paraphrasing it.
    """
    if not retrieved:
        return f"{FALLBACK_LABEL} {INSUFFICIENT_INFORMATION}"

    top = retrieved[0]
    excerpt = top.text[:FALLBACK_EXCERPT_CHARS]
    if len(top.text) > FALLBACK_EXCERPT_CHARS:
        excerpt += "..."

    if PromptMode(mode) is PromptMode.ADVANCED:
        return (
            f'{FALLBACK_LABEL} From section "{top.section_title}": '
            f"{excerpt} {format_citation(1)}"
        )
    return f'{FALLBACK_LABEL} From section "{top.section_title}": {excerpt}'
