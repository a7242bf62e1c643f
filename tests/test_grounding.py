import pytest

from citerag.grounding import (
    citation_coverage,
    extract_citations,
    faithfulness,
    format_stats,
    summarize_queries,
)
from citerag.models import Chunk, ChunkMetadata, PromptMode, Query, RetrievedChunk
from citerag.prompts import (
    FALLBACK_LABEL,
    INSUFFICIENT_INFORMATION,
    build_context,
    build_prompt,
    extractive_answer,
)


def retrieved(*texts: str) -> list[RetrievedChunk]:
    out = []
    for i, text in enumerate(texts):
        chunk = Chunk(
            chunk_index=i,
            text=text,
            metadata=ChunkMetadata(section_title=f"Sec{i}", section_level=1, token_count=len(text.split())),
            id=f"chunk-{i:04d}-abcdef",
            document_id="doc",
        )
        out.append(RetrievedChunk(chunk=chunk, score=1.0 / (i + 1), rank=i + 1))
    return out


def test_extract_citations_collapses_duplicates_and_case():
    answer = "Cats hunt [SOURCE 1]. Intro says so [SOURCE 2: Intro]. Again [source 1]."
    assert extract_citations(answer) == {"1", "2"}


@pytest.mark.parametrize(
    "answer",
    ["", "No markers here.", "[SOURCE] empty", "[SOURCE 0] zero", "[SOURCE -1]", "(SOURCE 1)", "[SOURCES 1]"],
)
def test_extract_citations_ignores_non_markers(answer):
    assert extract_citations(answer) == set()


def test_extract_citations_multi_digit():
    assert extract_citations("See [Source 12: Methods] and [SOURCE 3]") == {"12", "3"}


def test_faithfulness_all_cited_is_one():
    answer = "Cats eat meat [SOURCE 1]. Dogs are mammals too [SOURCE 2]!"
    assert faithfulness(answer, retrieved("a", "b")) == 1.0


def test_faithfulness_partial():
    answer = "Cats eat meat [SOURCE 1]. This sentence has no citation at all."
    assert faithfulness(answer) == 0.5


def test_faithfulness_ignores_short_sentences():
    answer = "Yes. Cats eat meat [SOURCE 1]. Ok!"
    assert faithfulness(answer) == 1.0


def test_faithfulness_zero_without_surviving_sentences():
    assert faithfulness("") == 0.0
    assert faithfulness("Yes. No. Ok.") == 0.0


@pytest.mark.parametrize(
    "answer",
    [
        "plain text",
        "A much longer sentence without sources. Another one [SOURCE 4]?",
        "[SOURCE 1] [SOURCE 2] [SOURCE 3]",
        "....!!!???",
    ],
)
def test_faithfulness_bounds(answer):
    assert 0.0 <= faithfulness(answer) <= 1.0


def test_citation_coverage_flags_dangling_labels():
    coverage = citation_coverage({"1", "2", "7"}, retrieved("a", "b"))
    assert coverage.valid == {"1", "2"}
    assert coverage.dangling == {"7"}


def test_context_numbers_sources_in_rank_order():
    context = build_context(retrieved("first text", "second text"))
    assert context.startswith("[SOURCE 1: chunk-00 | Sec0]:\nfirst text")
    assert "[SOURCE 2: chunk-00 | Sec1]:\nsecond text" in context


def test_advanced_prompt_requires_citations():
    prompt = build_prompt("What do cats eat?", retrieved("Cats eat meat."), PromptMode.ADVANCED)
    assert "[SOURCE N]" in prompt
    assert INSUFFICIENT_INFORMATION in prompt
    assert "QUESTION: What do cats eat?" in prompt


def test_basic_prompt_is_minimal():
    prompt = build_prompt("What do cats eat?", retrieved("Cats eat meat."), "basic")
    assert "Question: What do cats eat?" in prompt
    assert INSUFFICIENT_INFORMATION not in prompt


def test_extractive_answer_is_labelled_and_cited():
    answer = extractive_answer(retrieved("Cats eat meat.", "Dogs bark."), PromptMode.ADVANCED)
    assert answer.startswith(FALLBACK_LABEL)
    assert "Cats eat meat." in answer
    assert extract_citations(answer) == {"1"}

    basic = extractive_answer(retrieved("Cats eat meat."), PromptMode.BASIC)
    assert basic.startswith(FALLBACK_LABEL)
    assert extract_citations(basic) == set()


def test_extractive_answer_truncates_long_text():
    answer = extractive_answer(retrieved("word " * 200), PromptMode.BASIC)
    assert answer.endswith("...")


# Aggregate metrics


def make_query(n: int, mode: PromptMode, citations: tuple, score: float, fallback: bool = False) -> Query:
    return Query(
        id=f"q{n}",
        document_id="doc",
        question=f"Question {n}?",
        answer="...",
        prompt_mode=mode,
        retrieved_chunks=(),
        citations=citations,
        faithfulness_score=score,
        used_fallback=fallback,
    )


def test_summarize_mixed_basic_and_advanced_queries():
    queries = [
        make_query(1, PromptMode.ADVANCED, ("1", "2", "3"), 1.0),
        make_query(2, PromptMode.ADVANCED, ("1", "2"), 0.75),
        make_query(3, PromptMode.BASIC, ("1",), 0.5, fallback=True),
        make_query(4, PromptMode.ADVANCED, ("2", "4"), 1.0),
    ]
    stats = summarize_queries(queries)

    assert stats.query_count == 4
    assert stats.avg_faithfulness == pytest.approx(0.8125)
    assert stats.hallucination_rate == pytest.approx(0.1875)
    assert not stats.meets_hallucination_target
    assert stats.advanced_count == 3
    assert stats.advanced_share == pytest.approx(0.75)
    assert stats.avg_citations == pytest.approx(2.0)
    assert stats.meets_citation_target
    assert stats.fallback_count == 1

    text = format_stats(stats)
    assert "Advanced prompts:   3 (75%)" in text
    assert "below target" in text
    assert "Citations/answer:   2.0" in text


def test_fully_cited_answers_meet_hallucination_target():
    stats = summarize_queries([make_query(1, PromptMode.BASIC, ("1",), 1.0)])

    assert stats.hallucination_rate == 0.0
    assert stats.meets_hallucination_target
    assert not stats.meets_citation_target
    assert stats.advanced_share == 0.0


def test_summarize_without_queries():
    assert summarize_queries([]) is None
    assert format_stats(None) == "No questions asked yet"
