import numpy as np
import pytest

from citerag.errors import DocumentStateError
from citerag.models import (
    Chunk,
    ChunkMetadata,
    Document,
    DocumentStatus,
    PromptMode,
    Query,
    can_transition,
)
from citerag.protocols import Repository


def make_chunks(document_id: str, n: int, embed: bool = True) -> list[Chunk]:
    return [
        Chunk(
            chunk_index=i,
            text=f"chunk {i}",
            metadata=ChunkMetadata(section_title="S", section_level=1, token_count=2),
            id=f"{document_id}-{i}",
            document_id=document_id,
            embedding=np.full(4, i, dtype=np.float32) if embed else None,
        )
        for i in range(n)
    ]


def test_store_satisfies_repository_protocol(store):
    assert isinstance(store, Repository)


def test_create_and_get_document(store):
    store.create_document(Document(id="d1", filename="a.txt", text="hello"))
    doc = store.get_document("d1")

    assert doc.filename == "a.txt"
    assert doc.status is DocumentStatus.PENDING
    assert doc.chunk_count == 0
    assert store.get_document("missing") is None


def test_create_document_keeps_existing_row(store):
    store.create_document(Document(id="d1", filename="a.txt", text="hello"))
    store.transition_document("d1", DocumentStatus.PENDING, DocumentStatus.PROCESSING)
    store.create_document(Document(id="d1", filename="b.txt", text="other"))

    doc = store.get_document("d1")
    assert doc.filename == "a.txt"
    assert doc.status is DocumentStatus.PROCESSING


def test_transition_is_compare_and_set(store):
    store.create_document(Document(id="d1", filename="a.txt", text="hello"))

    assert store.transition_document("d1", DocumentStatus.PENDING, DocumentStatus.PROCESSING)
    assert not store.transition_document("d1", DocumentStatus.PENDING, DocumentStatus.PROCESSING)
    assert store.get_document("d1").status is DocumentStatus.PROCESSING


def test_store_chunks_completes_document(store):
    store.create_document(Document(id="d1", filename="a.txt", text="hello"))
    store.transition_document("d1", DocumentStatus.PENDING, DocumentStatus.PROCESSING)
    store.store_chunks("d1", list(reversed(make_chunks("d1", 3))))

    doc = store.get_document("d1")
    chunks = store.get_chunks("d1")
    assert doc.status is DocumentStatus.COMPLETED
    assert doc.chunk_count == len(chunks) == store.count_chunks("d1") == 3
    assert [c.chunk_index for c in chunks] == [0, 1, 2]
    np.testing.assert_array_equal(chunks[2].embedding, np.full(4, 2, dtype=np.float32))
    assert chunks[0].metadata.section_title == "S"


def test_store_chunks_requires_processing_status(store):
    store.create_document(Document(id="d1", filename="a.txt", text="hello"))

    with pytest.raises(DocumentStateError):
        store.store_chunks("d1", make_chunks("d1", 2))
    assert store.get_chunks("d1") == []


def test_missing_embedding_round_trips_as_none(store):
    store.create_document(Document(id="d1", filename="a.txt", text="hello"))
    store.transition_document("d1", DocumentStatus.PENDING, DocumentStatus.PROCESSING)
    store.store_chunks("d1", make_chunks("d1", 1, embed=False))

    assert store.get_chunks("d1")[0].embedding is None


def test_queries_round_trip(store):
    query = Query(
        id="q1",
        document_id="d1",
        question="What?",
        answer="That [SOURCE 1].",
        prompt_mode=PromptMode.ADVANCED,
        retrieved_chunks=({"id": "c1", "chunk_index": 0, "score": 0.03, "rank": 1},),
        citations=("1",),
        faithfulness_score=1.0,
    )
    store.store_query(query)

    loaded = store.get_query("q1")
    assert loaded == query
    assert store.list_queries("d1") == [query]
    assert store.get_query("nope") is None


def test_metadata(store):
    store.set_metadata("embedding_model", "m1")
    store.set_metadata("embedding_model", "m2")
    assert store.get_metadata("embedding_model") == "m2"
    assert store.get_metadata("missing") is None


def test_status_transitions_are_monotonic():
    P, R, C, F = (
        DocumentStatus.PENDING,
        DocumentStatus.PROCESSING,
        DocumentStatus.COMPLETED,
        DocumentStatus.FAILED,
    )
    assert can_transition(P, R) and can_transition(R, C)
    assert can_transition(P, F) and can_transition(R, F)
    for terminal in (C, F):
        assert terminal.is_terminal
        assert not any(can_transition(terminal, dst) for dst in DocumentStatus)
    assert not can_transition(R, P)
    assert not can_transition(P, C)


def test_illegal_transition_is_rejected(store):
    store.create_document(Document(id="d1", filename="a.txt", text="hello"))

    with pytest.raises(DocumentStateError, match="pending -> completed"):
        store.transition_document("d1", DocumentStatus.PENDING, DocumentStatus.COMPLETED)
    with pytest.raises(DocumentStateError):
        store.transition_document("d1", DocumentStatus.FAILED, DocumentStatus.PENDING)
    assert store.get_document("d1").status is DocumentStatus.PENDING


def test_chunk_metadata_from_dict_ignores_unknown_keys():
    meta = ChunkMetadata.from_dict(
        {"section_title": "Diet", "section_level": "2", "token_count": 3, "embedding": b"x"}
    )
    assert meta == ChunkMetadata(section_title="Diet", section_level=2, token_count=3)
    assert ChunkMetadata.from_dict(meta.to_dict()) == meta


def test_chunk_metadata_survives_storage(store):
    store.create_document(Document(id="d1", filename="a.txt", text="hello"))
    store.transition_document("d1", DocumentStatus.PENDING, DocumentStatus.PROCESSING)
    meta = ChunkMetadata(section_title="Intro", section_level=0, token_count=7, chunk_type="text")
    store.store_chunks("d1", [Chunk(chunk_index=0, text="x", metadata=meta, id="c0", document_id="d1")])

    assert store.get_chunks("d1")[0].metadata == meta
