from citerag.server.mcp_server import format_chunks, format_documents

from conftest import CATS_TEXT


def test_format_documents(pipeline, store):
    assert format_documents(store) == "No documents ingested yet"

    pipeline.process_document("cats", CATS_TEXT, "cats.md")
    listing = format_documents(store)
    assert "cats" in listing
    assert "completed" in listing
    assert "2 chunks" in listing


def test_format_chunks(pipeline, store, cats_document):
    out = format_chunks(store, cats_document, limit=1)
    assert "#0 [Intro | level 1 | 7 tokens]" in out
    assert "... 1 more" in out
    assert format_chunks(store, "missing") == "No chunks for document missing"
