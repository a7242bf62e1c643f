import pytest

from citerag.config import Settings


def test_defaults_match_documented_constants():
    s = Settings()
    assert (s.max_tokens, s.bm25_k1, s.bm25_b, s.rrf_k) == (500, 1.5, 0.75, 60)
    assert s.prompt_mode == "advanced"
    s.validate()


def test_from_env(monkeypatch):
    monkeypatch.setenv("CITERAG_DB_PATH", "/tmp/x.db")
    monkeypatch.setenv("CITERAG_MAX_TOKENS", "120")
    monkeypatch.setenv("CITERAG_PROMPT_MODE", "basic")
    monkeypatch.setenv("CITERAG_RRF_K", "10")
    monkeypatch.setenv("CITERAG_EMBED_WORKERS", "2")

    s = Settings.from_env()
    assert s.db_path == "/tmp/x.db"
    assert s.max_tokens == 120
    assert s.prompt_mode == "basic"
    assert s.rrf_k == 10
    assert s.embed_workers == 2


@pytest.mark.parametrize(
    "field, value",
    [
        ("max_tokens", 0),
        ("top_k", 0),
        ("prompt_mode", "fancy"),
        ("bm25_b", 1.5),
        ("embed_workers", 0),
        ("generation_timeout", 0),
    ],
)
def test_validate_rejects_bad_values(field, value):
    with pytest.raises(ValueError):
        Settings(**{field: value}).validate()


def test_from_env_validates(monkeypatch):
    monkeypatch.setenv("CITERAG_TOP_K", "0")
    with pytest.raises(ValueError):
        Settings.from_env()
