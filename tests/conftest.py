import re
import threading
import time
import zlib

import numpy as np
import pytest

from citerag.config import Settings
from citerag.errors import ProviderError
from citerag.pipeline import RagPipeline
from citerag.storage import SQLiteRepository

DIM = 1024


def bag_of_words(text: str, dim: int = DIM) -> np.ndarray:
    """Deterministic hashed bag-of-words vector, L2-normalised."""
    vec = np.zeros(dim, dtype=np.float32)
    for token in re.findall(r"[a-z]+", text.lower()):
        vec[zlib.crc32(token.encode()) % dim] += 1.0
    norm = np.linalg.norm(vec)
    return vec / norm if norm else vec


class FakeEmbedder:
    """Offline embedder; optionally fails or stalls on matching texts."""

    def __init__(self, fail_on: str | None = None, delay: float = 0.0, dim: int = DIM):
        self.fail_on = fail_on
        self.delay = delay
        self.dim = dim
        self.calls: list[list[str]] = []
        self._lock = threading.Lock()

    @property
    def dimension(self) -> int:
        return self.dim

    @property
    def model_name(self) -> str:
        return "fake-bow"

    def embed(self, texts: list[str]) -> np.ndarray:
        with self._lock:
            self.calls.append(list(texts))
        if self.delay:
            time.sleep(self.delay)
        if self.fail_on and any(self.fail_on in t for t in texts):
            raise ProviderError("embedding quota exceeded")
        return np.stack([bag_of_words(t, self.dim) for t in texts])


class FakeGenerator:
    """Offline generator returning a canned answer or raising."""

    def __init__(self, answer: str = "Cats eat meat [SOURCE 1].", error: Exception | None = None):
        self.answer = answer
        self.error = error
        self.prompts: list[str] = []

    @property
    def model_name(self) -> str:
        return "fake-gen"

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer


CATS_TEXT = "# Intro\nCats are mammals. Dogs are mammals too.\n# Diet\nCats eat meat."


@pytest.fixture
def store(tmp_path):
    repository = SQLiteRepository(tmp_path / "test.db")
    repository.initialize()
    return repository


@pytest.fixture
def settings(tmp_path):
    return Settings(
        db_path=str(tmp_path / "test.db"),
        embed_workers=3,
        embed_batch_size=2,
        embed_timeout=5.0,
        generation_timeout=5.0,
    )


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def pipeline(store, embedder, generator, settings):
    return RagPipeline(store, embedder, generator, settings=settings)


@pytest.fixture
def cats_document(pipeline):
    pipeline.process_document("cats", CATS_TEXT, "cats.md")
    return "cats"
