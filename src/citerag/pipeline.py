"""Ingestion and question-answering pipeline.

``RagPipeline`` sequences the components for the two operations the
package exposes:

- ``process_document``: chunk -> embed (bounded fan-out) -> persist
- ``answer_query``: embed question -> BM25 and vector scoring in
  parallel -> rank fusion -> prompt -> generation -> citation and
  faithfulness scoring -> persist
"""

import logging
import math
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional, Sequence

import numpy as np

from citerag.chunkers import HierarchicalChunker
from citerag.config import Settings
from citerag.errors import (
    DocumentStateError,
    FusionError,
    InputError,
    NotFoundError,
    ProviderError,
    QueryCancelledError,
)
from citerag.grounding import citation_coverage, extract_citations, faithfulness
from citerag.models import (
    Chunk,
    Document,
    DocumentStatus,
    PromptMode,
    Query,
    QueryResult,
    RetrievedChunk,
)
from citerag.prompts import build_prompt, extractive_answer
from citerag.protocols import (
    ChunkingStrategy,
    EmbeddingProvider,
    GenerationProvider,
    Repository,
)
from citerag.retrieval import BM25Scorer, RankFusion, VectorScorer
from citerag.retrieval.vector import as_vector

logger = logging.getLogger(__name__)

_CHUNK_NAMESPACE = uuid.UUID("6f1c3b0e-6c1d-4c38-9a55-2f0b8d1e4a77")


def chunk_id(document_id: str, chunk_index: int) -> str:
    """Stable chunk identifier derived from its owner and position."""
    return str(uuid.uuid5(_CHUNK_NAMESPACE, f"{document_id}:{chunk_index}"))


def call_with_timeout(fn: Callable[..., Any], timeout: float, what: str, *args: Any) -> Any:
    """Run ``fn(*args)`` in a worker thread and give up after ``timeout`` seconds.

    A call that times out is abandoned, not interrupted: the worker
    thread is left to finish on its own.
    """
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(fn, *args)
        return future.result(timeout=timeout)
    except FutureTimeoutError as exc:
        raise ProviderError(f"{what} timed out after {timeout:g}s") from exc
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


class RagPipeline:
    """Orchestrates ingestion and grounded question answering.

    Providers and the repository are injected; the pipeline reads no
    global state. Nothing here retries a failed provider call.
    """

    def __init__(
        self,
        repository: Repository,
        embedder: EmbeddingProvider,
        generator: GenerationProvider,
        chunker: Optional[ChunkingStrategy] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self.repository = repository
        self.embedder = embedder
        self.generator = generator
        self.chunker = chunker or HierarchicalChunker(self.settings.max_tokens)
        self.bm25 = BM25Scorer(k1=self.settings.bm25_k1, b=self.settings.bm25_b)
        self.vector = VectorScorer()
        self.fusion = RankFusion(k=self.settings.rrf_k)

        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RagPipeline":
        """Build a pipeline on SQLite, sentence-transformers and OpenAI."""
        # Import here to avoid loading model libraries unless needed
        from citerag.embedders import SentenceTransformerEmbedder
        from citerag.generators import OpenAIGenerator
        from citerag.storage import SQLiteRepository

        repository = SQLiteRepository(settings.db_path)
        repository.initialize()
        embedder = SentenceTransformerEmbedder(settings.embed_model)
        generator = OpenAIGenerator(
            settings.gen_model,
            api_key=settings.openai_api_key,
            timeout=settings.generation_timeout,
        )
        repository.set_metadata("embedding_model", embedder.model_name)
        repository.set_metadata("generation_model", generator.model_name)
        return cls(repository, embedder, generator, settings=settings)

    # Ingestion

    def process_document(self, document_id: str, text: str, filename: str) -> dict[str, int]:
        """Chunk, embed and persist a document.

        The document is created as pending if the repository does not
        know it yet. Only a pending document can be processed, and only
        by one caller at a time.

        Returns:
            ``{"chunk_count": n}``

        Raises:
            InputError: missing id or text
            DocumentStateError: the document is not pending, or another
                pass for it is in flight
            ProviderError: embedding failed; the document is now failed
        """
        if not isinstance(document_id, str) or not document_id.strip():
            raise InputError("document_id is required")
        if not isinstance(text, str) or not text.strip():
            raise InputError("Document text is empty")
        filename = filename or ""

        lock = self._lock_for(document_id)
        if not lock.acquire(blocking=False):
            raise DocumentStateError(f"Document {document_id} is already being processed")
        try:
            self.repository.create_document(
                Document(id=document_id, filename=filename, text=text)
            )
            if not self.repository.transition_document(
                document_id, DocumentStatus.PENDING, DocumentStatus.PROCESSING
            ):
                current = self.repository.get_document(document_id)
                status = current.status.value if current else "missing"
                raise DocumentStateError(
                    f"Document {document_id} is {status}; only pending documents can be processed"
                )

            logger.info(f"Processing document {document_id} ({filename or 'untitled'})")
            try:
                chunk_count = self._ingest(document_id, text, filename)
            except Exception as exc:
                self.repository.transition_document(
                    document_id, DocumentStatus.PROCESSING, DocumentStatus.FAILED
                )
                logger.error(f"Document {document_id} failed: {exc}")
                raise
        finally:
            self._release_lock(document_id, lock)

        logger.info(f"Document {document_id} completed with {chunk_count} chunks")
        return {"chunk_count": chunk_count}

    def _ingest(self, document_id: str, text: str, filename: str) -> int:
        drafts = self.chunker.chunk(text, filename)
        embeddings = self.embed_chunks(drafts)
        if embeddings:
            self._check_dimension(len(embeddings[0]))
        chunks = [
            draft.with_embedding(vec).bind(chunk_id(document_id, draft.chunk_index), document_id)
            for draft, vec in zip(drafts, embeddings)
        ]
        self.repository.store_chunks(document_id, chunks)
        return len(chunks)

    def embed_chunks(self, chunks: Sequence[Chunk]) -> list[np.ndarray]:
        """Embed chunk texts concurrently, returning vectors in input order.

        Batches of ``embed_batch_size`` are spread over at most
        ``embed_workers`` threads. The whole fan-out shares one deadline
        scaled to the number of rounds the workers need.
        """
        if not chunks:
            return []

        size = self.settings.embed_batch_size
        batches = [
            [c.text for c in chunks[i : i + size]] for i in range(0, len(chunks), size)
        ]
        workers = min(self.settings.embed_workers, len(batches))
        rounds = math.ceil(len(batches) / workers)
        deadline = time.monotonic() + self.settings.embed_timeout * rounds

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="embed")
        try:
            futures = [executor.submit(self.embedder.embed, batch) for batch in batches]
            vectors: list[np.ndarray] = []
            dimension: Optional[int] = None
            for batch, future in zip(batches, futures):
                remaining = max(0.0, deadline - time.monotonic())
                try:
                    result = np.asarray(future.result(timeout=remaining))
                except FutureTimeoutError as exc:
                    raise ProviderError("Embedding timed out during ingestion") from exc
                if result.ndim != 2 or result.shape[0] != len(batch):
                    raise ProviderError(
                        f"Embedding provider returned shape {result.shape} "
                        f"for {len(batch)} texts"
                    )
                if dimension is None:
                    dimension = result.shape[1]
                elif result.shape[1] != dimension:
                    raise ProviderError(
                        f"Embedding dimension changed from {dimension} to {result.shape[1]}"
                    )
                vectors.extend(result.astype(np.float32))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.debug(f"Embedded {len(vectors)} chunks in {len(batches)} batches")
        return vectors

    def _lock_for(self, document_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(document_id, threading.Lock())

    def _release_lock(self, document_id: str, lock: threading.Lock) -> None:
        """Release a document lock and forget it once the pass is over."""
        with self._locks_guard:
            if self._locks.get(document_id) is lock:
                del self._locks[document_id]
            lock.release()

    def _check_dimension(self, dimension: int) -> None:
        """Match ``dimension`` against the store, recording it if unset.

        Raises:
            ProviderError: the store holds vectors of another width
        """
        stored = self.repository.get_metadata("embedding_dim")
        if stored is None:
            self.repository.set_metadata("embedding_dim", str(dimension))
        elif int(stored) != dimension:
            raise ProviderError(
                f"Embedding dimension {dimension} does not match stored "
                f"embedding_dim {stored}; was the embedding model changed?"
            )

    # Question answering

    def answer_query(
        self,
        document_id: str,
        question: str,
        prompt_mode: PromptMode | str | None = None,
        top_k: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> QueryResult:
        """Answer ``question`` from one completed document.

        If generation fails, the answer is a labelled extractive excerpt
        of the top chunk and ``used_fallback`` is set. If ``cancel_event``
        is set before the record is written, ``QueryCancelledError`` is
        raised and nothing is persisted.

        Raises:
            InputError: missing id or question, unknown prompt mode
            FusionError: ``top_k`` < 1
            NotFoundError: unknown document, not completed, or no chunks
            ProviderError: the question could not be embedded
            QueryCancelledError: the caller aborted
        """
        if not isinstance(document_id, str) or not document_id.strip():
            raise InputError("document_id is required")
        if not isinstance(question, str) or not question.strip():
            raise InputError("Question is empty")
        try:
            mode = PromptMode(prompt_mode or self.settings.prompt_mode)
        except ValueError as exc:
            raise InputError(f"Unknown prompt mode: {prompt_mode}") from exc
        top_k = self.settings.top_k if top_k is None else top_k
        if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k < 1:
            raise FusionError(f"top_k must be an integer >= 1, got {top_k!r}")

        document = self.repository.get_document(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        if document.status is not DocumentStatus.COMPLETED:
            raise NotFoundError(
                f"Document {document_id} is not ready ({document.status.value})"
            )
        chunks = self.repository.get_chunks(document_id)
        if not chunks:
            raise NotFoundError(f"Document {document_id} has no chunks")

        logger.info(f"Answering question on {document_id} ({mode.value}, top_k={top_k})")
        query_embedding = self.embed_query(question)
        retrieved = self.retrieve(chunks, question, query_embedding, top_k)
        self._check_cancelled(cancel_event)

        prompt = build_prompt(question, retrieved, mode)
        used_fallback = False
        try:
            answer = call_with_timeout(
                self.generator.generate,
                self.settings.generation_timeout,
                "Generation",
                prompt,
            )
        except ProviderError as exc:
            logger.warning(f"Generation failed, using extractive fallback: {exc}")
            answer = extractive_answer(retrieved, mode)
            used_fallback = True
        self._check_cancelled(cancel_event)

        citations = extract_citations(answer)
        score = faithfulness(answer, retrieved)
        coverage = citation_coverage(citations, retrieved)
        if coverage.dangling:
            logger.warning(
                f"Answer cites sources outside the prompt: {sorted(coverage.dangling, key=int)}"
            )

        labels = sorted(citations, key=int)
        query = Query(
            id=str(uuid.uuid4()),
            document_id=document_id,
            question=question,
            answer=answer,
            prompt_mode=mode,
            retrieved_chunks=tuple(rc.summary() for rc in retrieved),
            citations=tuple(labels),
            faithfulness_score=score,
            used_fallback=used_fallback,
        )
        self.repository.store_query(query)
        logger.info(f"Query {query.id}: {len(labels)} citations, faithfulness {score:.2f}")

        return QueryResult(
            query_id=query.id,
            answer=answer,
            citations=labels,
            faithfulness_score=score,
            retrieved_chunks=retrieved,
            used_fallback=used_fallback,
        )

    def embed_query(self, question: str) -> np.ndarray:
        """Embed the question; there is no zero-vector fallback."""
        result = call_with_timeout(
            self.embedder.embed, self.settings.embed_timeout, "Query embedding", [question]
        )
        result = np.asarray(result)
        vec = as_vector(result[0]) if result.ndim == 2 and len(result) == 1 else None
        if vec is None:
            raise ProviderError(f"Query embedding has unusable shape {result.shape}")
        stored = self.repository.get_metadata("embedding_dim")
        if stored is not None and int(stored) != vec.size:
            raise ProviderError(
                f"Query embedding dimension {vec.size} does not match stored "
                f"embedding_dim {stored}"
            )
        return vec

    def retrieve(
        self,
        chunks: Sequence[Chunk],
        question: str,
        query_embedding: np.ndarray,
        top_k: int,
    ) -> list[RetrievedChunk]:
        """Score chunks lexically and by vector in parallel, then fuse."""
        if top_k < 1:
            raise FusionError(f"top_k must be >= 1, got {top_k}")
        if not chunks:
            raise FusionError("Cannot retrieve from an empty chunk set")

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="score") as executor:
            bm25_future = executor.submit(self.bm25.score, chunks, question)
            vector_future = executor.submit(self.vector.score, chunks, query_embedding)
            bm25_scores = bm25_future.result()
            vector_scores = vector_future.result()

        return self.fusion.fuse(bm25_scores, vector_scores, chunks, top_k)

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise QueryCancelledError("Query cancelled by caller")
