"""SQLite-backed repository for documents, chunks and queries."""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import numpy as np

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
from citerag.storage.schema import SCHEMA


class SQLiteRepository:
    """SQLite-backed storage implementing the ``Repository`` protocol.

    Each operation opens its own connection, so one instance can be
    shared between threads.
    """

    def __init__(self, path: Path | str, timeout: float = 30.0):
        self.path = Path(path)
        self.timeout = timeout

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create schema if not exists."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    # Documents

    def create_document(self, document: Document) -> None:
        """Insert a document; an existing row with the same id is kept."""
        with self.connection() as conn:
            conn.execute(
                """INSERT OR IGNORE INTO documents
                   (id, filename, text, status, chunk_count, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    document.id,
                    document.filename,
                    document.text,
                    DocumentStatus(document.status).value,
                    document.chunk_count,
                    document.created_at,
                ),
            )

    def get_document(self, document_id: str) -> Optional[Document]:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
            return self._row_to_document(row) if row else None

    def list_documents(self) -> list[Document]:
        with self.connection() as conn:
            cursor = conn.execute("SELECT * FROM documents ORDER BY created_at, id")
            return [self._row_to_document(row) for row in cursor]

    def transition_document(
        self,
        document_id: str,
        expected: DocumentStatus,
        new: DocumentStatus,
    ) -> bool:
        """Compare-and-set the document status.

        Raises:
            DocumentStateError: the move is not allowed by the lifecycle
        """
        expected, new = DocumentStatus(expected), DocumentStatus(new)
        if not can_transition(expected, new):
            raise DocumentStateError(
                f"Illegal status change {expected.value} -> {new.value}"
            )
        with self.connection() as conn:
            cursor = conn.execute(
                "UPDATE documents SET status = ? WHERE id = ? AND status = ?",
                (DocumentStatus(new).value, document_id, DocumentStatus(expected).value),
            )
            return cursor.rowcount == 1

    # Chunks

    def store_chunks(self, document_id: str, chunks: list[Chunk]) -> None:
        """Write chunks and complete the document in one transaction."""
        with self.connection() as conn:
            for chunk in chunks:
                conn.execute(
                    """INSERT INTO chunks
                       (id, document_id, chunk_index, text, section_title,
                        section_level, chunk_type, token_count, embedding)
                       VALUES (:id, :document_id, :chunk_index, :text, :section_title,
                               :section_level, :chunk_type, :token_count, :embedding)""",
                    {
                        **chunk.metadata.to_dict(),
                        "id": chunk.id,
                        "document_id": document_id,
                        "chunk_index": chunk.chunk_index,
                        "text": chunk.text,
                        "embedding": self._encode_embedding(chunk.embedding),
                    },
                )
            cursor = conn.execute(
                """UPDATE documents SET status = ?, chunk_count = ?
                   WHERE id = ? AND status = ?""",
                (
                    DocumentStatus.COMPLETED.value,
                    len(chunks),
                    document_id,
                    DocumentStatus.PROCESSING.value,
                ),
            )
            if cursor.rowcount != 1:
                raise DocumentStateError(
                    f"Document {document_id} is not processing; chunks not stored"
                )

    def get_chunks(self, document_id: str) -> list[Chunk]:
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM chunks WHERE document_id = ? ORDER BY chunk_index",
                (document_id,),
            )
            return [self._row_to_chunk(row) for row in cursor]

    def count_chunks(self, document_id: str) -> int:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM chunks WHERE document_id = ?",
                (document_id,),
            ).fetchone()
            return row["n"]

    # Queries

    def store_query(self, query: Query) -> None:
        with self.connection() as conn:
            conn.execute(
                """INSERT INTO queries
                   (id, document_id, question, answer, prompt_mode,
                    retrieved_chunks, citations, faithfulness_score,
                    used_fallback, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    query.id,
                    query.document_id,
                    query.question,
                    query.answer,
                    PromptMode(query.prompt_mode).value,
                    json.dumps(list(query.retrieved_chunks)),
                    json.dumps(list(query.citations)),
                    query.faithfulness_score,
                    1 if query.used_fallback else 0,
                    query.created_at,
                ),
            )

    def get_query(self, query_id: str) -> Optional[Query]:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM queries WHERE id = ?", (query_id,)
            ).fetchone()
            return self._row_to_query(row) if row else None

    def list_queries(self, document_id: str) -> list[Query]:
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM queries WHERE document_id = ? ORDER BY created_at, id",
                (document_id,),
            )
            return [self._row_to_query(row) for row in cursor]

    # Store metadata

    def set_metadata(self, key: str, value: str) -> None:
        """Store a metadata key-value pair."""
        with self.connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_metadata(self, key: str) -> Optional[str]:
        """Retrieve a metadata value by key."""
        with self.connection() as conn:
            row = conn.execute(
                "SELECT value FROM metadata WHERE key = ?", (key,)
            ).fetchone()
            return row["value"] if row else None

    # Row mapping

    @staticmethod
    def _encode_embedding(embedding: Optional[np.ndarray]) -> Optional[bytes]:
        if embedding is None:
            return None
        return np.asarray(embedding, dtype=np.float32).tobytes()

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> Document:
        return Document(
            id=row["id"],
            filename=row["filename"],
            text=row["text"],
            status=DocumentStatus(row["status"]),
            chunk_count=row["chunk_count"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_chunk(row: sqlite3.Row) -> Chunk:
        blob = row["embedding"]
        return Chunk(
            id=row["id"],
            document_id=row["document_id"],
            chunk_index=row["chunk_index"],
            text=row["text"],
            metadata=ChunkMetadata.from_dict(dict(row)),
            embedding=np.frombuffer(blob, dtype=np.float32) if blob else None,
        )

    @staticmethod
    def _row_to_query(row: sqlite3.Row) -> Query:
        return Query(
            id=row["id"],
            document_id=row["document_id"],
            question=row["question"],
            answer=row["answer"],
            prompt_mode=PromptMode(row["prompt_mode"]),
            retrieved_chunks=tuple(json.loads(row["retrieved_chunks"])),
            citations=tuple(json.loads(row["citations"])),
            faithfulness_score=row["faithfulness_score"],
            used_fallback=bool(row["used_fallback"]),
            created_at=row["created_at"],
        )
