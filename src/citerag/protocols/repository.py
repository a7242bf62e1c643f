"""Protocol for persistence of documents, chunks and queries."""

from typing import Optional, Protocol, runtime_checkable

from citerag.models import Chunk, Document, DocumentStatus, Query


@runtime_checkable
class Repository(Protocol):
    """Narrow persistence interface used by the pipeline."""

    def create_document(self, document: Document) -> None:
        """Insert a new document record."""
        ...

    def get_document(self, document_id: str) -> Optional[Document]:
        ...

    def list_documents(self) -> list[Document]:
        ...

    def transition_document(
        self,
        document_id: str,
        expected: DocumentStatus,
        new: DocumentStatus,
    ) -> bool:
        """Move a document from ``expected`` to ``new``.

        Returns False, without writing, when the stored status is not
        ``expected``. Only one of several concurrent callers can win.
        """
        ...

    def store_chunks(self, document_id: str, chunks: list[Chunk]) -> None:
        """Persist chunks and mark the document completed in one step."""
        ...

    def get_chunks(self, document_id: str) -> list[Chunk]:
        """Return a document's chunks ordered by ``chunk_index``."""
        ...

    def store_query(self, query: Query) -> None:
        ...

    def get_query(self, query_id: str) -> Optional[Query]:
        ...

    def list_queries(self, document_id: str) -> list[Query]:
        ...

    def set_metadata(self, key: str, value: str) -> None:
        ...

    def get_metadata(self, key: str) -> Optional[str]:
        """Return a store-wide setting such as ``embedding_dim``."""
        ...
