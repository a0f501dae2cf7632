"""Abstract base class for document stores and factory function."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from ..models import Document, NotNot, NotNotCandidate


class DocumentStoreBase(ABC):
    """Common interface for the document / not-not storage backends."""

    @abstractmethod
    def add_document(self, document: Document) -> Document:
        """Insert or replace a document. A document without an embedding drops any stored vector."""

    @abstractmethod
    def get_document(self, document_id: str) -> Document | None:
        """Get a document by ID."""

    @abstractmethod
    def list_documents(self, collection_id: str) -> list[Document]:
        """All documents in a collection, oldest first."""

    @abstractmethod
    def update_embedding(self, document_id: str, embedding: list[float]) -> None:
        """Replace a document's embedding."""

    @abstractmethod
    def save_not_nots(
        self,
        collection_id: str,
        candidates: list[NotNotCandidate],
        supersede: bool = True,
    ) -> list[NotNot]:
        """Persist a run's candidates as one batch: all are saved or none are.

        With ``supersede``, existing not-nots that reference any document in
        the batch and were produced by the same algorithm (``metadata
        ["algorithm"]``) are removed in the same batch. Findings from other
        algorithms are kept.
        """

    @abstractmethod
    def list_not_nots(self, collection_id: str) -> list[NotNot]:
        """All not-nots in a collection, newest first."""

    @abstractmethod
    def delete_not_not(self, not_not_id: str) -> bool:
        """Delete a not-not. Returns False if it did not exist."""

    @abstractmethod
    def similar_documents(
        self,
        collection_id: str,
        embedding: list[float],
        n_results: int = 5,
    ) -> list[tuple[Document, float]]:
        """Documents in a collection most similar to an embedding, with cosine similarity."""

    def latest_generation_at(self, collection_id: str) -> datetime | None:
        """Creation time of the most recent not-not in a collection."""
        not_nots = self.list_not_nots(collection_id)
        if not not_nots:
            return None
        return max(n.created_at for n in not_nots)


def get_document_store(config: dict[str, Any]) -> DocumentStoreBase:
    """Factory: return the right document store based on config."""
    backend = config.get("storage_backend", "chromadb")

    if backend == "chromadb":
        from .chromadb import ChromaDocumentStore
        return ChromaDocumentStore(config["data_path"], config["chroma_path"])
    elif backend == "memory":
        from .memory import InMemoryDocumentStore
        return InMemoryDocumentStore()
    else:
        raise ValueError(f"Unknown storage_backend: {backend}")
