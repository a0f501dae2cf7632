"""In-process document store. Nothing survives the process."""

import logging
import uuid
from dataclasses import replace

from ..clustering.similarity import cosine_similarity
from ..errors import StoreError
from ..models import Document, NotNot, NotNotCandidate, utcnow
from .base import DocumentStoreBase

logger = logging.getLogger(__name__)


class InMemoryDocumentStore(DocumentStoreBase):
    """Dict-backed store.

    Subclasses persist state by overriding ``_commit`` and keep vector
    indexes in step through ``_index``. A failure in either rolls the
    in-memory state back.
    """

    def __init__(self):
        self._documents: dict[str, Document] = {}
        self._not_nots: dict[str, NotNot] = {}

    def _commit(self) -> None:
        """Persist current state. No-op in memory."""

    def _index(self, document_ids: list[str], not_not_ids: list[str]) -> None:
        """Bring secondary indexes in line with current state. No-op in memory."""

    def _transaction(self, mutate, document_ids=(), not_not_ids=()) -> None:
        documents = dict(self._documents)
        not_nots = dict(self._not_nots)
        try:
            mutate()
            self._index(list(document_ids), list(not_not_ids))
            self._commit()
        except Exception as e:
            self._documents = documents
            self._not_nots = not_nots
            self._restore_index(list(document_ids), list(not_not_ids))
            raise StoreError(f"Failed to persist changes: {e}") from e

    def _restore_index(self, document_ids: list[str], not_not_ids: list[str]) -> None:
        try:
            self._index(document_ids, not_not_ids)
        except Exception:
            logger.exception("Could not restore the index after a rollback; it is reconciled on next load")

    def add_document(self, document: Document) -> Document:
        stored = replace(document)

        def mutate():
            self._documents[stored.id] = stored

        self._transaction(mutate, document_ids=[stored.id])
        return stored

    def get_document(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    def list_documents(self, collection_id: str) -> list[Document]:
        docs = [d for d in self._documents.values() if d.collection_id == collection_id]
        docs.sort(key=lambda d: d.created_at)
        return docs

    def update_embedding(self, document_id: str, embedding: list[float]) -> None:
        if document_id not in self._documents:
            raise StoreError(f"Unknown document: {document_id}")
        updated = replace(self._documents[document_id], embedding=list(embedding))

        def mutate():
            self._documents[document_id] = updated

        self._transaction(mutate, document_ids=[document_id])

    def save_not_nots(
        self,
        collection_id: str,
        candidates: list[NotNotCandidate],
        supersede: bool = True,
    ) -> list[NotNot]:
        if not candidates:
            return []

        for candidate in candidates:
            if not candidate.document_ids:
                raise StoreError(f"Not-not {candidate.title!r} references no documents")
            for doc_id in candidate.document_ids:
                doc = self._documents.get(doc_id)
                if doc is None or doc.collection_id != collection_id:
                    raise StoreError(f"Document {doc_id} is not in collection {collection_id}")

        now = utcnow()
        records = [
            NotNot(
                id=uuid.uuid4().hex,
                collection_id=collection_id,
                title=c.title,
                description=c.description,
                document_ids=list(c.document_ids),
                confidence=c.confidence,
                created_at=now,
                reasoning=c.reasoning,
                metadata=dict(c.metadata),
            )
            for c in candidates
        ]
        touched = {doc_id for c in candidates for doc_id in c.document_ids}
        algorithms = {c.metadata.get("algorithm") for c in candidates}
        stale = []
        if supersede:
            stale = [
                n.id for n in self._not_nots.values()
                if n.collection_id == collection_id
                and n.metadata.get("algorithm") in algorithms
                and touched.intersection(n.document_ids)
            ]

        def mutate():
            for not_not_id in stale:
                del self._not_nots[not_not_id]
            for record in records:
                self._not_nots[record.id] = record

        self._transaction(mutate, not_not_ids=stale + [r.id for r in records])
        if stale:
            logger.info(f"Superseded {len(stale)} earlier not-not(s) in {collection_id}")
        return records

    def list_not_nots(self, collection_id: str) -> list[NotNot]:
        not_nots = [n for n in self._not_nots.values() if n.collection_id == collection_id]
        not_nots.sort(key=lambda n: n.created_at, reverse=True)
        return not_nots

    def delete_not_not(self, not_not_id: str) -> bool:
        if not_not_id not in self._not_nots:
            return False

        def mutate():
            del self._not_nots[not_not_id]

        self._transaction(mutate, not_not_ids=[not_not_id])
        return True

    def similar_documents(
        self,
        collection_id: str,
        embedding: list[float],
        n_results: int = 5,
    ) -> list[tuple[Document, float]]:
        scored = [
            (doc, cosine_similarity(doc.embedding, embedding))
            for doc in self.list_documents(collection_id)
            if doc.has_embedding and len(doc.embedding) == len(embedding)
        ]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[:n_results]
