"""ChromaDB-backed document store.

Document and not-not records live in a JSON file that is replaced atomically
on every commit; embeddings live in ChromaDB collections (cosine space). Each
not-not is indexed under the mean embedding of its source documents.
"""

import json
import logging
import os
import tempfile
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any

import chromadb

from ..clustering.similarity import centroid
from ..models import Document, NotNot
from .memory import InMemoryDocumentStore

logger = logging.getLogger(__name__)

RECORDS_FILE = "prism_records.json"


def _to_floats(vector: Any) -> list[float]:
    """Convert numpy arrays or sequences to plain lists for JSON and comparisons."""
    return [float(x) for x in vector]


def _document_to_dict(doc: Document) -> dict[str, Any]:
    data = asdict(doc)
    data.pop("embedding")
    data["created_at"] = doc.created_at.isoformat()
    return data


def _not_not_to_dict(not_not: NotNot) -> dict[str, Any]:
    data = asdict(not_not)
    data["created_at"] = not_not.created_at.isoformat()
    return data


class ChromaDocumentStore(InMemoryDocumentStore):
    """Persistent store: JSON records plus ChromaDB vector collections.

    Vector writes run inside each transaction, before the JSON commit, so a
    ChromaDB failure rolls the records back. Drift left by a failed rollback
    is reconciled on load.
    """

    def __init__(self, data_path: str, chroma_path: str, collection_name: str = "documents"):
        super().__init__()
        self.data_path = Path(data_path)
        self.data_path.mkdir(parents=True, exist_ok=True)
        self._records_file = self.data_path / RECORDS_FILE

        self.chroma_path = Path(chroma_path)
        self.chroma_path.mkdir(parents=True, exist_ok=True)
        self.client = chromadb.PersistentClient(path=str(self.chroma_path))
        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )
        self.not_not_collection = self.client.get_or_create_collection(
            name=f"{collection_name}_not_nots",
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )
        self._load()

    def _load(self) -> None:
        if self._records_file.exists():
            self._load_records()
        self._reconcile()
        logger.debug(f"Loaded {len(self._documents)} document(s) and {len(self._not_nots)} not-not(s)")

    def _load_records(self) -> None:
        data = json.loads(self._records_file.read_text(encoding="utf-8"))
        for raw in data.get("documents", []):
            raw["created_at"] = datetime.fromisoformat(raw["created_at"])
            doc = Document(**raw)
            self._documents[doc.id] = doc
        for raw in data.get("not_nots", []):
            raw["created_at"] = datetime.fromisoformat(raw["created_at"])
            not_not = NotNot(**raw)
            self._not_nots[not_not.id] = not_not

        if self._documents:
            result = self.collection.get(ids=list(self._documents), include=["embeddings"])
            embeddings = result.get("embeddings")
            if embeddings is not None:
                for doc_id, vector in zip(result["ids"], embeddings):
                    self._documents[doc_id].embedding = _to_floats(vector)

    def _commit(self) -> None:
        """Write all records to a temp file and swap it into place."""
        payload = {
            "documents": [_document_to_dict(d) for d in self._documents.values()],
            "not_nots": [_not_not_to_dict(n) for n in self._not_nots.values()],
        }
        fd, tmp_path = tempfile.mkstemp(dir=self.data_path, prefix=".records-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self._records_file)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def _index(self, document_ids: list[str], not_not_ids: list[str]) -> None:
        """Upsert or delete vectors so ChromaDB matches the in-memory records."""
        for doc_id in document_ids:
            doc = self._documents.get(doc_id)
            if doc is not None and doc.has_embedding:
                self.collection.upsert(
                    ids=[doc.id],
                    embeddings=[doc.embedding],
                    metadatas=[{"collection_id": doc.collection_id, "title": doc.title}],
                )
            else:
                # Removed, or text changed without a new embedding: the old vector is stale
                self.collection.delete(ids=[doc_id])

        upserts = []
        removals = []
        for not_not_id in not_not_ids:
            not_not = self._not_nots.get(not_not_id)
            vector = self._not_not_embedding(not_not) if not_not is not None else []
            if vector:
                upserts.append((not_not, vector))
            else:
                removals.append(not_not_id)
        if removals:
            self.not_not_collection.delete(ids=removals)
        if upserts:
            self.not_not_collection.upsert(
                ids=[n.id for n, _ in upserts],
                embeddings=[vector for _, vector in upserts],
                metadatas=[
                    {"collection_id": n.collection_id, "title": n.title, "confidence": n.confidence}
                    for n, _ in upserts
                ],
            )

    def _reconcile(self) -> None:
        """Drop vectors without a record and index not-nots missing from ChromaDB."""
        stray_docs = [i for i in self.collection.get(include=[])["ids"] if i not in self._documents]
        if stray_docs:
            logger.warning(f"Removing {len(stray_docs)} document vector(s) with no record")
            self.collection.delete(ids=stray_docs)

        indexed = set(self.not_not_collection.get(include=[])["ids"])
        stray_not_nots = [i for i in indexed if i not in self._not_nots]
        missing = [
            i for i, n in self._not_nots.items()
            if i not in indexed and self._not_not_embedding(n)
        ]
        if stray_not_nots or missing:
            logger.warning(
                f"Reconciling not-not index: {len(stray_not_nots)} stray, {len(missing)} missing"
            )
            self._index([], stray_not_nots + missing)

    def _not_not_embedding(self, not_not: NotNot) -> list[float]:
        vectors = [
            self._documents[doc_id].embedding
            for doc_id in not_not.document_ids
            if doc_id in self._documents and self._documents[doc_id].has_embedding
        ]
        if len({len(v) for v in vectors}) > 1:
            return []
        return centroid(vectors)

    def similar_documents(
        self,
        collection_id: str,
        embedding: list[float],
        n_results: int = 5,
    ) -> list[tuple[Document, float]]:
        available = sum(1 for d in self.list_documents(collection_id) if d.has_embedding)
        n = min(n_results, available)
        if n == 0:
            return []

        results = self.collection.query(
            query_embeddings=[embedding],
            n_results=n,
            where={"collection_id": collection_id},
            include=["distances"],
        )

        output = []
        if results and results["ids"] and results["ids"][0]:
            for i, doc_id in enumerate(results["ids"][0]):
                doc = self._documents.get(doc_id)
                if doc is None:
                    continue
                distance = results["distances"][0][i] if results["distances"] else 1.0
                output.append((doc, 1.0 - float(distance)))
        return output
