"""Data models used throughout Prism."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Document:
    """A document in a collection, optionally carrying its embedding."""
    id: str
    title: str
    text: str
    collection_id: str
    embedding: list[float] | None = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None and len(self.embedding) > 0


@dataclass
class DocumentCluster:
    """A group of semantically similar documents. Lives for one generation run."""
    centroid: list[float]
    documents: list[Document]
    average_similarity: float
    cluster_index: int

    @property
    def size(self) -> int:
        return len(self.documents)

    @property
    def document_ids(self) -> list[str]:
        return [d.id for d in self.documents]


@dataclass
class NotNotCandidate:
    """A generated not-not, not yet persisted."""
    title: str
    description: str
    document_ids: list[str]
    confidence: float
    reasoning: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class NotNot:
    """A persisted not-not owned by a collection."""
    id: str
    collection_id: str
    title: str
    description: str
    document_ids: list[str]
    confidence: float
    created_at: datetime
    reasoning: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Relationship:
    """A scored relationship between two documents."""
    doc_a: str
    doc_b: str
    score: float
    cluster_index: int = -1


@dataclass(frozen=True)
class DocumentEmbedded:
    """Emitted once a document has a fresh embedding."""
    document_id: str
    collection_id: str
    embedded_at: datetime = field(default_factory=utcnow)


@dataclass
class GenerationStats:
    """Counters for one generation run."""
    units_total: int = 0
    units_succeeded: int = 0
    units_empty: int = 0
    units_malformed: int = 0
    units_failed: int = 0
    candidates: int = 0
