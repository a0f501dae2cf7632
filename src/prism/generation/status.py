"""Decide whether a collection is eligible for, and in need of, generation."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..models import Document
from ..storage import DocumentStoreBase


@dataclass
class GenerationStatus:
    document_count: int
    eligible: bool
    generation_needed: bool
    last_generation_at: datetime | None = None
    last_generation_metadata: dict[str, Any] | None = None


def generation_status(
    documents: list[Document],
    last_generated_at: datetime | None,
    min_documents: int = 5,
    last_generation_metadata: dict[str, Any] | None = None,
) -> GenerationStatus:
    """Compare document creation times against the last successful run.

    Generation is needed when the collection is eligible and either it has
    never been generated or a document was created after the last run.
    """
    count = len(documents)
    eligible = count >= max(min_documents, 1)

    if not eligible:
        needed = False
    elif last_generated_at is None:
        needed = True
    else:
        needed = any(d.created_at > last_generated_at for d in documents)

    return GenerationStatus(
        document_count=count,
        eligible=eligible,
        generation_needed=needed,
        last_generation_at=last_generated_at,
        last_generation_metadata=last_generation_metadata,
    )


def collection_status(store: DocumentStoreBase, collection_id: str, min_documents: int = 5) -> GenerationStatus:
    """Status of a stored collection, carrying the newest not-not's metadata."""
    not_nots = store.list_not_nots(collection_id)
    latest = not_nots[0] if not_nots else None
    return generation_status(
        store.list_documents(collection_id),
        latest.created_at if latest else None,
        min_documents,
        last_generation_metadata=dict(latest.metadata) if latest else None,
    )
