"""Queue of "document embedded" events that triggers generation."""

import asyncio
import logging

from ..models import DocumentEmbedded
from ..storage import DocumentStoreBase
from .orchestrator import NotNotGenerator

logger = logging.getLogger(__name__)


class GenerationScheduler:
    """Consumes DocumentEmbedded events and persists the resulting not-nots.

    Producers call ``publish`` after embedding a document; nothing is
    generated until ``drain`` runs. Repeated events for the same document
    within one drain are handled once.

    The generator's mode decides what an event triggers. In ``document``
    mode each embedded document is analysed on its own. In ``cluster`` mode
    every affected collection is regenerated once per drain, and only when it
    holds at least ``min_documents`` embedded documents.
    """

    def __init__(self, store: DocumentStoreBase, generator: NotNotGenerator, supersede: bool = True):
        self.store = store
        self.generator = generator
        self.supersede = supersede
        self.queue: asyncio.Queue[DocumentEmbedded] = asyncio.Queue()
        self.failures = 0

    def publish(self, event: DocumentEmbedded) -> None:
        self.queue.put_nowait(event)
        logger.debug(f"Queued generation for document {event.document_id}")

    @property
    def pending(self) -> int:
        return self.queue.qsize()

    async def drain(self) -> int:
        """Process every queued event. Returns the number of not-nots saved."""
        seen: set[str] = set()
        collections: list[str] = []
        saved = 0

        while not self.queue.empty():
            event = self.queue.get_nowait()
            try:
                if event.document_id in seen:
                    continue
                seen.add(event.document_id)
                if self.generator.mode == "cluster":
                    if event.collection_id not in collections:
                        collections.append(event.collection_id)
                else:
                    saved += await self._handle(event)
            except Exception:
                self.failures += 1
                logger.exception(f"Generation failed for document {event.document_id}")
            finally:
                self.queue.task_done()

        for collection_id in collections:
            try:
                saved += await self._handle_collection(collection_id)
            except Exception:
                self.failures += 1
                logger.exception(f"Generation failed for collection {collection_id}")

        return saved

    async def _handle(self, event: DocumentEmbedded) -> int:
        document = self.store.get_document(event.document_id)
        if document is None:
            logger.warning(f"Document {event.document_id} no longer exists, skipping")
            return 0

        candidates = await self.generator.generate_for_document(document)
        if not candidates:
            logger.info(f"No not-nots found for {document.title!r}")
            return 0

        records = self.store.save_not_nots(event.collection_id, candidates, supersede=self.supersede)
        logger.info(f"Saved {len(records)} not-not(s) for {document.title!r}")
        return len(records)

    async def _handle_collection(self, collection_id: str) -> int:
        documents = self.store.list_documents(collection_id)
        embedded = sum(1 for d in documents if d.has_embedding)
        required = max(self.generator.min_documents, 1)
        if embedded < required:
            logger.info(
                f"Collection {collection_id} has {embedded} embedded document(s), "
                f"needs {required} for cluster generation; skipping"
            )
            return 0

        candidates = await self.generator.generate_for_collection(documents)
        if not candidates:
            logger.info(f"No not-nots found for collection {collection_id}")
            return 0

        records = self.store.save_not_nots(collection_id, candidates, supersede=self.supersede)
        logger.info(f"Saved {len(records)} not-not(s) for collection {collection_id}")
        return len(records)
