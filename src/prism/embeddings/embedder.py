"""Document embedding providers."""

import asyncio
import logging
from typing import Any, Protocol

from ..errors import ConfigError
from ..models import Document, DocumentEmbedded

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    """Anything that turns text into a fixed-length vector."""

    async def embed(self, text: str) -> list[float]:
        ...


class SentenceTransformerEmbedder:
    """Embeds text locally using sentence-transformers."""

    def __init__(self, model_name: str = "intfloat/e5-large-v2"):
        self.model_name = model_name
        self._model = None

    @property
    def model(self):
        """Lazy-load the embedding model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def _prepare(self, text: str) -> str:
        # e5 models need "passage: " prefix for documents
        if "e5" in self.model_name:
            return f"passage: {text}"
        return text

    def encode(self, text: str) -> list[float]:
        return self.model.encode(self._prepare(text)).tolist()

    async def embed(self, text: str) -> list[float]:
        return await asyncio.to_thread(self.encode, text)


class OpenAIEmbedder:
    """Embeds text with the OpenAI embeddings API."""

    def __init__(self, api_key: str, model: str = "text-embedding-3-large", organization: str | None = None):
        from openai import AsyncOpenAI
        self.client = AsyncOpenAI(api_key=api_key, organization=organization)
        self.model = model

    async def embed(self, text: str) -> list[float]:
        response = await self.client.embeddings.create(
            model=self.model,
            input=text,
            encoding_format="float",
        )
        if not response.data:
            return []
        return list(response.data[0].embedding)


def get_embedder(config: dict[str, Any]) -> Embedder:
    """Factory: return the embedding provider named in config."""
    embedding_cfg = config.get("embedding", {})
    provider = embedding_cfg.get("provider", "sentence-transformers")

    if provider == "sentence-transformers":
        return SentenceTransformerEmbedder(embedding_cfg.get("model", "intfloat/e5-large-v2"))
    elif provider == "openai":
        api_key = config.get("openai_api_key")
        if not api_key:
            raise ConfigError("OpenAI API key required for embeddings. Set OPENAI_API_KEY or openai_api_key in config.")
        return OpenAIEmbedder(
            api_key=api_key,
            model=embedding_cfg.get("model", "text-embedding-3-large"),
            organization=config.get("openai_organization"),
        )
    else:
        raise ConfigError(f"Unknown embedding provider: {provider}")


def document_text(document: Document) -> str:
    """Text that represents a document for embedding."""
    if document.title:
        return f"{document.title}\n\n{document.text}"
    return document.text


async def embed_document(document: Document, embedder: Embedder) -> DocumentEmbedded | None:
    """Best-effort embedding of a single document.

    On success the document's embedding is replaced and an event is returned.
    Provider errors are logged and leave the document without a new embedding.
    """
    try:
        vector = await embedder.embed(document_text(document))
    except Exception as e:
        logger.warning(f"Embedding failed for document {document.id!r}: {e}")
        return None

    if not vector:
        logger.warning(f"Embedding provider returned an empty vector for document {document.id!r}")
        return None

    document.embedding = [float(x) for x in vector]
    return DocumentEmbedded(document_id=document.id, collection_id=document.collection_id)
