"""Storage abstraction for documents and generated not-nots."""

from .base import DocumentStoreBase, get_document_store

__all__ = ["DocumentStoreBase", "get_document_store"]
