"""Turn text files into collection documents and store them."""

import hashlib
import logging
import re
from pathlib import Path

import yaml

from ..embeddings.embedder import Embedder, embed_document
from ..models import Document, DocumentEmbedded
from ..storage import DocumentStoreBase

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = {".md", ".markdown"}
TEXT_EXTENSIONS = {".txt", ".text"}
SUPPORTED_EXTENSIONS = MARKDOWN_EXTENSIONS | TEXT_EXTENSIONS


def compute_hash(content: str) -> str:
    """SHA256 hash of content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def document_id_for(file_path: Path, collection_id: str) -> str:
    """Stable ID so re-adding a file updates the same document."""
    return compute_hash(f"{collection_id}:{file_path.resolve()}")[:32]


def _parse_markdown(text: str, fallback_title: str) -> tuple[str, str]:
    title = None
    content = text

    fm_match = re.match(r"^---\s*\n(.*?)\n---\s*\n", text, re.DOTALL)
    if fm_match:
        try:
            fm = yaml.safe_load(fm_match.group(1)) or {}
        except yaml.YAMLError:
            fm = {}
        if isinstance(fm, dict) and fm.get("title"):
            title = str(fm["title"])
        content = text[fm_match.end():]

    if title is None:
        heading = re.search(r"^#\s+(.+)$", content, re.MULTILINE)
        title = heading.group(1).strip() if heading else fallback_title

    return title, content.strip()


def _parse_text(text: str, fallback_title: str) -> tuple[str, str]:
    # Short first line doubles as the title
    first_line = text.split("\n", 1)[0].strip()
    title = first_line if first_line and len(first_line) < 120 else fallback_title
    return title, text.strip()


def process_file(file_path: Path, collection_id: str) -> Document | None:
    """Read a single file into a Document, or None if the type is unsupported or empty."""
    ext = file_path.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        return None

    raw = file_path.read_text(encoding="utf-8", errors="replace")
    if ext in MARKDOWN_EXTENSIONS:
        title, content = _parse_markdown(raw, file_path.stem)
    else:
        title, content = _parse_text(raw, file_path.stem)

    if not content:
        logger.debug(f"Skipping empty file {file_path}")
        return None

    return Document(
        id=document_id_for(file_path, collection_id),
        title=title,
        text=content,
        collection_id=collection_id,
    )


def process_directory(path: Path, collection_id: str) -> list[Document]:
    """Process all supported files in a directory tree."""
    docs = []
    if not path.exists():
        return docs

    for file_path in sorted(path.rglob("*")):
        if file_path.is_file() and not file_path.name.startswith("."):
            doc = process_file(file_path, collection_id)
            if doc:
                docs.append(doc)
    return docs


async def ingest_documents(
    docs: list[Document],
    store: DocumentStoreBase,
    embedder: Embedder | None,
) -> list[DocumentEmbedded]:
    """Store documents, embedding new or changed text on the way in.

    Unchanged documents that already have an embedding are left alone. A
    document whose embedding fails is still stored, without an embedding.
    Returns one event per successfully embedded document.
    """
    events = []
    for doc in docs:
        existing = store.get_document(doc.id)
        if existing is not None:
            if existing.text == doc.text and existing.title == doc.title and existing.has_embedding:
                logger.debug(f"Unchanged: {doc.title!r}")
                continue
            doc.created_at = existing.created_at

        doc.embedding = None
        if embedder is not None:
            event = await embed_document(doc, embedder)
            if event is not None:
                events.append(event)

        store.add_document(doc)
        logger.info(f"Stored {doc.title!r}{'' if doc.has_embedding else ' (no embedding)'}")

    return events
