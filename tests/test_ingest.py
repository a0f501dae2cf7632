"""Tests for the ingestion pipeline."""

import tempfile
from pathlib import Path

import pytest

from conftest import FakeEmbedder
from prism.ingest.processor import (
    compute_hash,
    document_id_for,
    ingest_documents,
    process_directory,
    process_file,
)


def test_compute_hash():
    assert compute_hash("hello") == compute_hash("hello")
    assert compute_hash("hello") != compute_hash("world")


def test_document_id_is_stable_per_collection(tmp_path):
    path = tmp_path / "a.md"
    assert document_id_for(path, "c1") == document_id_for(path, "c1")
    assert document_id_for(path, "c1") != document_id_for(path, "c2")


def test_process_markdown_frontmatter():
    with tempfile.NamedTemporaryFile(suffix=".md", mode="w", delete=False) as f:
        f.write("---\ntitle: Test Doc\ntags: [test]\n---\n# Hello\n\nThis is a test document.")
        f.flush()
        doc = process_file(Path(f.name), "col-1")
        assert doc is not None
        assert doc.title == "Test Doc"
        assert doc.collection_id == "col-1"
        assert doc.text.startswith("# Hello")
        assert doc.embedding is None


def test_process_markdown_heading_title(tmp_path):
    path = tmp_path / "notes.md"
    path.write_text("Intro line\n\n# Interview with ops lead\n\nThey cannot not log incidents.")
    assert process_file(path, "col-1").title == "Interview with ops lead"


def test_process_text(tmp_path):
    path = tmp_path / "call.txt"
    path.write_text("Customer call\nThis is plain text content.")
    doc = process_file(path, "col-1")
    assert doc.title == "Customer call"
    assert "plain text" in doc.text


def test_long_first_line_falls_back_to_stem(tmp_path):
    path = tmp_path / "transcript.txt"
    path.write_text("x" * 200 + "\nmore")
    assert process_file(path, "col-1").title == "transcript"


def test_unsupported_format(tmp_path):
    path = tmp_path / "data.xyz"
    path.write_text("unsupported")
    assert process_file(path, "col-1") is None


def test_empty_file_skipped(tmp_path):
    path = tmp_path / "empty.txt"
    path.write_text("   \n")
    assert process_file(path, "col-1") is None


def test_process_directory(tmp_path):
    (tmp_path / "a.md").write_text("# A\n\nalpha")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b.txt").write_text("B\nbeta")
    (tmp_path / ".hidden.md").write_text("# Hidden\n\nskip me")
    (tmp_path / "c.pdf").write_text("not supported")

    docs = process_directory(tmp_path, "col-1")
    assert sorted(d.title for d in docs) == ["A", "B"]


@pytest.mark.asyncio
async def test_ingest_embeds_and_emits_events(tmp_path, store):
    (tmp_path / "a.md").write_text("# A\n\nalpha")
    (tmp_path / "b.md").write_text("# B\n\nbeta")
    docs = process_directory(tmp_path, "col-1")

    events = await ingest_documents(docs, store, FakeEmbedder())

    assert len(events) == 2
    assert all(d.has_embedding for d in store.list_documents("col-1"))
    assert {e.document_id for e in events} == {d.id for d in docs}


@pytest.mark.asyncio
async def test_embedding_failure_still_stores_document(tmp_path, store):
    (tmp_path / "a.md").write_text("# A\n\nalpha")
    (tmp_path / "b.md").write_text("# Broken\n\nbeta")
    docs = process_directory(tmp_path, "col-1")

    events = await ingest_documents(docs, store, FakeEmbedder(fail_on="Broken"))

    assert len(events) == 1
    stored = {d.title: d for d in store.list_documents("col-1")}
    assert stored["A"].has_embedding
    assert not stored["Broken"].has_embedding


@pytest.mark.asyncio
async def test_unchanged_documents_not_reembedded(tmp_path, store):
    (tmp_path / "a.md").write_text("# A\n\nalpha")
    embedder = FakeEmbedder()
    await ingest_documents(process_directory(tmp_path, "col-1"), store, embedder)
    events = await ingest_documents(process_directory(tmp_path, "col-1"), store, embedder)

    assert events == []
    assert len(embedder.calls) == 1


@pytest.mark.asyncio
async def test_changed_text_replaces_embedding(tmp_path, store):
    path = tmp_path / "a.md"
    path.write_text("# A\n\nalpha")
    embedder = FakeEmbedder(vectors={"gamma": [0.0, 1.0, 0.0]})
    await ingest_documents(process_directory(tmp_path, "col-1"), store, embedder)
    original = store.list_documents("col-1")[0]

    path.write_text("# A\n\ngamma")
    events = await ingest_documents(process_directory(tmp_path, "col-1"), store, embedder)

    updated = store.get_document(original.id)
    assert len(events) == 1
    assert updated.embedding == [0.0, 1.0, 0.0]
    assert updated.created_at == original.created_at


@pytest.mark.asyncio
async def test_ingest_without_embedder(tmp_path, store):
    (tmp_path / "a.md").write_text("# A\n\nalpha")
    events = await ingest_documents(process_directory(tmp_path, "col-1"), store, None)
    assert events == []
    assert not store.list_documents("col-1")[0].has_embedding
