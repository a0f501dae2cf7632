"""Shared fixtures and fakes for the test suite."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from prism.models import Document
from prism.storage.memory import InMemoryDocumentStore


class FakeGenerator:
    """Text generator returning scripted replies in order.

    A reply that is an Exception instance is raised instead of returned.
    """

    model = "fake-model"
    temperature = 0.2

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[tuple[str, str]] = []

    async def generate(self, system: str, user: str) -> str:
        self.calls.append((system, user))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeEmbedder:
    """Embedder that looks up vectors by keyword, or fails on demand."""

    def __init__(self, vectors: dict[str, list[float]] | None = None, default=None, fail_on: str | None = None):
        self.vectors = vectors or {}
        self.default = default if default is not None else [1.0, 0.0, 0.0]
        self.fail_on = fail_on
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise RuntimeError("embedding service unavailable")
        for keyword, vector in self.vectors.items():
            if keyword in text:
                return vector
        return self.default


def make_doc(doc_id, embedding=None, title=None, text=None, collection_id="col-1", created_at=None):
    return Document(
        id=doc_id,
        title=title or f"Doc {doc_id}",
        text=text or f"Text of document {doc_id}",
        collection_id=collection_id,
        embedding=embedding,
        created_at=created_at or datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def two_group_docs():
    """Three documents near [1,0,0,0] and three near [0,1,0,0]."""
    group_a = [[1.0, 0.05, 0.0, 0.0], [0.95, 0.0, 0.05, 0.0], [1.0, 0.0, 0.0, 0.05]]
    group_b = [[0.05, 1.0, 0.0, 0.0], [0.0, 0.95, 0.05, 0.0], [0.0, 1.0, 0.0, 0.05]]
    docs = [make_doc(f"a{i}", v) for i, v in enumerate(group_a)]
    docs += [make_doc(f"b{i}", v) for i, v in enumerate(group_b)]
    return docs


def candidate_json(title="Mandatory audit trail", confidence=0.9, **extra) -> str:
    item = {
        "title": title,
        "description": "Regulators make the alternative unacceptable",
        "confidence": confidence,
        "reasoning": "Compliance forces adoption",
    }
    item.update(extra)
    return json.dumps([item])


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def base_time():
    return datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def later(base_time):
    return base_time + timedelta(days=1)
