"""Tests for the generation orchestrator."""

import json

import numpy as np
import pytest

from conftest import FakeGenerator, candidate_json, make_doc, two_group_docs
from prism.config import DEFAULT_CONFIG
from prism.enrichment.extractor import PatternExtractor
from prism.errors import ConfigError, InsufficientDocumentsError
from prism.generation.orchestrator import NotNotGenerator


def _generator(*replies, **kwargs):
    fake = FakeGenerator(*replies)
    return NotNotGenerator(PatternExtractor(fake), rng=np.random.default_rng(1), **kwargs), fake


class TestCollectionClusterMode:

    @pytest.mark.asyncio
    async def test_insufficient_documents_raises(self):
        generator, fake = _generator("[]")
        docs = two_group_docs()[:4]
        with pytest.raises(InsufficientDocumentsError):
            await generator.generate_for_collection(docs)
        assert fake.calls == []

    @pytest.mark.asyncio
    async def test_documents_without_embeddings_not_counted(self):
        generator, _ = _generator("[]")
        docs = two_group_docs()[:4] + [make_doc("x", None), make_doc("y", [])]
        with pytest.raises(InsufficientDocumentsError):
            await generator.generate_for_collection(docs)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["[]", '{"title": null}'])
    async def test_empty_replies_give_zero_candidates(self, reply):
        generator, fake = _generator(reply)
        candidates = await generator.generate_for_collection(two_group_docs())
        assert candidates == []
        assert len(fake.calls) == 2
        assert generator.last_stats.units_empty == 2

    @pytest.mark.asyncio
    async def test_one_candidate_per_cluster(self):
        reply = json.dumps({"title": "Pattern", "description": "d", "confidence": 0.9})
        generator, _ = _generator(reply)
        candidates = await generator.generate_for_collection(two_group_docs())

        assert len(candidates) == 2
        groups = sorted("".join(sorted({i[0] for i in c.document_ids})) for c in candidates)
        assert groups == ["a", "b"]

    @pytest.mark.asyncio
    async def test_low_confidence_filtered(self):
        generator, _ = _generator(candidate_json(confidence=0.3))
        assert await generator.generate_for_collection(two_group_docs()) == []

    @pytest.mark.asyncio
    async def test_failing_cluster_does_not_stop_run(self):
        reply = json.dumps({"title": "Pattern", "description": "d", "confidence": 0.9})
        generator, fake = _generator(RuntimeError("API down"), reply)
        candidates = await generator.generate_for_collection(two_group_docs())

        assert len(fake.calls) == 2
        assert len(candidates) == 1
        assert generator.last_stats.units_failed == 1
        assert generator.last_stats.units_succeeded == 1

    @pytest.mark.asyncio
    async def test_all_units_failing_returns_empty(self):
        generator, _ = _generator(RuntimeError("API down"))
        candidates = await generator.generate_for_collection(two_group_docs())
        assert candidates == []
        assert generator.last_stats.units_failed == 2

    @pytest.mark.asyncio
    async def test_malformed_counted(self):
        generator, _ = _generator("garbage")
        assert await generator.generate_for_collection(two_group_docs()) == []
        assert generator.last_stats.units_malformed == 2


class TestCollectionDocumentMode:

    @pytest.mark.asyncio
    async def test_each_document_analysed(self):
        generator, fake = _generator(candidate_json(confidence=0.9), mode="document", min_documents=1)
        docs = [make_doc("one", [1.0, 0.0]), make_doc("two", [0.0, 1.0]), make_doc("three", None)]

        candidates = await generator.generate_for_collection(docs)

        assert len(fake.calls) == 2
        assert [c.document_ids for c in candidates] == [["one"], ["two"]]

    @pytest.mark.asyncio
    async def test_no_embedded_documents_raises(self):
        generator, _ = _generator("[]", mode="document", min_documents=0)
        with pytest.raises(InsufficientDocumentsError):
            await generator.generate_for_collection([make_doc("x", None)])


class TestSingleDocument:

    @pytest.mark.asyncio
    async def test_exactly_one_candidate(self):
        generator, _ = _generator(candidate_json(confidence=0.9))
        candidates = await generator.generate_for_document(make_doc("doc-7", [0.2, 0.8]))

        assert len(candidates) == 1
        assert candidates[0].document_ids == ["doc-7"]
        assert candidates[0].title == "Mandatory audit trail"

    @pytest.mark.asyncio
    async def test_skips_document_without_embedding(self):
        generator, fake = _generator(candidate_json())
        assert await generator.generate_for_document(make_doc("d", None)) == []
        assert fake.calls == []

    @pytest.mark.asyncio
    async def test_below_threshold(self):
        generator, _ = _generator(candidate_json(confidence=0.3))
        assert await generator.generate_for_document(make_doc("d", [1.0])) == []

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        generator, _ = _generator(RuntimeError("boom"))
        with pytest.raises(RuntimeError):
            await generator.generate_for_document(make_doc("d", [1.0]))


def test_unknown_mode_rejected():
    with pytest.raises(ConfigError):
        NotNotGenerator(PatternExtractor(FakeGenerator("[]")), mode="magic")


def test_from_config():
    config = {
        **DEFAULT_CONFIG,
        "generation": {**DEFAULT_CONFIG["generation"], "mode": "document", "min_documents": 1},
    }
    generator = NotNotGenerator.from_config(PatternExtractor(FakeGenerator("[]")), config)
    assert generator.mode == "document"
    assert generator.min_documents == 1
    assert generator.min_cluster_size == 2
