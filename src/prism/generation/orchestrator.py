"""Coordinate clustering and extraction for one generation request."""

import logging
from typing import Any

import numpy as np

from ..clustering.cluster import cluster_documents
from ..config import GENERATION_MODES
from ..errors import ConfigError, InsufficientDocumentsError
from ..enrichment.extractor import Extraction, PatternExtractor
from ..models import Document, GenerationStats, NotNotCandidate

logger = logging.getLogger(__name__)


class NotNotGenerator:
    """Turns a collection's documents into not-not candidates.

    In ``cluster`` mode documents are grouped first and each cluster is
    analysed once; in ``document`` mode every embedded document is analysed
    on its own. Units run one at a time. A unit that fails is logged and
    skipped; only precondition errors reach the caller.
    """

    def __init__(
        self,
        extractor: PatternExtractor,
        mode: str = "cluster",
        min_documents: int = 5,
        min_cluster_size: int = 2,
        max_iterations: int = 20,
        min_k: int = 2,
        max_k: int = 5,
        rng: np.random.Generator | None = None,
    ):
        if mode not in GENERATION_MODES:
            raise ConfigError(f"Unknown generation mode: {mode}")
        self.extractor = extractor
        self.mode = mode
        self.min_documents = min_documents
        self.min_cluster_size = min_cluster_size
        self.max_iterations = max_iterations
        self.min_k = min_k
        self.max_k = max_k
        self.rng = rng
        self.last_stats = GenerationStats()

    @classmethod
    def from_config(
        cls,
        extractor: PatternExtractor,
        config: dict[str, Any],
        rng: np.random.Generator | None = None,
    ) -> "NotNotGenerator":
        gen_cfg = config.get("generation", {})
        cluster_cfg = config.get("clustering", {})
        if rng is None and cluster_cfg.get("seed") is not None:
            rng = np.random.default_rng(cluster_cfg["seed"])
        return cls(
            extractor,
            mode=gen_cfg.get("mode", "cluster"),
            min_documents=gen_cfg.get("min_documents", 5),
            min_cluster_size=cluster_cfg.get("min_cluster_size", 2),
            max_iterations=cluster_cfg.get("max_iterations", 20),
            min_k=cluster_cfg.get("min_k", 2),
            max_k=cluster_cfg.get("max_k", 5),
            rng=rng,
        )

    async def generate_for_collection(self, documents: list[Document]) -> list[NotNotCandidate]:
        """Generate candidates for a whole collection.

        Raises:
            InsufficientDocumentsError: fewer than ``min_documents`` embedded documents.
        """
        embedded = [d for d in documents if d.has_embedding]
        skipped = len(documents) - len(embedded)
        if skipped:
            logger.info(f"Skipping {skipped} document(s) without embeddings")
        if len(embedded) < self.min_documents or not embedded:
            raise InsufficientDocumentsError(max(self.min_documents, 1), len(embedded))

        stats = GenerationStats()
        self.last_stats = stats
        candidates: list[NotNotCandidate] = []

        if self.mode == "cluster":
            clusters = cluster_documents(
                embedded,
                min_documents=self.min_documents,
                min_cluster_size=self.min_cluster_size,
                max_iterations=self.max_iterations,
                min_k=self.min_k,
                max_k=self.max_k,
                rng=self.rng,
            )
            logger.info(f"Analyzing {len(clusters)} cluster(s) from {len(embedded)} document(s)")
            for cluster in clusters:
                label = f"cluster {cluster.cluster_index} ({cluster.size} docs)"
                candidates.extend(await self._run_unit(stats, label, self.extractor.extract_from_cluster(cluster)))
        else:
            logger.info(f"Analyzing {len(embedded)} document(s) individually")
            for document in embedded:
                label = f"document {document.title!r}"
                candidates.extend(await self._run_unit(stats, label, self.extractor.extract_from_document(document)))

        logger.info(
            f"Generated {len(candidates)} not-not candidate(s) from {stats.units_total} unit(s) "
            f"({stats.units_failed} failed, {stats.units_malformed} malformed)"
        )
        return candidates

    async def generate_for_document(self, document: Document) -> list[NotNotCandidate]:
        """Generate candidates for one document, without clustering.

        A document without an embedding yields no candidates. Generator
        errors propagate to the caller.
        """
        stats = GenerationStats()
        self.last_stats = stats
        if not document.has_embedding:
            logger.info(f"Document {document.title!r} has no valid embedding, skipping generation")
            return []

        stats.units_total = 1
        extraction = await self.extractor.extract_from_document(document)
        self._record(stats, extraction)
        return extraction.candidates

    async def _run_unit(self, stats: GenerationStats, label: str, pending) -> list[NotNotCandidate]:
        stats.units_total += 1
        logger.debug(f"Analyzing {label}")
        try:
            extraction = await pending
        except Exception:
            stats.units_failed += 1
            logger.exception(f"Failed to analyze {label}")
            return []

        self._record(stats, extraction)
        for candidate in extraction.candidates:
            logger.info(f"  {label}: {candidate.title!r} ({candidate.confidence:.2f})")
        return extraction.candidates

    @staticmethod
    def _record(stats: GenerationStats, extraction: Extraction) -> None:
        if extraction.malformed:
            stats.units_malformed += 1
        elif extraction.candidates:
            stats.units_succeeded += 1
        else:
            stats.units_empty += 1
        stats.candidates += len(extraction.candidates)
