"""Cosine k-means clustering of document embeddings."""

import logging
from typing import Any

import numpy as np

from ..errors import InsufficientDocumentsError, VectorDimensionError
from ..models import Document, DocumentCluster
from .similarity import average_pairwise_similarity

logger = logging.getLogger(__name__)


def choose_k(n: int, min_k: int = 2, max_k: int = 5) -> int:
    """Cluster count: floor(n/3) clamped to [min_k, max_k], never above n."""
    k = max(min_k, min(max_k, n // 3))
    return max(1, min(k, n))


def _unit_rows(matrix: np.ndarray) -> np.ndarray:
    """Normalize rows to unit length; zero rows stay zero (similarity 0)."""
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    safe = np.where(norms == 0, 1.0, norms)
    return matrix / safe


def cluster_documents(
    documents: list[Document],
    min_documents: int = 5,
    min_cluster_size: int = 2,
    max_iterations: int = 20,
    min_k: int = 2,
    max_k: int = 5,
    rng: np.random.Generator | None = None,
) -> list[DocumentCluster]:
    """Group embedded documents with k-means over cosine similarity.

    Centroids are seeded from k distinct documents drawn from ``rng``, so
    results vary between runs unless a seeded generator is passed in.
    Clusters smaller than ``min_cluster_size`` are dropped.

    Returns surviving clusters ordered by their original index.
    """
    embedded = [d for d in documents if d.has_embedding]
    if len(embedded) < min_documents:
        raise InsufficientDocumentsError(min_documents, len(embedded))
    if not embedded:
        return []

    dims = {len(d.embedding) for d in embedded}
    if len(dims) > 1:
        raise VectorDimensionError(f"Embeddings have mixed dimensions: {sorted(dims)}")

    rng = rng or np.random.default_rng()
    embeddings = np.array([d.embedding for d in embedded], dtype=float)
    n = len(embedded)
    k = choose_k(n, min_k, max_k)

    seed_indices = rng.choice(n, size=k, replace=False)
    centroids = embeddings[seed_indices].copy()
    unit_embeddings = _unit_rows(embeddings)
    assignments = np.full(n, -1)

    for iteration in range(max_iterations):
        similarities = unit_embeddings @ _unit_rows(centroids).T
        # argmax returns the first index on ties
        new_assignments = similarities.argmax(axis=1)
        if np.array_equal(new_assignments, assignments):
            logger.debug(f"k-means converged after {iteration} iteration(s)")
            break
        assignments = new_assignments

        for c in range(k):
            members = embeddings[assignments == c]
            # An empty cluster keeps its previous centroid
            if len(members) > 0:
                centroids[c] = members.mean(axis=0)

    results = []
    for c in range(k):
        member_indices = np.flatnonzero(assignments == c)
        if len(member_indices) < min_cluster_size:
            if len(member_indices):
                logger.debug(f"Dropping cluster {c} with {len(member_indices)} member(s)")
            continue

        members = [embedded[i] for i in member_indices]
        results.append(DocumentCluster(
            centroid=centroids[c].tolist(),
            documents=members,
            average_similarity=average_pairwise_similarity([m.embedding for m in members]),
            cluster_index=c,
        ))

    logger.info(f"Clustered {n} document(s) into {len(results)} cluster(s) (k={k})")
    return results


def run_clustering(documents: list[Document], config: dict[str, Any], rng: np.random.Generator | None = None) -> list[DocumentCluster]:
    """Cluster documents using the thresholds from config."""
    cluster_cfg = config.get("clustering", {})
    generation_cfg = config.get("generation", {})

    if rng is None and cluster_cfg.get("seed") is not None:
        rng = np.random.default_rng(cluster_cfg["seed"])

    return cluster_documents(
        documents,
        min_documents=generation_cfg.get("min_documents", 5),
        min_cluster_size=cluster_cfg.get("min_cluster_size", 2),
        max_iterations=cluster_cfg.get("max_iterations", 20),
        min_k=cluster_cfg.get("min_k", 2),
        max_k=cluster_cfg.get("max_k", 5),
        rng=rng,
    )
