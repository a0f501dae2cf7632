"""Cosine similarity and centroid helpers."""

from itertools import combinations
from typing import Sequence

import numpy as np

from ..errors import VectorDimensionError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero norm.
    """
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        raise VectorDimensionError(f"Vector length mismatch: {len(va)} != {len(vb)}")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def centroid(vectors: Sequence[Sequence[float]]) -> list[float]:
    """Element-wise mean of a set of vectors. Empty input gives []."""
    if len(vectors) == 0:
        return []
    matrix = np.asarray(vectors, dtype=float)
    if matrix.ndim != 2:
        raise VectorDimensionError("All vectors must have the same length")
    return matrix.mean(axis=0).tolist()


def average_pairwise_similarity(vectors: Sequence[Sequence[float]]) -> float:
    """Mean cosine similarity over all unordered pairs."""
    if len(vectors) == 0:
        return 0.0
    if len(vectors) == 1:
        return 1.0
    scores = [cosine_similarity(a, b) for a, b in combinations(vectors, 2)]
    return float(np.mean(scores))
