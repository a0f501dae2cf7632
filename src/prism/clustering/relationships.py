"""Score relationships between documents within clusters."""

from itertools import combinations

from ..models import DocumentCluster, Relationship
from .similarity import cosine_similarity


def extract_relationships(clusters: list[DocumentCluster]) -> list[Relationship]:
    """Extract scored relationships from clusters.

    For each cluster, compute pairwise similarity between members.
    """
    relationships = []

    for cluster in clusters:
        if cluster.size < 2:
            continue

        for doc_a, doc_b in combinations(cluster.documents, 2):
            relationships.append(Relationship(
                doc_a=doc_a.id,
                doc_b=doc_b.id,
                score=cosine_similarity(doc_a.embedding, doc_b.embedding),
                cluster_index=cluster.cluster_index,
            ))

    # Sort by score descending
    relationships.sort(key=lambda r: r.score, reverse=True)
    return relationships


def centroid_affinity(cluster: DocumentCluster, other: DocumentCluster) -> float:
    """Mean similarity of a cluster's members to another cluster's centroid."""
    if cluster.size == 0:
        return 0.0
    scores = [cosine_similarity(d.embedding, other.centroid) for d in cluster.documents]
    return sum(scores) / len(scores)
