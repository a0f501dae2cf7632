"""Extract not-not candidates from documents and clusters with an LLM."""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..models import Document, DocumentCluster, NotNotCandidate, utcnow
from .llm import TextGenerator
from .parser import DecodeResult, Decoded, Malformed, NotNotItem, decode_response
from .prompts import CLUSTER_PROMPT, CLUSTER_SYSTEM_PROMPT, DOCUMENT_PROMPT, NOT_NOT_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

CLUSTER_ALGORITHM = "cluster-analysis"
DOCUMENT_ALGORITHM = "single-document-analysis"


def excerpt(text: str, limit: int) -> str:
    """Truncate text to ``limit`` characters, marking the cut with '...'."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


@dataclass
class Extraction:
    """Candidates produced for one unit, plus how the response decoded."""
    candidates: list[NotNotCandidate] = field(default_factory=list)
    result: DecodeResult = field(default_factory=Decoded)

    @property
    def malformed(self) -> bool:
        return isinstance(self.result, Malformed)


class PatternExtractor:
    """Runs the not-not prompts against a text generator."""

    def __init__(
        self,
        generator: TextGenerator,
        confidence_threshold: float = 0.5,
        document_excerpt_chars: int = 2000,
        cluster_excerpt_chars: int = 1000,
        max_docs_per_cluster: int = 10,
    ):
        self.generator = generator
        self.confidence_threshold = confidence_threshold
        self.document_excerpt_chars = document_excerpt_chars
        self.cluster_excerpt_chars = cluster_excerpt_chars
        self.max_docs_per_cluster = max_docs_per_cluster

    @classmethod
    def from_config(cls, generator: TextGenerator, config: dict[str, Any]) -> "PatternExtractor":
        gen_cfg = config.get("generation", {})
        return cls(
            generator,
            confidence_threshold=gen_cfg.get("confidence_threshold", 0.5),
            document_excerpt_chars=gen_cfg.get("document_excerpt_chars", 2000),
            cluster_excerpt_chars=gen_cfg.get("cluster_excerpt_chars", 1000),
            max_docs_per_cluster=gen_cfg.get("max_docs_per_cluster", 10),
        )

    def build_document_prompt(self, document: Document) -> str:
        return DOCUMENT_PROMPT.format(
            title=document.title,
            content=excerpt(document.text, self.document_excerpt_chars),
        )

    def prompted_documents(self, cluster: DocumentCluster) -> list[Document]:
        """The cluster members that fit in the prompt."""
        return cluster.documents[:self.max_docs_per_cluster]

    def build_cluster_prompt(self, cluster: DocumentCluster) -> str:
        doc_texts = []
        for doc in self.prompted_documents(cluster):
            doc_texts.append(f"### {doc.title}\n{excerpt(doc.text, self.cluster_excerpt_chars)}")
        return CLUSTER_PROMPT.format(
            count=len(doc_texts),
            similarity=cluster.average_similarity,
            documents="\n\n---\n\n".join(doc_texts),
        )

    async def extract_from_document(self, document: Document) -> Extraction:
        """Analyze a single document. Generator errors propagate."""
        text = await self.generator.generate(NOT_NOT_SYSTEM_PROMPT, self.build_document_prompt(document))
        result = decode_response(text)
        params = self._params()
        return self._build(result, [document.id], DOCUMENT_ALGORITHM, params, unit=f"document {document.title!r}")

    async def extract_from_cluster(self, cluster: DocumentCluster) -> Extraction:
        """Analyze a cluster of documents. Generator errors propagate.

        Candidates cite only the members that were shown to the model.
        """
        text = await self.generator.generate(CLUSTER_SYSTEM_PROMPT, self.build_cluster_prompt(cluster))
        result = decode_response(text)
        cited = [doc.id for doc in self.prompted_documents(cluster)]
        params = self._params()
        params["cluster_index"] = cluster.cluster_index
        params["cluster_size"] = cluster.size
        params["documents_analyzed"] = len(cited)
        params["average_similarity"] = round(cluster.average_similarity, 4)
        return self._build(result, cited, CLUSTER_ALGORITHM, params, unit=f"cluster {cluster.cluster_index}")

    def _params(self) -> dict[str, Any]:
        return {
            "model": getattr(self.generator, "model", "unknown"),
            "temperature": getattr(self.generator, "temperature", None),
        }

    def _build(
        self,
        result: DecodeResult,
        document_ids: list[str],
        algorithm: str,
        params: dict[str, Any],
        unit: str,
    ) -> Extraction:
        if isinstance(result, Malformed):
            logger.warning(f"Malformed response for {unit}: {result.reason}")
            logger.debug(f"Raw response for {unit}: {result.raw[:500]}")
            return Extraction(result=result)

        kept = [item for item in result.items if item.confidence >= self.confidence_threshold]
        dropped = len(result.items) - len(kept)
        if dropped:
            logger.debug(f"Dropped {dropped} low-confidence item(s) for {unit}")

        generated_at = utcnow().isoformat()
        candidates = [self._candidate(item, document_ids, algorithm, params, generated_at) for item in kept]
        return Extraction(candidates=candidates, result=result)

    @staticmethod
    def _candidate(
        item: NotNotItem,
        document_ids: list[str],
        algorithm: str,
        params: dict[str, Any],
        generated_at: str,
    ) -> NotNotCandidate:
        return NotNotCandidate(
            title=item.title,
            description=item.description,
            document_ids=list(document_ids),
            confidence=item.confidence,
            reasoning=item.reasoning,
            metadata={
                "algorithm": algorithm,
                "generated_at": generated_at,
                "generation_params": dict(params),
            },
        )
