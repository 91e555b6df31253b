"""Search orchestration."""

from __future__ import annotations

import time
from typing import Any, Sequence

from bank_grounding.core.config import Settings
from bank_grounding.core.errors import DimensionMismatch, GroundingError, SearchTimeout
from bank_grounding.core.logging import get_logger
from bank_grounding.core.metrics import (
    FEEDBACK_RECORDED,
    RETRIEVALS_RECORDED,
    SEARCH_COUNT,
    SEARCH_LATENCY,
    feedback_polarity,
)
from bank_grounding.db.chunks import ChunkStore
from bank_grounding.db.documents import DocumentStore
from bank_grounding.ingest.embeddings import EmbeddingModel
from bank_grounding.models.filters import BankScope, ChunkFilters
from bank_grounding.retrieval.vector_index import ScoredChunk, VectorIndex

logger = get_logger(__name__)

CITATION_HEADER = "## Expert Knowledge Documents"


class GroundingSearchService:
    """Coordinates query embedding, vector search, and usage bookkeeping."""

    def __init__(
        self,
        documents: DocumentStore,
        chunks: ChunkStore,
        settings: Settings,
        vector_index: VectorIndex,
        embedding_model: EmbeddingModel,
    ) -> None:
        self.documents = documents
        self.chunks = chunks
        self.settings = settings
        self.vector_index = vector_index
        self.embedding_model = embedding_model

    def search_vector(
        self,
        embedding: Sequence[float],
        filters: ChunkFilters | None = None,
        limit: int | None = None,
    ) -> list[ScoredChunk]:
        """Rank stored chunks against a precomputed embedding. No bookkeeping."""
        top_k = self._clamp_limit(limit)
        start_time = time.perf_counter()
        try:
            hits = self.vector_index.search(
                embedding,
                filters=filters,
                limit=top_k,
                timeout_ms=self.settings.search_timeout_ms,
            )
        except SearchTimeout:
            SEARCH_COUNT.labels(outcome="timeout").inc()
            raise
        except DimensionMismatch:
            SEARCH_COUNT.labels(outcome="dimension_mismatch").inc()
            raise
        SEARCH_LATENCY.observe(time.perf_counter() - start_time)
        SEARCH_COUNT.labels(outcome="ok").inc()
        return hits

    def retrieve(
        self,
        query_text: str,
        filters: ChunkFilters | None = None,
        limit: int | None = None,
        record: bool = True,
    ) -> list[ScoredChunk]:
        """Embed ``query_text`` and return the best matching chunks.

        With ``record`` set, every returned chunk gets one retrieval counted
        and each distinct parent document's ``times_retrieved`` goes up by one.
        """
        if not query_text or not query_text.strip():
            raise ValueError("query text must not be empty")
        query_embedding = self.embedding_model.embed_query(query_text)
        hits = self.search_vector(query_embedding, filters=filters, limit=limit)
        logger.info(
            "Retrieved %s chunks for query",
            len(hits),
            extra={
                "ctx_filters": (filters or ChunkFilters()).as_dict(),
                "ctx_scores": [round(hit.score, 4) for hit in hits],
            },
        )
        if record and hits:
            for hit in hits:
                self.record_retrieval(hit.chunk.id)
            self.documents.increment_times_retrieved(hit.chunk.document_id for hit in hits)
        return hits

    def retrieve_or_empty(
        self,
        query_text: str,
        filters: ChunkFilters | None = None,
        limit: int | None = None,
    ) -> list[ScoredChunk]:
        """Like :meth:`retrieve`, but report generation continues without grounding on failure."""
        try:
            return self.retrieve(query_text, filters=filters, limit=limit)
        except GroundingError as exc:
            logger.warning("Grounding retrieval failed, continuing without it: %s", exc)
            return []

    def retrieve_for_bank(self, idrssd: str, query_text: str, limit: int | None = None) -> list[ScoredChunk]:
        return self.retrieve(query_text, filters=ChunkFilters.build(bank_scope=BankScope.bank(idrssd)), limit=limit)

    def record_retrieval(self, chunk_id: str) -> bool:
        recorded = self.chunks.record_retrieval(chunk_id)
        if recorded:
            RETRIEVALS_RECORDED.inc()
        return recorded

    def record_feedback(self, chunk_id: str, rating: int) -> bool:
        recorded = self.chunks.record_feedback(chunk_id, rating)
        if recorded:
            FEEDBACK_RECORDED.labels(polarity=feedback_polarity(rating)).inc()
        return recorded

    def _clamp_limit(self, limit: int | None) -> int:
        if limit is None:
            return self.settings.default_limit
        return min(limit, self.settings.max_limit)


def format_citations(hits: Sequence[ScoredChunk]) -> str:
    """Render hits as numbered context blocks for a report prompt."""
    if not hits:
        return ""
    blocks: list[str] = [CITATION_HEADER, ""]
    for index, hit in enumerate(hits, start=1):
        title = hit.chunk.document_title or "Expert Guidance"
        page = hit.chunk.page_number or "N/A"
        blocks.append(f"[Document {index}] {title}, p.{page}:\n{hit.chunk.content}\n")
    return "\n".join(blocks)


def citation_sources(hits: Sequence[ScoredChunk], preview_chars: int = 200) -> list[dict[str, Any]]:
    return [
        {
            "title": hit.chunk.document_title or "Expert Guidance",
            "page": hit.chunk.page_number,
            "preview": hit.chunk.content[:preview_chars],
        }
        for hit in hits
    ]


__all__ = ["GroundingSearchService", "format_citations", "citation_sources"]
