"""Vector index abstraction."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Sequence

from bank_grounding.core.errors import DimensionMismatch, SearchTimeout
from bank_grounding.db.chunks import ChunkStore
from bank_grounding.db.documents import DocumentStore
from bank_grounding.models.entities import Chunk
from bank_grounding.models.filters import ChunkFilters
from bank_grounding.retrieval.similarity import cosine_similarity


@dataclass(slots=True)
class ScoredChunk:
    chunk: Chunk
    score: float
    document: dict[str, Any] | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chunk_id": self.chunk.id,
            "document_id": self.chunk.document_id,
            "content": self.chunk.content,
            "document_title": self.chunk.document_title,
            "page_number": self.chunk.page_number,
            "chunk_index": self.chunk.chunk_index,
            "score": self.score,
            "document": self.document,
        }


class VectorIndex(ABC):
    """Ranks stored chunks against a query embedding.

    Implementations return at most ``limit`` hits sorted by descending score
    and never include a chunk rejected by ``filters``. Searching has no side
    effects; callers record retrievals separately.
    """

    def __init__(self, dim: int) -> None:
        self.dim = dim

    @abstractmethod
    def candidates(self, filters: ChunkFilters) -> list[Chunk]:
        """Return every chunk matching ``filters`` in a stable order."""

    def attach_documents(self, hits: list[ScoredChunk]) -> list[ScoredChunk]:
        return hits

    def search(
        self,
        query_embedding: Sequence[float],
        filters: ChunkFilters | None = None,
        limit: int = 5,
        timeout_ms: float | None = None,
    ) -> list[ScoredChunk]:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValueError(f"limit must be a positive integer, got {limit!r}")
        if len(query_embedding) != self.dim:
            raise DimensionMismatch(expected=self.dim, actual=len(query_embedding))
        deadline = None if timeout_ms is None else time.monotonic() + timeout_ms / 1000.0

        candidates = self.candidates(filters or ChunkFilters())
        if not candidates:
            return []

        scored: list[ScoredChunk] = []
        for position, chunk in enumerate(candidates):
            if deadline is not None and time.monotonic() >= deadline:
                raise SearchTimeout(timeout_ms=timeout_ms, scored=position, total=len(candidates))
            if chunk.dim != self.dim:
                raise DimensionMismatch(expected=self.dim, actual=chunk.dim, chunk_id=chunk.id)
            scored.append(ScoredChunk(chunk=chunk, score=cosine_similarity(query_embedding, chunk.embedding)))

        # sorted() is stable, so equal scores keep candidate order
        ranked = sorted(scored, key=lambda hit: hit.score, reverse=True)[:limit]
        return self.attach_documents(ranked)


class BruteForceVectorIndex(VectorIndex):
    """Full scan over the chunk table followed by exact cosine ranking."""

    def __init__(self, chunks: ChunkStore, documents: DocumentStore) -> None:
        super().__init__(dim=chunks.dim)
        self.chunks = chunks
        self.documents = documents

    @property
    def size(self) -> int:
        return self.chunks.count()

    def candidates(self, filters: ChunkFilters) -> list[Chunk]:
        return self.chunks.fetch_candidates(filters)

    def attach_documents(self, hits: list[ScoredChunk]) -> list[ScoredChunk]:
        parents = self.documents.get_many(hit.chunk.document_id for hit in hits)
        for hit in hits:
            parent = parents.get(hit.chunk.document_id)
            hit.document = parent.summary() if parent else None
        return hits


class InMemoryVectorIndex(VectorIndex):
    """Holds chunks in process; used for fixtures and small corpora."""

    def __init__(self, dim: int) -> None:
        super().__init__(dim=dim)
        self._chunks: list[Chunk] = []

    @property
    def size(self) -> int:
        return len(self._chunks)

    def upsert(self, chunks: Sequence[Chunk]) -> None:
        for chunk in chunks:
            if chunk.dim != self.dim:
                raise DimensionMismatch(expected=self.dim, actual=chunk.dim, chunk_id=chunk.id)
        incoming = {chunk.id for chunk in chunks}
        self._chunks = [chunk for chunk in self._chunks if chunk.id not in incoming]
        self._chunks.extend(chunks)

    def remove_document(self, document_id: str) -> None:
        self._chunks = [chunk for chunk in self._chunks if chunk.document_id != document_id]

    def candidates(self, filters: ChunkFilters) -> list[Chunk]:
        return [chunk for chunk in self._chunks if filters.matches(chunk)]


__all__ = ["VectorIndex", "BruteForceVectorIndex", "InMemoryVectorIndex", "ScoredChunk"]
