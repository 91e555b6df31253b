"""Internal dataclasses representing persisted entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

PROCESSING_STATUSES = ("pending", "processing", "completed", "failed")
ALL_BANK_TYPES = "all"


@dataclass(slots=True)
class GroundingDocument:
    id: str
    filename: str
    title: str
    idrssd: str | None
    file_path: str | None
    file_size: int | None
    page_count: int | None
    sha256: str | None
    topics: list[str]
    bank_types: list[str]
    asset_size_range: str | None
    processing_status: str
    processing_error: str | None
    chunk_count: int
    times_retrieved: int
    created_at: datetime
    updated_at: datetime

    def summary(self) -> dict[str, Any]:
        """Parent metadata attached to search hits."""
        return {
            "id": self.id,
            "filename": self.filename,
            "title": self.title,
            "idrssd": self.idrssd,
            "page_count": self.page_count,
            "topics": list(self.topics),
            "bank_types": list(self.bank_types),
            "asset_size_range": self.asset_size_range,
        }


@dataclass(slots=True)
class Chunk:
    """A retrievable fragment of a document plus its embedding.

    The title, topics, bank types, asset size bucket and idrssd are copied
    from the parent document when the chunk is written so searches can
    filter without a join. ``idrssd`` of ``None`` marks global content.
    """

    id: str
    document_id: str
    content: str
    chunk_index: int
    embedding: list[float]
    page_number: int | None = None
    document_title: str | None = None
    topics: list[str] = field(default_factory=list)
    bank_types: list[str] = field(default_factory=list)
    asset_size_range: str | None = None
    idrssd: str | None = None
    retrieval_count: int = 0
    last_retrieved_at: datetime | None = None
    avg_rating: float | None = None
    positive_count: int = 0
    negative_count: int = 0

    @property
    def dim(self) -> int:
        return len(self.embedding)


@dataclass(slots=True)
class ChunkRecord:
    """Chunk content prepared by ingestion, before metadata is copied on."""

    content: str
    chunk_index: int
    embedding: list[float]
    page_number: int | None = None


__all__ = ["GroundingDocument", "Chunk", "ChunkRecord", "PROCESSING_STATUSES", "ALL_BANK_TYPES"]
