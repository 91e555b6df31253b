"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, FiniteFloat

from bank_grounding.models.filters import BankScope, ChunkFilters

Topic = Literal[
    "liquidity",
    "capital",
    "asset_quality",
    "earnings",
    "risk_management",
    "efficiency",
    "growth",
    "technology",
    "strategy",
    "general",
]
BankType = Literal["community", "regional", "large", "mega", "all"]
AssetSizeRange = Literal["<100M", "100M-1B", "1B-10B", "10B-50B", ">50B", "all"]
ProcessingStatus = Literal["pending", "processing", "completed", "failed"]


class DocumentCreateRequest(BaseModel):
    path: str = Field(description="Filesystem path of the filing to register")
    title: str | None = None
    topics: list[Topic] | None = None
    bank_types: list[BankType] | None = None
    asset_size_range: AssetSizeRange | None = None
    idrssd: str | None = Field(default=None, description="Bank identifier; omit for global content")
    process: bool = Field(default=True, description="Chunk and embed in the background after registering")


class DocumentUpdateRequest(BaseModel):
    title: str | None = None
    topics: list[Topic] | None = None
    bank_types: list[BankType] | None = None
    asset_size_range: AssetSizeRange | None = None


class DocumentResponse(BaseModel):
    id: str
    filename: str
    title: str
    idrssd: str | None = None
    file_size: int | None = None
    page_count: int | None = None
    topics: list[str]
    bank_types: list[str]
    asset_size_range: str | None = None
    processing_status: ProcessingStatus
    processing_error: str | None = None
    chunk_count: int
    times_retrieved: int
    created_at: datetime
    updated_at: datetime


class ChunkUsageStats(BaseModel):
    total_retrievals: int = 0
    avg_rating: float | None = None


class DocumentDetailResponse(BaseModel):
    document: DocumentResponse
    stats: ChunkUsageStats


class SearchFilters(BaseModel):
    """Metadata clauses shared by text and vector search.

    ``idrssd`` is three-valued: leave it out to search every bank, send
    ``null`` for global content only, or send an id for one bank.
    """

    idrssd: str | None = Field(default=None, min_length=1)
    bank_type: BankType | None = None
    bank_types: list[BankType] | None = None
    topics: list[Topic] | None = None
    limit: int | None = Field(default=None, ge=1, description="Capped at the configured max_limit")

    def to_filters(self) -> ChunkFilters:
        bank_types = list(self.bank_types or [])
        if self.bank_type and self.bank_type not in bank_types:
            bank_types.append(self.bank_type)
        return ChunkFilters.build(
            bank_scope=BankScope.from_request(self.model_fields_set, self.idrssd),
            bank_types=bank_types,
            topics=self.topics,
        )


class SearchRequest(SearchFilters):
    query: str = Field(min_length=1)
    record: bool = Field(default=True, description="Count a retrieval for each returned chunk")


class VectorSearchRequest(SearchFilters):
    embedding: list[FiniteFloat] = Field(min_length=1)


class SearchResultItem(BaseModel):
    chunk_id: str
    document_id: str
    content: str
    document_title: str | None = None
    page_number: int | None = None
    chunk_index: int
    score: float
    document: dict[str, Any] | None = None


class SearchResponse(BaseModel):
    query: str | None = None
    filters: dict[str, Any]
    results: list[SearchResultItem]


class FeedbackRequest(BaseModel):
    rating: int = Field(ge=1, le=5)


class BookkeepingResponse(BaseModel):
    chunk_id: str
    recorded: bool


class DocumentStats(BaseModel):
    total: int
    by_status: dict[str, int]
    total_size: int
    avg_size: float


class ChunkStats(BaseModel):
    total: int
    total_retrievals: int
    avg_rating: float | None = None


class StatsResponse(BaseModel):
    documents: DocumentStats
    chunks: ChunkStats
    by_bank: list[dict[str, Any]]


class WipeResponse(BaseModel):
    success: bool = True
    deleted: dict[str, int]


class ProcessingResponse(BaseModel):
    success: bool
    document_id: str
    filename: str
    page_count: int
    chunk_count: int


class DeleteResponse(BaseModel):
    success: bool = True
    chunks_deleted: int


class BankDocumentSummary(BaseModel):
    id: str
    title: str
    filename: str
    status: ProcessingStatus
    chunk_count: int
    file_size: int | None = None
    created_at: datetime
    error: str | None = None


class BankStatsResponse(BaseModel):
    total_documents: int
    completed_documents: int
    processing_documents: int
    pending_documents: int
    failed_documents: int
    total_chunks: int
    total_size: int
    documents: list[BankDocumentSummary]


__all__ = [
    "DocumentCreateRequest",
    "DocumentUpdateRequest",
    "DocumentResponse",
    "DocumentDetailResponse",
    "ChunkUsageStats",
    "SearchRequest",
    "VectorSearchRequest",
    "SearchResultItem",
    "SearchResponse",
    "FeedbackRequest",
    "BookkeepingResponse",
    "StatsResponse",
    "WipeResponse",
    "ProcessingResponse",
    "DeleteResponse",
    "BankStatsResponse",
]
