"""Administrative routes for Bank Grounding."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from bank_grounding.api.dependencies import get_chunk_store, get_document_store, get_pipeline
from bank_grounding.core.logging import get_logger
from bank_grounding.core.metrics import metrics_response
from bank_grounding.db.chunks import ChunkStore
from bank_grounding.db.documents import DocumentStore
from bank_grounding.ingest.pipeline import GroundingPipeline
from bank_grounding.models.dto import (
    BankStatsResponse,
    ChunkStats,
    DocumentStats,
    StatsResponse,
    WipeResponse,
)

logger = get_logger(__name__)

router = APIRouter()


@router.get("/stats", response_model=StatsResponse, summary="Store-wide or per-bank statistics")
def get_stats(
    idrssd: Optional[str] = None,
    documents: DocumentStore = Depends(get_document_store),
    chunks: ChunkStore = Depends(get_chunk_store),
) -> StatsResponse:
    sizes = documents.size_stats(idrssd)
    usage = chunks.usage_stats(idrssd=idrssd)
    return StatsResponse(
        documents=DocumentStats(
            total=documents.count(idrssd),
            by_status=documents.status_breakdown(idrssd),
            total_size=sizes["total_size"],
            avg_size=sizes["avg_size"],
        ),
        chunks=ChunkStats(
            total=chunks.count(idrssd),
            total_retrievals=usage["total_retrievals"],
            avg_rating=usage["avg_rating"],
        ),
        # per-bank breakdown only makes sense across the whole store
        by_bank=[] if idrssd else documents.top_banks(limit=10),
    )


@router.get("/banks/{idrssd}/stats", response_model=BankStatsResponse, summary="Grounding status of one bank")
def get_bank_stats(idrssd: str, pipeline: GroundingPipeline = Depends(get_pipeline)) -> BankStatsResponse:
    return BankStatsResponse(**pipeline.bank_stats(idrssd))


@router.delete("/wipe", response_model=WipeResponse, summary="Delete every document and chunk")
def wipe(pipeline: GroundingPipeline = Depends(get_pipeline)) -> WipeResponse:
    logger.warning("Wiping entire grounding store")
    return WipeResponse(deleted=pipeline.wipe())


@router.get("/metrics", summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()


__all__ = ["router"]
