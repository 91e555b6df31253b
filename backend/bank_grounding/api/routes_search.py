"""Search and bookkeeping API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from bank_grounding.api.dependencies import get_search_service
from bank_grounding.core.errors import DimensionMismatch, EmbeddingError, SearchTimeout
from bank_grounding.models.dto import (
    BookkeepingResponse,
    FeedbackRequest,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    VectorSearchRequest,
)
from bank_grounding.retrieval.search import GroundingSearchService
from bank_grounding.retrieval.vector_index import ScoredChunk

router = APIRouter()


@router.post("/search", response_model=SearchResponse, summary="Search grounding chunks by text")
def search(
    request: SearchRequest,
    service: GroundingSearchService = Depends(get_search_service),
) -> SearchResponse:
    filters = request.to_filters()
    try:
        hits = service.retrieve(request.query, filters=filters, limit=request.limit, record=request.record)
    except DimensionMismatch as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SearchTimeout as exc:
        raise HTTPException(status_code=504, detail=str(exc)) from exc
    except EmbeddingError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return SearchResponse(query=request.query, filters=filters.as_dict(), results=_to_items(hits))


@router.post("/search/vector", response_model=SearchResponse, summary="Search grounding chunks by embedding")
def search_vector(
    request: VectorSearchRequest,
    service: GroundingSearchService = Depends(get_search_service),
) -> SearchResponse:
    filters = request.to_filters()
    try:
        hits = service.search_vector(request.embedding, filters=filters, limit=request.limit)
    except DimensionMismatch as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SearchTimeout as exc:
        raise HTTPException(status_code=504, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return SearchResponse(filters=filters.as_dict(), results=_to_items(hits))


@router.post("/chunks/{chunk_id}/retrieval", response_model=BookkeepingResponse, summary="Count one chunk use")
def record_retrieval(
    chunk_id: str,
    service: GroundingSearchService = Depends(get_search_service),
) -> BookkeepingResponse:
    return BookkeepingResponse(chunk_id=chunk_id, recorded=service.record_retrieval(chunk_id))


@router.post("/chunks/{chunk_id}/feedback", response_model=BookkeepingResponse, summary="Rate a chunk 1-5")
def record_feedback(
    chunk_id: str,
    request: FeedbackRequest,
    service: GroundingSearchService = Depends(get_search_service),
) -> BookkeepingResponse:
    return BookkeepingResponse(chunk_id=chunk_id, recorded=service.record_feedback(chunk_id, request.rating))


def _to_items(hits: list[ScoredChunk]) -> list[SearchResultItem]:
    return [SearchResultItem(**hit.to_dict()) for hit in hits]


__all__ = ["router"]
