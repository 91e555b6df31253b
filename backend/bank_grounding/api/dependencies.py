"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from bank_grounding.core.config import Settings, get_settings
from bank_grounding.db.chunks import ChunkStore
from bank_grounding.db.documents import DocumentStore
from bank_grounding.db.sqlite import SQLiteDatabase
from bank_grounding.ingest import embeddings
from bank_grounding.ingest.embeddings import EmbeddingModel
from bank_grounding.ingest.pipeline import GroundingPipeline
from bank_grounding.retrieval import BruteForceVectorIndex, GroundingSearchService, VectorIndex

_DB: SQLiteDatabase | None = None
_VECTOR_INDEX: VectorIndex | None = None
_PIPELINE: GroundingPipeline | None = None
_SEARCH_SERVICE: GroundingSearchService | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        settings = get_app_settings()
        db = SQLiteDatabase(settings.db_path)
        db.ensure_schema()
        _DB = db
    return _DB


def get_embedding_model() -> EmbeddingModel:
    return embeddings.get_embedding_model(get_app_settings())


def get_document_store() -> DocumentStore:
    return DocumentStore(get_database())


def get_chunk_store() -> ChunkStore:
    return ChunkStore(get_database(), dim=get_app_settings().embedding_dim)


def get_vector_index() -> VectorIndex:
    global _VECTOR_INDEX
    if _VECTOR_INDEX is None:
        _VECTOR_INDEX = BruteForceVectorIndex(get_chunk_store(), get_document_store())
    return _VECTOR_INDEX


def get_pipeline() -> GroundingPipeline:
    global _PIPELINE
    if _PIPELINE is None:
        _PIPELINE = GroundingPipeline(
            documents=get_document_store(),
            chunks=get_chunk_store(),
            settings=get_app_settings(),
            embedding_model=get_embedding_model(),
        )
    return _PIPELINE


def get_search_service() -> GroundingSearchService:
    global _SEARCH_SERVICE
    if _SEARCH_SERVICE is None:
        _SEARCH_SERVICE = GroundingSearchService(
            documents=get_document_store(),
            chunks=get_chunk_store(),
            settings=get_app_settings(),
            vector_index=get_vector_index(),
            embedding_model=get_embedding_model(),
        )
    return _SEARCH_SERVICE


def reset_dependencies() -> None:
    """Drop cached singletons so the next request rebuilds them from settings."""
    global _DB, _VECTOR_INDEX, _PIPELINE, _SEARCH_SERVICE
    if _DB is not None:
        _DB.close()
    _DB = None
    _VECTOR_INDEX = None
    _PIPELINE = None
    _SEARCH_SERVICE = None
    get_app_settings.cache_clear()
    get_settings.cache_clear()
    embeddings.clear_embedding_models()


__all__ = [
    "get_app_settings",
    "get_database",
    "get_document_store",
    "get_chunk_store",
    "get_embedding_model",
    "get_vector_index",
    "get_pipeline",
    "get_search_service",
    "reset_dependencies",
]
