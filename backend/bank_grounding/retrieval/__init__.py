"""Retrieval engine: similarity scoring, vector search and grounding."""

from .similarity import cosine_similarity
from .vector_index import BruteForceVectorIndex, InMemoryVectorIndex, ScoredChunk, VectorIndex
from .search import GroundingSearchService

__all__ = [
    "cosine_similarity",
    "VectorIndex",
    "BruteForceVectorIndex",
    "InMemoryVectorIndex",
    "ScoredChunk",
    "GroundingSearchService",
]
