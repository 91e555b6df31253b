"""Error types raised by the grounding store and retrieval engine."""

from __future__ import annotations


class GroundingError(Exception):
    """Base class for grounding failures."""


class DimensionMismatch(GroundingError, ValueError):
    """Two embeddings that must share a dimensionality do not."""

    def __init__(self, expected: int, actual: int, chunk_id: str | None = None) -> None:
        self.expected = expected
        self.actual = actual
        self.chunk_id = chunk_id
        where = f" for chunk {chunk_id}" if chunk_id else ""
        super().__init__(f"Embedding dimension mismatch{where}: expected {expected}, got {actual}")


class SearchTimeout(GroundingError):
    """A vector search ran past its deadline before ranking finished."""

    def __init__(self, timeout_ms: float, scored: int, total: int) -> None:
        self.timeout_ms = timeout_ms
        self.scored = scored
        self.total = total
        super().__init__(f"Vector search exceeded {timeout_ms}ms after scoring {scored}/{total} candidates")


class NotFoundError(GroundingError, LookupError):
    """A referenced record does not exist."""


class DocumentNotFound(NotFoundError):
    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"Document {document_id} not found")


class EmbeddingError(GroundingError, RuntimeError):
    """The embedding backend could not produce vectors."""


__all__ = [
    "GroundingError",
    "DimensionMismatch",
    "SearchTimeout",
    "NotFoundError",
    "DocumentNotFound",
    "EmbeddingError",
]
