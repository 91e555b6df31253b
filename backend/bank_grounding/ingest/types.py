"""Common ingestion data structures."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from bank_grounding.ingest.chunker import PageText


@dataclass(slots=True)
class LoadedDocument:
    """Text extracted from a filing, one entry per page or section."""

    path: Path
    pages: list[PageText]
    mime: str
    title: str | None
    size_bytes: int

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def text(self) -> str:
        return "\n\n".join(page.text for page in self.pages)


@dataclass(slots=True)
class ProcessingResult:
    """Outcome of chunking and embedding one document."""

    document_id: str
    filename: str
    page_count: int
    chunk_count: int
    success: bool = True

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "document_id": self.document_id,
            "filename": self.filename,
            "page_count": self.page_count,
            "chunk_count": self.chunk_count,
        }


__all__ = ["LoadedDocument", "ProcessingResult"]
