"""Document processing pipeline."""

from __future__ import annotations

import shutil
import time
from pathlib import Path
from typing import Any, Sequence

from bank_grounding.core.config import Settings
from bank_grounding.core.logging import get_logger
from bank_grounding.core.metrics import INDEX_SIZE, PROCESSING_DURATION
from bank_grounding.db.chunks import ChunkStore
from bank_grounding.db.documents import DocumentStore
from bank_grounding.ingest.chunker import split_pages
from bank_grounding.ingest.embeddings import EmbeddingModel
from bank_grounding.ingest.loaders import LoaderRegistry
from bank_grounding.ingest.tagging import suggest_tags
from bank_grounding.ingest.types import ProcessingResult
from bank_grounding.models.entities import ChunkRecord, GroundingDocument
from bank_grounding.utils.identity import new_id, sha256_file

logger = get_logger(__name__)

BANK_DEFAULT_TOPICS = ("strategy", "general")
BANK_DEFAULT_BANK_TYPES = ("all",)


class GroundingPipeline:
    """Coordinate loading, chunking, embedding, and chunk persistence."""

    def __init__(
        self,
        documents: DocumentStore,
        chunks: ChunkStore,
        settings: Settings,
        embedding_model: EmbeddingModel,
    ) -> None:
        self.documents = documents
        self.chunks = chunks
        self.settings = settings
        self.embedding_model = embedding_model
        self.loader_registry = LoaderRegistry()

    def register_document(
        self,
        path: Path,
        title: str | None = None,
        topics: Sequence[str] | None = None,
        bank_types: Sequence[str] | None = None,
        asset_size_range: str | None = None,
        idrssd: str | None = None,
    ) -> GroundingDocument:
        """Store a copy of ``path`` and create a pending document for it.

        Missing topics or bank types are filled in from keyword suggestions.
        """
        source = path.expanduser().resolve()
        if not source.is_file():
            raise FileNotFoundError(f"No such file: {source}")
        if not self.loader_registry.supports(source):
            raise ValueError(f"Unsupported file type {source.suffix!r}")

        if not topics or not bank_types:
            suggestion = suggest_tags(self.loader_registry.load(source).text)
            topics = topics or suggestion.topics
            bank_types = bank_types or suggestion.bank_types
            asset_size_range = asset_size_range or suggestion.asset_size_range

        stored = self._store_file(source)
        document = self.documents.create(
            filename=source.name,
            title=title or source.stem,
            file_path=str(stored),
            file_size=stored.stat().st_size,
            sha256=sha256_file(stored),
            idrssd=idrssd,
            topics=topics,
            bank_types=bank_types,
            asset_size_range=asset_size_range or "all",
        )
        logger.info("Registered document %s (%s)", document.id, document.filename, extra={"ctx_document_id": document.id})
        return document

    def process_document(self, document_id: str) -> ProcessingResult:
        """Load, split, embed and store the chunks of one document.

        The document's previous chunks, if any, are swapped for the new ones
        in a single transaction. On failure the document is marked failed
        with the error message and the exception propagates.
        """
        document = self.documents.get(document_id)
        started = time.perf_counter()
        self.documents.set_status(document_id, "processing")
        logger.info("Processing %s", document.filename, extra={"ctx_document_id": document_id})
        try:
            if not document.file_path:
                raise FileNotFoundError(f"Document {document_id} has no stored file")
            loaded = self.loader_registry.load(Path(document.file_path))
            logger.info("Loaded %s pages/sections from %s", loaded.page_count, document.filename)

            pieces = split_pages(
                loaded.pages,
                chunk_size=self.settings.chunk_size,
                chunk_overlap=self.settings.chunk_overlap,
            )
            logger.info("Created %s chunks for %s", len(pieces), document.filename)
            if not pieces:
                logger.warning("Document %s produced no chunks", document.filename)

            vectors: list[list[float]] = []
            if pieces:
                vectors = self.embedding_model.encode([piece.content for piece in pieces], input_type="document").vectors
            records = [
                ChunkRecord(content=piece.content, chunk_index=index, embedding=vectors[index], page_number=piece.page_number)
                for index, piece in enumerate(pieces)
            ]

            # reread so chunks copy metadata edited while we were embedding
            current = self.documents.get(document_id)
            self.chunks.replace_document_chunks(current, records)
            self.documents.set_status(
                document_id,
                "completed",
                chunk_count=len(records),
                page_count=loaded.page_count,
            )
        except Exception as exc:
            logger.exception("Processing failed for %s: %s", document.filename, exc)
            self.documents.set_status(document_id, "failed", error=str(exc))
            PROCESSING_DURATION.labels(status="failed").observe(time.perf_counter() - started)
            raise
        PROCESSING_DURATION.labels(status="completed").observe(time.perf_counter() - started)
        self._update_index_metric()
        logger.info("Processing completed for %s", document.filename, extra={"ctx_chunk_count": len(records)})
        return ProcessingResult(
            document_id=document_id,
            filename=document.filename,
            page_count=loaded.page_count,
            chunk_count=len(records),
        )

    def reprocess_document(self, document_id: str) -> ProcessingResult:
        """Regenerate a document's chunks.

        Old chunks stay searchable until the replacement set commits.
        """
        self.documents.set_status(document_id, "pending")
        return self.process_document(document_id)

    def update_metadata(self, document_id: str, updates: dict[str, Any]) -> GroundingDocument:
        """Edit document tags and copy them onto every chunk."""
        changes = {key: value for key, value in updates.items() if value is not None}
        document = self.documents.update_metadata(document_id, changes)
        synced = self.chunks.sync_document_metadata(document)
        logger.info("Updated metadata for %s (%s chunks)", document.filename, synced)
        return document

    def delete_document(self, document_id: str) -> int:
        """Remove a document, its chunks, and its stored file."""
        document = self.documents.get(document_id)
        deleted = self.chunks.delete_for_document(document_id)
        self.documents.delete(document_id)
        self._remove_file(document)
        self._update_index_metric()
        logger.info("Deleted document %s and %s chunks", document.filename, deleted)
        return deleted

    def wipe(self) -> dict[str, int]:
        chunks = self.chunks.delete_all()
        documents = self.documents.list_documents()
        for document in documents:
            self._remove_file(document)
        removed = self.documents.wipe()
        self._update_index_metric()
        logger.warning("Wiped grounding store: %s documents, %s chunks", removed, chunks)
        return {"documents": removed, "chunks": chunks}

    # Bank-specific documents -------------------------------------------

    def process_bank_file(self, idrssd: str, path: Path) -> ProcessingResult:
        """Ground a bank's own filing, reusing its record when re-uploaded."""
        document = self.documents.find_by_bank_filename(idrssd, path.name)
        if document is None:
            document = self.register_document(
                path,
                title=path.stem,
                topics=BANK_DEFAULT_TOPICS,
                bank_types=BANK_DEFAULT_BANK_TYPES,
                asset_size_range="all",
                idrssd=idrssd,
            )
        return self.process_document(document.id)

    def bank_documents(self, idrssd: str) -> list[GroundingDocument]:
        return self.documents.list_documents(status="completed", idrssd=idrssd)

    def has_bank_documents(self, idrssd: str) -> bool:
        return bool(self.bank_documents(idrssd))

    def bank_stats(self, idrssd: str) -> dict[str, Any]:
        documents = self.documents.list_documents(idrssd=idrssd)
        by_status = {status: 0 for status in ("completed", "processing", "pending", "failed")}
        for document in documents:
            by_status[document.processing_status] += 1
        return {
            "total_documents": len(documents),
            "completed_documents": by_status["completed"],
            "processing_documents": by_status["processing"],
            "pending_documents": by_status["pending"],
            "failed_documents": by_status["failed"],
            "total_chunks": self.chunks.count(idrssd=idrssd),
            "total_size": sum(document.file_size or 0 for document in documents),
            "documents": [
                {
                    "id": document.id,
                    "title": document.title,
                    "filename": document.filename,
                    "status": document.processing_status,
                    "chunk_count": document.chunk_count,
                    "file_size": document.file_size,
                    "created_at": document.created_at,
                    "error": document.processing_error,
                }
                for document in documents
            ],
        }

    def delete_bank_document(self, idrssd: str, filename: str) -> dict[str, Any] | None:
        document = self.documents.find_by_bank_filename(idrssd, filename)
        if document is None:
            logger.info("No grounding document found for %s/%s", idrssd, filename)
            return None
        deleted = self.delete_document(document.id)
        return {"document_id": document.id, "chunks_deleted": deleted}

    # Internal helpers ----------------------------------------------------

    def _store_file(self, source: Path) -> Path:
        target_dir = self.settings.files_dir
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / f"{new_id('file')}_{source.name}"
        shutil.copy2(source, target)
        return target

    def _remove_file(self, document: GroundingDocument) -> None:
        if not document.file_path:
            return
        try:
            Path(document.file_path).unlink()
        except FileNotFoundError:
            logger.warning("Stored file for %s already removed", document.id)
        except OSError as exc:
            logger.error("Error deleting file for %s: %s", document.id, exc)

    def _update_index_metric(self) -> None:
        INDEX_SIZE.set(self.chunks.count())


__all__ = ["GroundingPipeline", "BANK_DEFAULT_TOPICS", "BANK_DEFAULT_BANK_TYPES"]
