"""Document management routes."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from pydantic import ValidationError

from bank_grounding.api.dependencies import get_chunk_store, get_document_store, get_pipeline
from bank_grounding.core.errors import DocumentNotFound, EmbeddingError, GroundingError
from bank_grounding.core.logging import get_logger
from bank_grounding.db.chunks import ChunkStore
from bank_grounding.db.documents import DocumentStore
from bank_grounding.ingest.pipeline import GroundingPipeline
from bank_grounding.models.dto import (
    ChunkUsageStats,
    DeleteResponse,
    DocumentCreateRequest,
    DocumentDetailResponse,
    DocumentResponse,
    DocumentUpdateRequest,
    ProcessingResponse,
)
from bank_grounding.models.entities import GroundingDocument

logger = get_logger(__name__)

router = APIRouter()


def process_in_background(pipeline: GroundingPipeline, document_id: str) -> None:
    # failures are already recorded on the document as status=failed
    try:
        pipeline.process_document(document_id)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Background processing of %s failed: %s", document_id, exc)


@router.post("", response_model=DocumentResponse, status_code=201, summary="Register a filing by path")
def create_document(
    request: DocumentCreateRequest,
    background_tasks: BackgroundTasks,
    pipeline: GroundingPipeline = Depends(get_pipeline),
) -> DocumentResponse:
    try:
        document = pipeline.register_document(
            Path(request.path),
            title=request.title,
            topics=request.topics,
            bank_types=request.bank_types,
            asset_size_range=request.asset_size_range,
            idrssd=request.idrssd,
        )
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if request.process:
        background_tasks.add_task(process_in_background, pipeline, document.id)
    return _to_response(document)


@router.post("/upload", response_model=DocumentResponse, status_code=201, summary="Upload a filing")
def upload_document(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    topics: Optional[str] = Form(None, description="Comma separated topics"),
    bank_types: Optional[str] = Form(None, description="Comma separated bank types"),
    asset_size_range: Optional[str] = Form(None),
    idrssd: Optional[str] = Form(None),
    pipeline: GroundingPipeline = Depends(get_pipeline),
) -> DocumentResponse:
    if not file.filename:
        raise HTTPException(status_code=400, detail="Filename is required")
    filename = Path(file.filename).name
    if not pipeline.loader_registry.supports(Path(filename)):
        raise HTTPException(status_code=400, detail=f"File type '{Path(filename).suffix}' not supported")

    try:
        metadata = DocumentCreateRequest(
            path=filename,
            title=title,
            topics=_split_form_list(topics),
            bank_types=_split_form_list(bank_types),
            asset_size_range=asset_size_range or None,
            idrssd=idrssd or None,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc

    # register_document copies the file into the store, so the upload only needs a scratch dir
    with tempfile.TemporaryDirectory(prefix="bgr_upload_") as scratch:
        target = Path(scratch) / filename
        with target.open("wb") as handle:
            shutil.copyfileobj(file.file, handle)
        try:
            document = pipeline.register_document(
                target,
                title=metadata.title,
                topics=metadata.topics,
                bank_types=metadata.bank_types,
                asset_size_range=metadata.asset_size_range,
                idrssd=metadata.idrssd,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.info("Uploaded %s as %s", filename, document.id)
    background_tasks.add_task(process_in_background, pipeline, document.id)
    return _to_response(document)


@router.get("", response_model=list[DocumentResponse], summary="List documents")
def list_documents(
    status: Optional[str] = None,
    topic: Optional[str] = None,
    bank_type: Optional[str] = None,
    idrssd: Optional[str] = None,
    documents: DocumentStore = Depends(get_document_store),
) -> list[DocumentResponse]:
    rows = documents.list_documents(status=status, topic=topic, bank_type=bank_type, idrssd=idrssd)
    return [_to_response(document) for document in rows]


@router.get("/{document_id}", response_model=DocumentDetailResponse, summary="Document with chunk usage")
def get_document(
    document_id: str,
    documents: DocumentStore = Depends(get_document_store),
    chunks: ChunkStore = Depends(get_chunk_store),
) -> DocumentDetailResponse:
    document = _get_or_404(documents, document_id)
    stats = chunks.usage_stats(document_id=document_id)
    return DocumentDetailResponse(document=_to_response(document), stats=ChunkUsageStats(**stats))


@router.put("/{document_id}", response_model=DocumentResponse, summary="Update document metadata")
def update_document(
    document_id: str,
    request: DocumentUpdateRequest,
    pipeline: GroundingPipeline = Depends(get_pipeline),
) -> DocumentResponse:
    try:
        document = pipeline.update_metadata(document_id, request.model_dump(exclude_unset=True))
    except DocumentNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _to_response(document)


@router.delete("/{document_id}", response_model=DeleteResponse, summary="Delete a document and its chunks")
def delete_document(document_id: str, pipeline: GroundingPipeline = Depends(get_pipeline)) -> DeleteResponse:
    try:
        deleted = pipeline.delete_document(document_id)
    except DocumentNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return DeleteResponse(chunks_deleted=deleted)


@router.post("/{document_id}/reprocess", response_model=ProcessingResponse, summary="Re-chunk and re-embed")
def reprocess_document(document_id: str, pipeline: GroundingPipeline = Depends(get_pipeline)) -> ProcessingResponse:
    try:
        result = pipeline.reprocess_document(document_id)
    except DocumentNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except EmbeddingError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except (GroundingError, OSError, ValueError) as exc:
        raise HTTPException(status_code=500, detail=f"Processing failed: {exc}") from exc
    return ProcessingResponse(**result.to_dict())


@router.get("/{document_id}/view", summary="Stream the stored file")
def view_document(document_id: str, documents: DocumentStore = Depends(get_document_store)) -> FileResponse:
    document = _get_or_404(documents, document_id)
    if not document.file_path or not Path(document.file_path).is_file():
        raise HTTPException(status_code=404, detail="Stored file not found")
    media_type = "application/pdf" if document.filename.lower().endswith(".pdf") else None
    return FileResponse(
        document.file_path,
        media_type=media_type,
        filename=document.filename,
        content_disposition_type="inline",
    )


def _get_or_404(documents: DocumentStore, document_id: str) -> GroundingDocument:
    try:
        return documents.get(document_id)
    except DocumentNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _split_form_list(raw: Optional[str]) -> list[str] | None:
    if not raw:
        return None
    values = [item.strip() for item in raw.split(",") if item.strip()]
    return values or None


def _to_response(document: GroundingDocument) -> DocumentResponse:
    return DocumentResponse(
        id=document.id,
        filename=document.filename,
        title=document.title,
        idrssd=document.idrssd,
        file_size=document.file_size,
        page_count=document.page_count,
        topics=document.topics,
        bank_types=document.bank_types,
        asset_size_range=document.asset_size_range,
        processing_status=document.processing_status,
        processing_error=document.processing_error,
        chunk_count=document.chunk_count,
        times_retrieved=document.times_retrieved,
        created_at=document.created_at,
        updated_at=document.updated_at,
    )


__all__ = ["router"]
