from __future__ import annotations

import mimetypes
import uuid

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from document_analyzer.api.deps import get_pipeline
from document_analyzer.core.config import settings
from document_analyzer.core.db import db_session
from document_analyzer.core.logging import get_logger, log_event, log_exception
from document_analyzer.core.storage import StorageError, get_storage, upload_key
from document_analyzer.modules.documents.schemas import DocumentIn, DocumentOut, ExtractResponse
from document_analyzer.modules.documents.service import (
    create_document,
    delete_document,
    get_document,
    list_documents,
    update_document,
)
from document_analyzer.modules.extraction.service import ExtractionPipeline

router = APIRouter(tags=["documents"])
logger = get_logger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "application/pdf"}


@router.post("/documents/extract", response_model=ExtractResponse)
async def extract_document(
    document: UploadFile | None = File(None),
    pipeline: ExtractionPipeline = Depends(get_pipeline),
) -> ExtractResponse:
    if document is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    content_type = (document.content_type or "").lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only JPEG, PNG and PDF files are supported",
        )

    body = await document.read()
    filename = document.filename or "upload.bin"
    log_event(
        logger,
        "upload.received",
        filename=filename,
        content_type=content_type,
        byte_size=len(body),
    )
    if not body:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty"
        )
    if len(body) > settings.upload_max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.upload_max_bytes} byte limit",
        )

    image_url: str | None = None
    try:
        stored = get_storage().put(key=upload_key(filename), body=body)
        image_url = f"/api/uploads/{stored.key}"
    except StorageError:
        log_exception(logger, "upload.store.failure", filename=filename)

    analysis = await pipeline.analyze(body)
    return ExtractResponse(
        **analysis.data.model_dump(), ocr_text=analysis.ocr_text, image_url=image_url
    )


@router.get("/documents", response_model=list[DocumentOut])
def list_documents_endpoint(session: Session = Depends(db_session)) -> list[DocumentOut]:
    docs = list_documents(session)
    return [DocumentOut.model_validate(d, from_attributes=True) for d in docs]


@router.get("/documents/{document_id}", response_model=DocumentOut)
def get_document_endpoint(
    document_id: uuid.UUID, session: Session = Depends(db_session)
) -> DocumentOut:
    doc = get_document(session, document_id=document_id)
    return DocumentOut.model_validate(doc, from_attributes=True)


@router.post("/documents", response_model=DocumentOut, status_code=status.HTTP_201_CREATED)
def create_document_endpoint(
    payload: DocumentIn, session: Session = Depends(db_session)
) -> DocumentOut:
    doc = create_document(session, fields=payload.model_dump(mode="json"))
    return DocumentOut.model_validate(doc, from_attributes=True)


@router.put("/documents/{document_id}", response_model=DocumentOut)
def update_document_endpoint(
    document_id: uuid.UUID, payload: DocumentIn, session: Session = Depends(db_session)
) -> DocumentOut:
    doc = update_document(session, document_id=document_id, fields=payload.model_dump(mode="json"))
    return DocumentOut.model_validate(doc, from_attributes=True)


@router.delete("/documents/{document_id}")
def delete_document_endpoint(
    document_id: uuid.UUID, session: Session = Depends(db_session)
) -> Response:
    delete_document(session, document_id=document_id)
    return Response(status_code=204)


@router.get("/uploads/{key:path}")
def download_upload(key: str) -> Response:
    try:
        body = get_storage().get(key=key)
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found") from e
    media_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
    return Response(content=body, media_type=media_type)
