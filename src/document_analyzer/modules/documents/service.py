from __future__ import annotations

import re
import uuid
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from document_analyzer.core.logging import get_logger, log_event, log_exception
from document_analyzer.modules.documents.models import Document

logger = get_logger(__name__)

_CENT = Decimal("0.01")
_DECIMAL_COMMA_RE = re.compile(r"-?\d+,\d{2}")

EDITABLE_FIELDS = (
    "vendor",
    "document_type",
    "date",
    "document_number",
    "total_amount",
    "tax_amount",
    "line_items",
    "notes",
    "confidence",
    "category",
    "ocr_text",
    "image_url",
)


def _unavailable(event: str, **fields: Any) -> HTTPException:
    log_exception(logger, event, **fields)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Document storage unavailable"
    )


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    raw = str(value).strip()
    if _DECIMAL_COMMA_RE.fullmatch(raw):
        raw = raw.replace(",", ".")
    else:
        raw = raw.replace(",", "")
    if not raw:
        return None
    try:
        parsed = Decimal(raw)
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def normalize_line_items(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Recompute `amount` as quantity * unit price wherever both are numeric."""
    out: list[dict[str, Any]] = []
    for item in items or []:
        item = dict(item)
        qty = _to_decimal(item.get("quantity"))
        price = _to_decimal(item.get("unit_price"))
        if qty is not None and price is not None:
            item["amount"] = str((qty * price).quantize(_CENT, rounding=ROUND_HALF_UP))
        out.append(item)
    return out


def list_documents(session: Session) -> list[Document]:
    try:
        return list(session.scalars(select(Document).order_by(Document.created_at.desc())))
    except SQLAlchemyError as e:
        raise _unavailable("documents.list.failure") from e


def get_document(session: Session, *, document_id: uuid.UUID) -> Document:
    try:
        doc = session.scalar(select(Document).where(Document.id == document_id))
    except SQLAlchemyError as e:
        raise _unavailable("documents.get.failure", document_id=str(document_id)) from e
    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return doc


def create_document(session: Session, *, fields: dict[str, Any]) -> Document:
    values = {k: fields[k] for k in EDITABLE_FIELDS if k in fields}
    values["line_items"] = normalize_line_items(values.get("line_items") or [])
    doc = Document(**values)
    try:
        session.add(doc)
        session.commit()
        session.refresh(doc)
    except SQLAlchemyError as e:
        session.rollback()
        raise _unavailable("documents.create.failure") from e
    log_event(
        logger,
        "documents.created",
        document_id=str(doc.id),
        category=doc.category,
        line_items=len(doc.line_items or []),
    )
    return doc


def update_document(
    session: Session, *, document_id: uuid.UUID, fields: dict[str, Any]
) -> Document:
    doc = get_document(session, document_id=document_id)
    for key in EDITABLE_FIELDS:
        if key == "line_items":
            doc.line_items = normalize_line_items(fields.get("line_items") or [])
        else:
            setattr(doc, key, fields.get(key))
    try:
        session.add(doc)
        session.commit()
        session.refresh(doc)
    except SQLAlchemyError as e:
        session.rollback()
        raise _unavailable("documents.update.failure", document_id=str(document_id)) from e
    log_event(logger, "documents.updated", document_id=str(doc.id), category=doc.category)
    return doc


def delete_document(session: Session, *, document_id: uuid.UUID) -> None:
    doc = get_document(session, document_id=document_id)
    try:
        session.delete(doc)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise _unavailable("documents.delete.failure", document_id=str(document_id)) from e
    log_event(logger, "documents.deleted", document_id=str(document_id))
