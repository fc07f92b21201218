from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import Field

from document_analyzer.modules.extraction.schemas import (
    CamelModel,
    ExpenseCategory,
    ExtractedData,
    LineItem,
)


class DocumentIn(CamelModel):
    vendor: str = Field(min_length=1)
    document_type: str = Field(min_length=1)
    date: str = Field(min_length=1)
    document_number: str
    total_amount: str
    tax_amount: str
    line_items: list[LineItem] = Field(default_factory=list)
    notes: str | None = None
    confidence: int | None = Field(default=None, ge=0, le=100)
    category: ExpenseCategory = ExpenseCategory.OTHER
    ocr_text: str | None = None
    image_url: str | None = None


class DocumentOut(DocumentIn):
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime


class ExtractResponse(ExtractedData):
    ocr_text: str
    image_url: str | None = None
