from __future__ import annotations

from sqlalchemy import JSON, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from document_analyzer.core.models import Base, Timestamped, UUIDPrimaryKey


class Document(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "documents_document"

    vendor: Mapped[str] = mapped_column(String(255), index=True)
    document_type: Mapped[str] = mapped_column(String(50))
    date: Mapped[str] = mapped_column(String(10))
    document_number: Mapped[str] = mapped_column(String(100))
    total_amount: Mapped[str] = mapped_column(String(32))
    tax_amount: Mapped[str] = mapped_column(String(32))
    line_items: Mapped[list] = mapped_column(JSON, default=list)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category: Mapped[str] = mapped_column(String(50), default="Other", index=True)

    ocr_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
