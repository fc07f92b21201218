from __future__ import annotations

import random
import re
from datetime import date

from document_analyzer.modules.extraction.categorization import categorize_expense
from document_analyzer.modules.extraction.schemas import (
    FALLBACK_CONFIDENCE,
    FALLBACK_NOTES,
    UNKNOWN_VENDOR,
    ExtractedData,
    LineItem,
)

_VENDOR_SCAN_LINES = 5
_VENDOR_STOPWORDS_RE = re.compile(r"^(date|invoice|amount|total|bill|receipt)", re.I)
_DATE_RE = re.compile(r"(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})")
_TOTAL_RE = re.compile(r"total\D*(\d+[.,]\d{2})", re.I)
_AMOUNT_RE = re.compile(r"([$€£])?(\d+[.,]\d{2})")


def extract_vendor(text: str) -> str:
    for line in text.split("\n")[:_VENDOR_SCAN_LINES]:
        candidate = line.strip()
        if len(candidate) > 3 and not _VENDOR_STOPWORDS_RE.match(candidate):
            return candidate
    return UNKNOWN_VENDOR


def extract_document_type(text: str) -> str:
    return "Invoice" if "invoice" in text.lower() else "Receipt"


def extract_date(text: str, *, today: date | None = None) -> str:
    """First D/M/Y-looking date as YYYY-MM-DD, or today when none is present."""
    m = _DATE_RE.search(text)
    if not m:
        return (today or date.today()).isoformat()

    day, month, year = m.groups()
    # Month-first dates such as 03/14/24 cannot be day-first.
    if int(month) > 12 and int(day) <= 12:
        day, month = month, day
    if len(year) == 2:
        year = f"20{year}"
    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"


def extract_total_amount(text: str) -> str:
    m = _TOTAL_RE.search(text)
    if m:
        return m.group(1)
    m = _AMOUNT_RE.search(text)
    if m:
        return m.group(2)
    return "0.00"


def random_document_number() -> str:
    return f"{random.randint(0, 9999):04d}"


def extract_fields_fallback(text: str) -> ExtractedData:
    text = text or ""
    vendor = extract_vendor(text)
    total = extract_total_amount(text)
    return ExtractedData(
        vendor=vendor,
        document_type=extract_document_type(text),
        date=extract_date(text),
        document_number=random_document_number(),
        total_amount=total,
        tax_amount="0.00",
        line_items=[LineItem(description="Item", quantity=1, unit_price=total, amount=total)],
        notes=FALLBACK_NOTES,
        confidence=FALLBACK_CONFIDENCE,
        category=categorize_expense(text, vendor),
    )
