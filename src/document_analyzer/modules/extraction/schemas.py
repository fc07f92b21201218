from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ExpenseCategory(str, enum.Enum):
    FOOD_AND_DINING = "Food & Dining"
    TRAVEL = "Travel"
    OFFICE_SUPPLIES = "Office Supplies"
    UTILITIES = "Utilities"
    TECHNOLOGY = "Technology"
    ENTERTAINMENT = "Entertainment"
    MEDICAL = "Medical"
    OTHER = "Other"


DOCUMENT_TYPES: tuple[str, ...] = ("Invoice", "Receipt", "Purchase Order", "Bill", "Other")

FALLBACK_CONFIDENCE = 30
FALLBACK_NOTES = "Extracted using fallback mode. Please review and correct data as needed."
UNKNOWN_VENDOR = "Unknown Vendor"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LineItem(CamelModel):
    description: str = ""
    quantity: int | float | str = 1
    unit_price: str = ""
    amount: str = ""


class ExtractedData(CamelModel):
    """Canonical record produced by the extraction pipeline."""

    vendor: str = ""
    document_type: str = "Invoice"
    date: str = ""
    document_number: str = ""
    total_amount: str = ""
    tax_amount: str = ""
    line_items: list[LineItem] = Field(default_factory=list)
    notes: str = ""
    confidence: int = Field(default=0, ge=0, le=100)
    category: ExpenseCategory = ExpenseCategory.OTHER
