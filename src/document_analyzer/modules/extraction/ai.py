from __future__ import annotations

import asyncio
import json
import time
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from document_analyzer.core.logging import get_logger, log_event, log_exception, monotonic_ms
from document_analyzer.modules.extraction.categorization import categorize_expense
from document_analyzer.modules.extraction.fallback import extract_fields_fallback
from document_analyzer.modules.extraction.schemas import ExtractedData, LineItem

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are an AI document analyzer specializing in extracting structured data from "
    "receipts, invoices, and other financial documents.\n"
    "Extract all relevant information and format it as a JSON object. "
    "Be precise and thorough."
)

_FIELD_INSTRUCTIONS = (
    "- vendor: Company or vendor name\n"
    "- documentType: Type of document (Invoice, Receipt, Purchase Order, Bill, Other)\n"
    "- date: Document date in YYYY-MM-DD format\n"
    "- documentNumber: Invoice/receipt number or identifier\n"
    "- totalAmount: Total amount (numeric, don't include currency symbol in the value)\n"
    "- taxAmount: Tax amount if present (numeric, don't include currency symbol)\n"
    "- lineItems: Array of items with properties: description, quantity (numeric), "
    "unitPrice (numeric), amount (numeric)\n"
    "- notes: Any notes or additional information\n"
    "- confidence: Your confidence score (0-100) in the extraction accuracy\n"
)


class LanguageModelError(RuntimeError):
    pass


class LanguageModelClient:
    """
    Chat-completions client for an OpenAI-compatible API.

    Owns one pooled httpx.AsyncClient; build it once at startup and call
    `aclose()` on shutdown.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str,
        model: str,
        timeout_seconds: float = 30.0,
        enabled: bool = True,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._url = base_url.rstrip("/") + "/chat/completions"
        self.model = model
        self._enabled = enabled
        self._http = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    @property
    def available(self) -> bool:
        return bool(self._enabled and self._api_key)

    async def complete_json(self, *, system: str, user: str) -> str:
        if not self.available:
            raise LanguageModelError("Language model is not configured")

        payload = {
            "model": self.model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        resp = await self._http.post(self._url, headers=headers, json=payload)
        resp.raise_for_status()

        try:
            msg = resp.json()["choices"][0]["message"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LanguageModelError("Malformed chat completion response") from e
        if not isinstance(msg, dict) or msg.get("refusal"):
            raise LanguageModelError("Model refused the request")
        content = msg.get("content")
        if not isinstance(content, str) or not content.strip():
            raise LanguageModelError("Empty completion content")
        return content

    async def aclose(self) -> None:
        await self._http.aclose()


def build_user_prompt(text: str, *, max_chars: int = 0) -> str:
    return (
        "Extract the following information from this document text and return it as a "
        "JSON object:\n"
        + _FIELD_INSTRUCTIONS
        + "\nHere's the document text:\n"
        + _truncate_text(text, max_chars=max_chars)
        + "\n\nReturn ONLY a valid JSON object with these fields, no explanation or other text."
    )


def _truncate_text(text: str, *, max_chars: int) -> str:
    t = (text or "").replace("\u202f", " ").replace("\xa0", " ").strip()
    if max_chars <= 0 or len(t) <= max_chars:
        return t
    return t[: max(0, max_chars - 20)].rstrip() + "\n\n[TRUNCATED]"


def _as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip() or default
    return str(value)


def _as_amount(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        try:
            return str(Decimal(str(value)).quantize(Decimal("0.01")))
        except InvalidOperation:
            return ""
    return str(value).strip()


def _as_confidence(value: Any) -> int:
    try:
        conf = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, min(100, conf))


def _as_quantity(value: Any) -> int | float | str:
    if value is None or value == "" or isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        return value
    return str(value).strip() or 1


def _normalize_line_items(raw: Any) -> list[LineItem]:
    if not isinstance(raw, list):
        return []
    items: list[LineItem] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        items.append(
            LineItem(
                description=_as_text(entry.get("description")),
                quantity=_as_quantity(entry.get("quantity")),
                unit_price=_as_amount(entry.get("unitPrice")),
                amount=_as_amount(entry.get("amount")),
            )
        )
    return items


def normalize_extracted_fields(obj: Any) -> dict[str, Any]:
    """Coerce a model JSON object into canonical field values (category excluded)."""
    if not isinstance(obj, dict):
        raise ValueError(f"Expected a JSON object, got {type(obj).__name__}")
    return {
        "vendor": _as_text(obj.get("vendor")),
        "document_type": _as_text(obj.get("documentType"), default="Invoice"),
        "date": _as_text(obj.get("date")),
        "document_number": _as_text(obj.get("documentNumber")),
        "total_amount": _as_amount(obj.get("totalAmount")),
        "tax_amount": _as_amount(obj.get("taxAmount")),
        "line_items": _normalize_line_items(obj.get("lineItems")),
        "notes": _as_text(obj.get("notes")),
        "confidence": _as_confidence(obj.get("confidence")),
    }


async def extract_fields(
    text: str,
    *,
    client: LanguageModelClient,
    timeout_seconds: float | None = None,
    max_chars: int = 0,
) -> ExtractedData:
    """
    Structured field extraction through the language model.

    Any failure (unconfigured client, transport, HTTP status, timeout, non-JSON or
    non-object reply) is logged and answered with the heuristic fallback record
    for the same text.
    """
    start = time.monotonic()
    try:
        content = await asyncio.wait_for(
            client.complete_json(
                system=SYSTEM_PROMPT, user=build_user_prompt(text, max_chars=max_chars)
            ),
            timeout=timeout_seconds,
        )
        fields = normalize_extracted_fields(json.loads(content))
        data = ExtractedData(**fields, category=categorize_expense(text, fields["vendor"]))
    except Exception:
        log_exception(
            logger,
            "ai.extract.fallback",
            model=client.model,
            configured=client.available,
            duration_ms=monotonic_ms(start),
        )
        return extract_fields_fallback(text)

    log_event(
        logger,
        "ai.extract.success",
        model=client.model,
        confidence=data.confidence,
        line_items=len(data.line_items),
        category=data.category.value,
        duration_ms=monotonic_ms(start),
    )
    return data
