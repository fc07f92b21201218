from __future__ import annotations

import time
from dataclasses import dataclass

from document_analyzer.core.config import Settings, settings
from document_analyzer.core.logging import get_logger, log_event, monotonic_ms
from document_analyzer.modules.extraction.ai import LanguageModelClient, extract_fields
from document_analyzer.modules.extraction.ocr import (
    TesseractRecognizer,
    TextRecognizer,
    extract_text,
)
from document_analyzer.modules.extraction.schemas import ExtractedData

logger = get_logger(__name__)


@dataclass(frozen=True)
class DocumentAnalysis:
    ocr_text: str
    data: ExtractedData


class ExtractionPipeline:
    """
    OCR -> language-model extraction -> categorization, one document per call.

    Holds the recognizer and model client for the process lifetime. Stages run
    sequentially and every stage absorbs its own failures, so `analyze` always
    returns a fully populated record.
    """

    def __init__(
        self,
        *,
        recognizer: TextRecognizer,
        llm: LanguageModelClient,
        ocr_timeout_seconds: float | None = None,
        ai_timeout_seconds: float | None = None,
        ai_max_chars: int = 0,
    ) -> None:
        self.recognizer = recognizer
        self.llm = llm
        self._ocr_timeout_seconds = ocr_timeout_seconds
        self._ai_timeout_seconds = ai_timeout_seconds
        self._ai_max_chars = ai_max_chars

    async def extract_text(self, body: bytes) -> str:
        return await extract_text(
            body, recognizer=self.recognizer, timeout_seconds=self._ocr_timeout_seconds
        )

    async def extract_fields(self, text: str) -> ExtractedData:
        return await extract_fields(
            text,
            client=self.llm,
            timeout_seconds=self._ai_timeout_seconds,
            max_chars=self._ai_max_chars,
        )

    async def analyze(self, body: bytes) -> DocumentAnalysis:
        start = time.monotonic()
        text = await self.extract_text(body)
        data = await self.extract_fields(text)
        log_event(
            logger,
            "pipeline.finish",
            byte_size=len(body or b""),
            confidence=data.confidence,
            category=data.category.value,
            duration_ms=monotonic_ms(start),
        )
        return DocumentAnalysis(ocr_text=text, data=data)

    async def aclose(self) -> None:
        await self.llm.aclose()
        self.recognizer.close()


def create_pipeline(config: Settings = settings) -> ExtractionPipeline:
    return ExtractionPipeline(
        recognizer=TesseractRecognizer(lang=config.tesseract_lang),
        llm=LanguageModelClient(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            model=config.openai_model,
            timeout_seconds=config.ai_timeout_seconds,
            enabled=config.ai_extraction_enabled,
        ),
        ocr_timeout_seconds=config.ocr_timeout_seconds,
        ai_timeout_seconds=config.ai_timeout_seconds,
        ai_max_chars=config.ai_max_chars,
    )
