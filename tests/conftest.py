from __future__ import annotations

import os
import shutil
import time
from pathlib import Path

import pytest

# Set env before any document_analyzer imports (settings/engine are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./.document_analyzer_test.db")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("LOCAL_STORAGE_PATH", ".tmp_storage_test")
os.environ.setdefault("OPENAI_API_KEY", "")

from document_analyzer.modules.extraction.ocr import TextRecognizer  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_db_and_storage() -> None:
    import document_analyzer.models  # noqa: F401
    from document_analyzer.core.db import engine
    from document_analyzer.core.models import Base

    import document_analyzer.core.storage as storage_mod

    storage_mod._storage = None

    storage_path = Path(os.environ["LOCAL_STORAGE_PATH"])
    if storage_path.exists():
        shutil.rmtree(storage_path)

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield


class StubRecognizer(TextRecognizer):
    """In-memory recognizer returning canned text (or raising) without Tesseract."""

    def __init__(self, text: str = "", *, error: Exception | None = None, delay: float = 0.0):
        self.text = text
        self.error = error
        self.delay = delay
        self.calls: list[tuple[bytes, str]] = []
        self.closed = False

    def recognize(self, body: bytes, mime_type: str) -> str:
        self.calls.append((body, mime_type))
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return self.text

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def stub_recognizer_factory():
    return StubRecognizer
