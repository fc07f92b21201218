from __future__ import annotations

import time
import uuid

import pytest
from fastapi.testclient import TestClient

from document_analyzer.api.deps import get_pipeline
from document_analyzer.core.config import settings
from document_analyzer.main import app
from document_analyzer.modules.documents.service import normalize_line_items
from document_analyzer.modules.extraction.ai import LanguageModelClient
from document_analyzer.modules.extraction.fallback import extract_fields_fallback
from document_analyzer.modules.extraction.ocr import PLACEHOLDER_TEXT
from document_analyzer.modules.extraction.schemas import FALLBACK_NOTES
from document_analyzer.modules.extraction.service import ExtractionPipeline

JPEG_BODY = b"\xff\xd8\xff\xe0" + b"\x00" * 64

PAYLOAD = {
    "vendor": "Office Depot",
    "documentType": "Invoice",
    "date": "2024-02-01",
    "documentNumber": "INV-100",
    "totalAmount": "25.50",
    "taxAmount": "1.50",
    "lineItems": [
        {"description": "Toner", "quantity": 2, "unitPrice": "12.00", "amount": "1.00"},
        {"description": "Pens", "quantity": "1", "unitPrice": "2.125", "amount": ""},
        {"description": "Misc", "quantity": "box", "unitPrice": "3.00", "amount": "3.00"},
    ],
    "notes": "Quarterly supplies",
    "confidence": 88,
    "category": "Office Supplies",
}


@pytest.fixture
def recognizer(stub_recognizer_factory):
    return stub_recognizer_factory("Blue Bottle Coffee\nLatte 4.50\nTotal: $4.50\nDate: 03/14/24")


@pytest.fixture
def client(recognizer):
    pipeline = ExtractionPipeline(
        recognizer=recognizer,
        llm=LanguageModelClient(api_key=None, base_url="https://llm.test/v1", model="gpt-test"),
    )
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}
    r = client.get("/healthz/storage", params={"write_test": True})
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.json()["backend"] == "local"


def test_extract_returns_record_and_stores_original(client, recognizer):
    r = client.post(
        "/api/documents/extract",
        files={"document": ("receipt.jpg", JPEG_BODY, "image/jpeg")},
    )
    assert r.status_code == 200
    body = r.json()

    assert body["vendor"] == "Blue Bottle Coffee"
    assert body["date"] == "2024-03-14"
    assert body["totalAmount"] == "4.50"
    assert body["category"] == "Food & Dining"
    assert body["notes"] == FALLBACK_NOTES
    assert body["ocrText"].startswith("Blue Bottle Coffee")
    assert recognizer.calls[0][0] == JPEG_BODY

    image_url = body["imageUrl"]
    assert image_url.startswith("/api/uploads/uploads/")
    download = client.get(image_url)
    assert download.status_code == 200
    assert download.content == JPEG_BODY
    assert download.headers["content-type"] == "image/jpeg"


def test_extract_with_unreadable_image_uses_placeholder_text(client, recognizer):
    recognizer.error = OSError("cannot identify image file")
    r = client.post(
        "/api/documents/extract",
        files={"document": ("receipt.png", b"\x89PNG\r\n\x1a\nbroken", "image/png")},
    )
    assert r.status_code == 200
    assert r.json()["ocrText"] == PLACEHOLDER_TEXT
    assert r.json()["totalAmount"] == "10.00"


def test_extract_rejects_unsupported_type(client):
    r = client.post(
        "/api/documents/extract",
        files={"document": ("anim.gif", b"GIF89a....", "image/gif")},
    )
    assert r.status_code == 400


def test_extract_rejects_missing_and_empty_files(client):
    assert client.post("/api/documents/extract").status_code == 400
    r = client.post(
        "/api/documents/extract",
        files={"document": ("empty.jpg", b"", "image/jpeg")},
    )
    assert r.status_code == 400


def test_extract_rejects_oversized_file(client, monkeypatch):
    monkeypatch.setattr(settings, "upload_max_bytes", 16)
    r = client.post(
        "/api/documents/extract",
        files={"document": ("big.jpg", JPEG_BODY, "image/jpeg")},
    )
    assert r.status_code == 413


def test_document_crud_round_trip(client):
    r = client.post("/api/documents", json={**PAYLOAD, "ocrText": "raw", "imageUrl": "/x.jpg"})
    assert r.status_code == 201
    created = r.json()
    doc_id = created["id"]
    assert created["vendor"] == "Office Depot"
    assert created["category"] == "Office Supplies"
    assert created["ocrText"] == "raw"
    assert created["createdAt"]

    amounts = [i["amount"] for i in created["lineItems"]]
    assert amounts == ["24.00", "2.13", "3.00"]

    listed = client.get("/api/documents").json()
    assert [d["id"] for d in listed] == [doc_id]

    fetched = client.get(f"/api/documents/{doc_id}").json()
    assert fetched["documentNumber"] == "INV-100"

    updated = client.put(
        f"/api/documents/{doc_id}",
        json={**PAYLOAD, "vendor": "Staples", "category": "Other", "lineItems": []},
    )
    assert updated.status_code == 200
    assert updated.json()["vendor"] == "Staples"
    assert updated.json()["category"] == "Other"
    assert updated.json()["lineItems"] == []

    assert client.delete(f"/api/documents/{doc_id}").status_code == 204
    assert client.get(f"/api/documents/{doc_id}").status_code == 404


def test_list_is_newest_first(client):
    first = client.post("/api/documents", json=PAYLOAD).json()
    time.sleep(0.01)
    second = client.post("/api/documents", json={**PAYLOAD, "vendor": "Staples"}).json()
    ids = [d["id"] for d in client.get("/api/documents").json()]
    assert ids == [second["id"], first["id"]]


def test_category_defaults_to_other(client):
    payload = {k: v for k, v in PAYLOAD.items() if k != "category"}
    r = client.post("/api/documents", json=payload)
    assert r.status_code == 201
    assert r.json()["category"] == "Other"


def test_missing_required_field_is_422_with_message(client):
    payload = {k: v for k, v in PAYLOAD.items() if k != "vendor"}
    r = client.post("/api/documents", json=payload)
    assert r.status_code == 422
    body = r.json()
    assert "vendor" in body["error"]
    assert isinstance(body["detail"], list)


def test_unknown_category_is_rejected(client):
    r = client.post("/api/documents", json={**PAYLOAD, "category": "Groceries"})
    assert r.status_code == 422


def test_unknown_document_is_404(client):
    missing = uuid.uuid4()
    assert client.get(f"/api/documents/{missing}").status_code == 404
    assert client.put(f"/api/documents/{missing}", json=PAYLOAD).status_code == 404
    assert client.delete(f"/api/documents/{missing}").status_code == 404
    assert client.get(f"/api/documents/{missing}").json()["detail"] == "Document not found"


def test_missing_upload_is_404(client):
    assert client.get("/api/uploads/uploads/nope.jpg").status_code == 404


def test_committed_fallback_record_keeps_decimal_comma_amount(client):
    data = extract_fields_fallback("Corner Store\nMilk 2,99")
    assert data.total_amount == "2,99"

    r = client.post("/api/documents", json=data.model_dump(by_alias=True, mode="json"))
    assert r.status_code == 201
    item = r.json()["lineItems"][0]
    assert item["unitPrice"] == "2,99"
    assert item["amount"] == "2.99"


def test_line_item_amounts_handle_grouped_and_comma_decimal_prices():
    items = normalize_line_items(
        [
            {"description": "Desk", "quantity": 1, "unit_price": "1,234.50", "amount": ""},
            {"description": "Tea", "quantity": "2", "unit_price": "3,10", "amount": ""},
        ]
    )
    assert [i["amount"] for i in items] == ["1234.50", "6.20"]
