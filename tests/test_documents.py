from types import SimpleNamespace

import pytest
import requests

from FinDesk.core.config import settings
from FinDesk.services.documents import documents, documents_route
from FinDesk.services.documents.documents import (
    DocumentNotFound,
    document_type_name,
    extract_key_points,
    parse_key_points,
    process_lender_document,
    storage_path_from_url,
    update_lender_with_document_data,
    upload_lender_document,
)
from FinDesk.services.documents.extract import form_fields_of, get_text_from_text_anchor


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.exceptions.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


def completion(content):
    return {"choices": [{"message": {"content": content}}]}


def test_document_type_name():
    assert document_type_name("ratesheet") == "Rate Sheet"
    assert document_type_name("reference") == "Quick Reference"
    assert document_type_name("brochure") == "brochure"


def test_storage_path_from_url():
    url = "https://firebasestorage.googleapis.com/v0/b/app.appspot.com/o/lender_docs%2Fchase_guidelines_1.pdf?alt=media&token=abc"
    assert storage_path_from_url(url) == "lender_docs/chase_guidelines_1.pdf"
    with pytest.raises(ValueError):
        storage_path_from_url("https://example.com/file.pdf")


def test_parse_key_points():
    content = "Key points:\n• Min score 620\n- Max LTV 120%\n* GAP allowed\n1. Rates from 5.9%\n10. Terms to 84\n-\nClosing remark"
    assert parse_key_points(content) == [
        "Min score 620",
        "Max LTV 120%",
        "GAP allowed",
        "Rates from 5.9%",
        "Terms to 84",
    ]


def test_extract_key_points_request(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")
    sent = {}

    def fake_post(url, headers, json, timeout):
        sent.update(url=url, headers=headers, json=json)
        return FakeResponse(completion("- Tier 1 at 700+\n- No salvage titles"))

    monkeypatch.setattr(documents.requests, "post", fake_post)

    points = extract_key_points("x" * 20000, "guidelines")

    assert points == ["Tier 1 at 700+", "No salvage titles"]
    assert sent["url"] == settings.openai_chat_url
    assert sent["headers"]["Authorization"] == "Bearer sk-test"
    body = sent["json"]
    assert body["model"] == settings.openai_extraction_model
    assert body["temperature"] == 0.3
    assert body["max_tokens"] == 1000
    assert "Lending Guidelines document" in body["messages"][0]["content"]
    assert len(body["messages"][1]["content"]) == 15000


def test_extract_key_points_errors(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")

    def refused(*args, **kwargs):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(documents.requests, "post", refused)
    with pytest.raises(documents.KeyPointExtractionError, match="connection error"):
        extract_key_points("text", "ratesheet")

    monkeypatch.setattr(documents.requests, "post", lambda *a, **k: FakeResponse({"unexpected": True}))
    with pytest.raises(documents.KeyPointExtractionError, match="Invalid response format"):
        extract_key_points("text", "ratesheet")


def test_update_lender_appends_notes(db):
    db.collection("lenders").document("l1").set({"name": "Chase", "notes": "Existing notes"})
    update_lender_with_document_data(db, "l1", "ratesheet", ["Tier 1 5.49%", "Tier 2 6.99%"], "R" * 3000)

    lender = db.collection("lenders").document("l1").get().to_dict()
    assert lender["rateSheetKeyPoints"] == ["Tier 1 5.49%", "Tier 2 6.99%"]
    assert len(lender["rateSheetSummary"]) == 1000
    assert lender["rateSheetLastUpdated"]
    assert lender["notes"] == (
        "Existing notes\n\nKey points from Rate Sheet (auto-extracted):\n- Tier 1 5.49%\n- Tier 2 6.99%"
    )


def test_update_lender_without_notes_field(db):
    db.collection("lenders").document("l1").set({"name": "Chase"})
    update_lender_with_document_data(db, "l1", "reference", ["Call for stips"], "text")
    lender = db.collection("lenders").document("l1").get().to_dict()
    assert lender["referenceKeyPoints"] == ["Call for stips"]
    assert "referenceDocLastUpdated" in lender
    assert "notes" not in lender

    # forms only touch notes, and there are none here
    update_lender_with_document_data(db, "l1", "forms", ["Sign page 2"], "text")
    assert db.collection("lenders").document("l1").get().to_dict() == lender

    # unknown lenders are skipped
    update_lender_with_document_data(db, "missing", "guidelines", [], "")


def test_process_document(db, bucket, monkeypatch):
    db.collection("lenders").document("l1").set({"name": "Chase", "notes": ""})
    record = upload_lender_document(db, bucket, "l1", "chase.pdf", b"%PDF-1.4", "guidelines")
    assert bucket.objects[record["storagePath"]] == b"%PDF-1.4"
    assert storage_path_from_url(record["fileUrl"]) == record["storagePath"]

    monkeypatch.setattr(documents, "extract_key_points", lambda text, doc_type: ["Min score 620"])
    seen = {}

    def extractor(content, mime_type):
        seen["content"] = content
        return {"text": "Chase guidelines text", "form_fields": []}

    result = process_lender_document(db, bucket, record["id"], extractor=extractor)

    assert result == {"success": True, "documentId": record["id"], "keyPoints": ["Min score 620"]}
    assert seen["content"] == b"%PDF-1.4"
    doc = db.collection("lenderDocuments").document(record["id"]).get().to_dict()
    assert doc["processed"] is True
    assert doc["processingStatus"] == "Processed successfully"
    assert doc["extractedContent"] == "Chase guidelines text"
    lender = db.collection("lenders").document("l1").get().to_dict()
    assert lender["guidelinesKeyPoints"] == ["Min score 620"]
    assert lender["notes"].endswith("Key points from Lending Guidelines (auto-extracted):\n- Min score 620")


def test_process_document_failure(db, bucket):
    record = upload_lender_document(db, bucket, "l1", "chase.pdf", b"%PDF", "guidelines")

    def broken(content, mime_type):
        raise RuntimeError("processor unavailable")

    result = process_lender_document(db, bucket, record["id"], extractor=broken)

    assert result["success"] is False
    assert result["error"] == "processor unavailable"
    doc = db.collection("lenderDocuments").document(record["id"]).get().to_dict()
    assert doc["processed"] is False
    assert doc["processingStatus"] == "Processing failed: processor unavailable"

    with pytest.raises(DocumentNotFound):
        process_lender_document(db, bucket, "missing")


def test_text_anchor_and_form_fields():
    text = "Name: Pat Lee"
    anchor = lambda start, end: SimpleNamespace(text_segments=[SimpleNamespace(start_index=start, end_index=end)])
    assert get_text_from_text_anchor(text, anchor(None, 4)) == "Name"
    assert get_text_from_text_anchor(text, SimpleNamespace(text_segments=[])) == ""

    field = SimpleNamespace(
        field_name=SimpleNamespace(text_anchor=anchor(0, 5)),
        field_value=SimpleNamespace(text_anchor=anchor(5, 13), confidence=0.93),
    )
    document = SimpleNamespace(text=text, pages=[SimpleNamespace(form_fields=[field])])
    assert form_fields_of(document) == [{"name": "Name:", "value": "Pat Lee", "confidence": 0.93}]


def test_upload_route_queues_processing(api, db, bucket, monkeypatch):
    db.collection("lenders").document("l1").set({"name": "Chase"})
    queued = []
    monkeypatch.setattr(documents_route, "process_lender_document", lambda *args: queued.append(args[2]))

    res = api.post(
        "/documents",
        data={"lender_id": "l1", "type": "ratesheet"},
        files={"file": ("rates.pdf", b"%PDF-1.4", "application/pdf")},
    )

    assert res.status_code == 200
    body = res.json()
    assert body["processed"] is False
    assert body["type"] == "ratesheet"
    assert queued == [body["id"]]

    listed = api.get("/documents", params={"lender_id": "l1"}).json()
    assert [d["id"] for d in listed] == [body["id"]]
    assert api.get("/documents", params={"lender_id": "other"}).json() == []

    url = api.get(f"/documents/{body['id']}/url").json()["url"]
    assert body["storagePath"] in url


def test_upload_route_rejects_bad_input(api, db):
    pdf = {"file": ("rates.pdf", b"%PDF", "application/pdf")}
    assert api.post("/documents", data={"lender_id": "nope", "type": "ratesheet"}, files=pdf).status_code == 404
    db.collection("lenders").document("l1").set({"name": "Chase"})
    txt = {"file": ("rates.txt", b"rates", "text/plain")}
    assert api.post("/documents", data={"lender_id": "l1", "type": "ratesheet"}, files=txt).status_code == 400
    assert api.post("/documents", data={"lender_id": "l1", "type": "brochure"}, files=pdf).status_code == 422
    assert api.get("/documents/missing/url").status_code == 404


def test_extraction_upload(api, monkeypatch):
    monkeypatch.setattr(
        documents_route,
        "extract_document",
        lambda content, mime_type: {"text": "APR 5.9%", "form_fields": [{"name": "APR", "value": "5.9%", "confidence": 0.9}]},
    )
    res = api.post("/extraction/upload", files=[("files", ("contract.pdf", b"%PDF", "application/pdf"))])
    assert res.status_code == 200
    assert res.json()["form_fields"][0]["value"] == "5.9%"

    res = api.post("/extraction/upload", files=[("files", ("notes.docx", b"x", "application/octet-stream"))])
    assert res.status_code == 400
