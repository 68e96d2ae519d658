"""
Lender document pipeline: upload to Storage, extract text with Document AI,
summarize into key points with a chat completion, and fold the result back
into the lender record.
"""
import logging
import re
import time
from typing import Dict, List, Optional
from urllib.parse import quote, unquote

import requests
from google.cloud.firestore_v1.base_query import FieldFilter

from FinDesk.core.config import settings
from FinDesk.core.firebase import LENDER_DOCUMENTS_COLLECTION, LENDERS_COLLECTION, SERVER_TIMESTAMP
from .extract import extract_document

logger = logging.getLogger(__name__)

DOCUMENT_TYPE_NAMES = {
    "guidelines": "Lending Guidelines",
    "ratesheet": "Rate Sheet",
    "forms": "Application Forms",
    "reference": "Quick Reference",
}

# lender fields written per document type: (last updated, key points, summary)
LENDER_FIELDS = {
    "guidelines": ("guidelinesLastUpdated", "guidelinesKeyPoints", "guidelinesSummary"),
    "ratesheet": ("rateSheetLastUpdated", "rateSheetKeyPoints", "rateSheetSummary"),
    "reference": ("referenceDocLastUpdated", "referenceKeyPoints", "referenceSummary"),
}

MAX_EXTRACTION_CHARS = 15000
SUMMARY_CHARS = 1000

BULLET_LINE = re.compile(r"^(?:[•\-*]|\d+\.)")
BULLET_MARKER = re.compile(r"^(?:[•\-*]|\d+\.)\s*")

KEY_POINTS_PROMPT = """You are an expert in automotive finance. Extract the key points from the following {type_name} document.
Focus on:
1. Credit score requirements
2. Interest rates for different tiers
3. Special programs or promotions
4. Vehicle restrictions (age, mileage)
5. Maximum loan amounts
6. Documentation requirements
7. Backend profit opportunities

Return only a list of 5-10 concise bullet points with the most important information."""


class DocumentNotFound(LookupError):
    pass


class KeyPointExtractionError(RuntimeError):
    pass


def document_type_name(doc_type: str) -> str:
    return DOCUMENT_TYPE_NAMES.get(doc_type, doc_type)


def storage_path_from_url(file_url: str) -> str:
    """Object path inside a Firebase Storage download URL."""
    if "/o/" not in file_url:
        raise ValueError("Invalid file URL")
    path = file_url.split("/o/", 1)[1].split("?", 1)[0]
    if not path:
        raise ValueError("Invalid file URL")
    return unquote(path)


def download_url(bucket_name: str, path: str) -> str:
    return f"https://firebasestorage.googleapis.com/v0/b/{bucket_name}/o/{quote(path, safe='')}?alt=media"


def parse_key_points(content: str) -> List[str]:
    points = []
    for line in content.split("\n"):
        line = line.strip()
        if not BULLET_LINE.match(line):
            continue
        point = BULLET_MARKER.sub("", line).strip()
        if point:
            points.append(point)
    return points


def extract_key_points(text: str, doc_type: str) -> List[str]:
    if not settings.openai_api_key:
        raise KeyPointExtractionError("OPENAI_API_KEY not set")

    payload = {
        "model": settings.openai_extraction_model,
        "messages": [
            {"role": "system", "content": KEY_POINTS_PROMPT.format(type_name=document_type_name(doc_type))},
            {"role": "user", "content": text[:MAX_EXTRACTION_CHARS]},
        ],
        "temperature": 0.3,
        "max_tokens": 1000,
    }
    headers = {
        "Authorization": f"Bearer {settings.openai_api_key}",
        "Content-Type": "application/json",
    }

    try:
        resp = requests.post(settings.openai_chat_url, headers=headers, json=payload, timeout=60)
        resp.raise_for_status()
        content = resp.json()["choices"][0]["message"]["content"]
    except requests.exceptions.RequestException as e:
        raise KeyPointExtractionError(f"OpenAI API connection error: {e}")
    except (KeyError, IndexError, ValueError):
        raise KeyPointExtractionError("Invalid response format from OpenAI API")

    return parse_key_points(content)


def upload_lender_document(db, bucket, lender_id: str, filename: str, content: bytes, doc_type: str) -> Dict:
    ext = filename.rsplit(".", 1)[-1] if "." in filename else "pdf"
    path = f"lender_docs/{lender_id}_{doc_type}_{int(time.time() * 1000)}.{ext}"

    blob = bucket.blob(path)
    blob.metadata = {"lenderId": lender_id, "documentType": doc_type}
    blob.upload_from_string(content, content_type="application/pdf")

    record = {
        "fileName": filename,
        "type": doc_type,
        "lenderId": lender_id,
        "uploadDate": SERVER_TIMESTAMP,
        "fileUrl": download_url(bucket.name, path),
        "storagePath": path,
        "processed": False,
        "processingStatus": "Uploading document",
    }
    _, ref = db.collection(LENDER_DOCUMENTS_COLLECTION).add(record)
    logger.info("Uploaded %s for lender %s as document %s", filename, lender_id, ref.id)
    return {"id": ref.id, **record}


def get_document(db, document_id: str) -> Dict:
    snap = db.collection(LENDER_DOCUMENTS_COLLECTION).document(document_id).get()
    if not snap.exists:
        raise DocumentNotFound(f"Document not found: {document_id}")
    return {"id": snap.id, **snap.to_dict()}


def list_documents(db, lender_id: Optional[str] = None) -> List[Dict]:
    query = db.collection(LENDER_DOCUMENTS_COLLECTION)
    if lender_id:
        query = query.where(filter=FieldFilter("lenderId", "==", lender_id))
    return [{"id": snap.id, **snap.to_dict()} for snap in query.stream()]


def update_lender_with_document_data(db, lender_id: str, doc_type: str, key_points: List[str], text: str):
    ref = db.collection(LENDERS_COLLECTION).document(lender_id)
    snap = ref.get()
    if not snap.exists:
        logger.warning("Lender %s not found, skipping document data", lender_id)
        return

    lender = snap.to_dict()
    update = {}
    if doc_type in LENDER_FIELDS:
        updated_field, points_field, summary_field = LENDER_FIELDS[doc_type]
        update = {
            updated_field: SERVER_TIMESTAMP,
            points_field: key_points,
            summary_field: text[:SUMMARY_CHARS],
        }

    if "notes" in lender:
        bullets = "\n".join(f"- {point}" for point in key_points)
        update["notes"] = (
            f"{lender['notes'] or ''}\n\nKey points from {document_type_name(doc_type)} (auto-extracted):\n{bullets}"
        )

    if update:
        ref.update(update)
        logger.info("Lender %s updated with %s data", lender_id, doc_type)


def process_lender_document(db, bucket, document_id: str, extractor=extract_document) -> Dict:
    ref = db.collection(LENDER_DOCUMENTS_COLLECTION).document(document_id)
    snap = ref.get()
    if not snap.exists:
        raise DocumentNotFound(f"Document not found: {document_id}")

    doc = snap.to_dict()
    logger.info("Processing document %s: %s for lender %s", document_id, doc.get("fileName"), doc.get("lenderId"))
    ref.update({"processingStatus": "Processing started"})

    try:
        path = doc.get("storagePath") or storage_path_from_url(doc.get("fileUrl") or "")
        content = bucket.blob(path).download_as_bytes()

        text = extractor(content, "application/pdf")["text"]
        key_points = extract_key_points(text, doc["type"])
        logger.info("Extracted %d key points for %s", len(key_points), document_id)

        ref.update({
            "processed": True,
            "processingStatus": "Processed successfully",
            "processedDate": SERVER_TIMESTAMP,
            "extractedContent": text,
            "keyPoints": key_points,
        })
        update_lender_with_document_data(db, doc["lenderId"], doc["type"], key_points, text)
    except Exception as e:
        logger.exception("Error processing document %s", document_id)
        ref.update({
            "processed": False,
            "processingStatus": f"Processing failed: {e}",
            "processedDate": SERVER_TIMESTAMP,
        })
        return {"success": False, "documentId": document_id, "error": str(e)}

    logger.info("Document %s processed successfully", document_id)
    return {"success": True, "documentId": document_id, "keyPoints": key_points}
