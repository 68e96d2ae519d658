import logging
import os
from functools import lru_cache
from typing import Dict, List

import img2pdf
from google.cloud import documentai
from google.oauth2 import service_account

from FinDesk.core.config import settings

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
}


@lru_cache(maxsize=1)
def get_documentai_client() -> documentai.DocumentProcessorServiceClient:
    if os.path.exists(settings.gcp_key_path):
        credentials = service_account.Credentials.from_service_account_file(settings.gcp_key_path)
        return documentai.DocumentProcessorServiceClient(credentials=credentials)
    logger.info("No Document AI key at %s, using default credentials", settings.gcp_key_path)
    return documentai.DocumentProcessorServiceClient()


def mime_type_for(filename: str) -> str:
    ext = "." + filename.lower().rsplit(".", 1)[-1]
    if ext not in MIME_TYPES:
        raise ValueError(f"Unsupported file type: {ext}. Please upload PDF, PNG, JPEG, or TIFF.")
    return MIME_TYPES[ext]


def get_text_from_text_anchor(document_text: str, text_anchor) -> str:
    if not text_anchor or not text_anchor.text_segments:
        return ""
    segment = text_anchor.text_segments[0]
    start = segment.start_index or 0
    end = segment.end_index or 0
    return document_text[start:end]


def images_to_pdf(images: List[bytes]) -> bytes:
    return img2pdf.convert(images)


def form_fields_of(document) -> List[Dict]:
    fields = []
    for page in document.pages:
        for field in page.form_fields:
            fields.append({
                "name": get_text_from_text_anchor(document.text, field.field_name.text_anchor).strip(),
                "value": get_text_from_text_anchor(document.text, field.field_value.text_anchor).strip(),
                "confidence": field.field_value.confidence,
            })
    return fields


def extract_document(content: bytes, mime_type: str = "application/pdf", client=None) -> Dict:
    """Run the Document AI processor and return the full text and form fields."""
    client = client or get_documentai_client()
    raw_doc = documentai.RawDocument(content=content, mime_type=mime_type)
    request = documentai.ProcessRequest(name=settings.processor_name, raw_document=raw_doc)
    document = client.process_document(request=request).document
    return {"text": document.text, "form_fields": form_fields_of(document)}
