import logging
from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile

from FinDesk.core.firebase import get_bucket, get_db
from FinDesk.services.lenders.lenders import LenderNotFound, get_lender
from .documents import (
    DocumentNotFound,
    get_document,
    list_documents,
    process_lender_document,
    upload_lender_document,
)
from .documents_schema import DocumentType, ExtractResponse, LenderDocument, ProcessResult, SignedUrl
from .extract import extract_document, images_to_pdf, mime_type_for

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Documents"])


@router.post("/extraction/upload", response_model=ExtractResponse)
async def upload_and_extract(files: List[UploadFile] = File(...)):
    try:
        mime_types = [mime_type_for(file.filename or "") for file in files]
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        if len(files) == 1 and mime_types[0] == "application/pdf":
            contents = await files[0].read()
        else:
            # images are merged into one PDF
            contents = images_to_pdf([await file.read() for file in files])
        return extract_document(contents, "application/pdf")
    except Exception as e:
        logger.exception("Extraction failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/documents", response_model=LenderDocument)
async def upload_document(
    background_tasks: BackgroundTasks,
    lender_id: str = Form(...),
    type: DocumentType = Form(...),
    file: UploadFile = File(...),
    db=Depends(get_db),
    bucket=Depends(get_bucket),
):
    if not (file.filename or "").lower().endswith(".pdf"):
        raise HTTPException(status_code=400, detail="Only PDF documents are supported")
    try:
        get_lender(db, lender_id)
    except LenderNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    record = upload_lender_document(db, bucket, lender_id, file.filename, await file.read(), type)
    background_tasks.add_task(process_lender_document, db, bucket, record["id"])
    return {**record, "uploadDate": None}


@router.post("/documents/{document_id}/process", response_model=ProcessResult)
def process_document(document_id: str, db=Depends(get_db), bucket=Depends(get_bucket)):
    try:
        return process_lender_document(db, bucket, document_id)
    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/documents", response_model=List[LenderDocument])
def read_documents(lender_id: Optional[str] = None, db=Depends(get_db)):
    return list_documents(db, lender_id)


@router.get("/documents/{document_id}/url", response_model=SignedUrl)
def signed_url(document_id: str, db=Depends(get_db), bucket=Depends(get_bucket)):
    try:
        doc = get_document(db, document_id)
    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    path = doc.get("storagePath")
    if not path:
        raise HTTPException(status_code=400, detail="Document has no storage path")
    url = bucket.blob(path).generate_signed_url(expiration=timedelta(hours=1), version="v4")
    return {"url": url}
