from typing import List

from fastapi import APIRouter, Depends, HTTPException

from FinDesk.core.config import settings
from FinDesk.core.firebase import get_db
from FinDesk.core.openai_client import get_openai_client
from FinDesk.services.lenders.lenders import LenderNotFound, get_lender
from .vector_store import list_vector_stores, upload_lender_data, upload_lender_notes
from .vector_store_schema import FileAssociation, LenderNotesRequest, SyncRequest, VectorStoreRef

router = APIRouter(prefix="/vector-store", tags=["Vector Store"])


@router.get("", response_model=List[VectorStoreRef])
def stores(user_id: str, db=Depends(get_db)):
    return list_vector_stores(db, user_id)


@router.post("/lenders/sync", response_model=FileAssociation)
def sync_lenders(body: SyncRequest, db=Depends(get_db), client=Depends(get_openai_client)):
    result = upload_lender_data(db, client, body.userId)
    result.setdefault("vectorStoreId", settings.terrance_vector_store_id)
    return result


@router.post("/lenders/{lender_id}/notes", response_model=FileAssociation)
def upload_notes(
    lender_id: str,
    body: LenderNotesRequest,
    db=Depends(get_db),
    client=Depends(get_openai_client),
):
    try:
        lender = get_lender(db, lender_id)
    except LenderNotFound:
        raise HTTPException(status_code=404, detail="Lender not found")

    notes = body.notes or lender.get("notes")
    if not notes:
        raise HTTPException(status_code=400, detail="Lender has no notes to upload")

    return upload_lender_notes(db, client, body.userId, lender_id, lender.get("name", lender_id), notes)
