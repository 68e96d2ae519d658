from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from FinDesk.core.firebase import get_db
from .deals import (
    DealNotFound,
    create_deal,
    delete_deal,
    get_deal,
    list_deals,
    mark_funded,
    unmark_funded,
    update_deal,
)
from .deals_schema import DealInput, DealPage, DealUpdate


router = APIRouter(prefix="/deals", tags=["Deals"])


@router.post("")
def add_deal(deal: DealInput, db=Depends(get_db)):
    created = create_deal(db, deal.model_dump(exclude_none=True))
    # re-read so server timestamps come back resolved
    return get_deal(db, created["id"])


@router.get("", response_model=DealPage)
def read_deals(
    user_id: Optional[str] = Query(None, description="only deals of this user"),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    page_size: int = Query(10, ge=1, le=100),
    start_after: Optional[str] = None,
    db=Depends(get_db),
):
    deals, last_id = list_deals(
        db,
        user_id=user_id,
        start=start,
        end=end,
        page_size=page_size,
        start_after=start_after,
    )
    return DealPage(deals=deals, lastId=last_id)


@router.get("/{deal_id}")
def read_deal(deal_id: str, db=Depends(get_db)):
    try:
        return get_deal(db, deal_id)
    except DealNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch("/{deal_id}")
def edit_deal(deal_id: str, changes: DealUpdate, db=Depends(get_db)):
    try:
        return update_deal(db, deal_id, changes.model_dump(exclude_none=True))
    except DealNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{deal_id}")
def remove_deal(deal_id: str, db=Depends(get_db)):
    delete_deal(db, deal_id)
    return {"deleted": True}


@router.post("/{deal_id}/funded")
def fund_deal(deal_id: str, db=Depends(get_db)):
    try:
        mark_funded(db, deal_id)
        return get_deal(db, deal_id)
    except DealNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{deal_id}/funded")
def unfund_deal(deal_id: str, db=Depends(get_db)):
    try:
        return unmark_funded(db, deal_id)
    except DealNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
