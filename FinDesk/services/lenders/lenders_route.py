from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from FinDesk.core.firebase import get_db
from .lenders import (
    LenderNotFound,
    create_lender,
    delete_lender,
    find_matching_lenders,
    get_lender,
    list_lenders,
    update_lender,
)
from .lenders_schema import LenderInput, LenderMatchRequest

router = APIRouter(prefix="/lenders", tags=["Lenders"])


@router.post("")
def add_lender(lender: LenderInput, db=Depends(get_db)):
    created = create_lender(db, lender.model_dump(exclude_none=True))
    return get_lender(db, created["id"])


@router.get("")
def read_lenders(name: Optional[str] = None, db=Depends(get_db)):
    return list_lenders(db, name=name)


@router.get("/{lender_id}")
def read_lender(lender_id: str, db=Depends(get_db)):
    try:
        return get_lender(db, lender_id)
    except LenderNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{lender_id}")
def edit_lender(lender_id: str, lender: LenderInput, db=Depends(get_db)):
    try:
        return update_lender(db, lender_id, lender.model_dump(exclude_none=True))
    except LenderNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{lender_id}")
def remove_lender(lender_id: str, db=Depends(get_db)):
    delete_lender(db, lender_id)
    return {"deleted": True}


@router.post("/match")
def match_lenders(criteria: LenderMatchRequest, db=Depends(get_db)):
    vehicle = criteria.vehicle.model_dump(exclude_none=True) if criteria.vehicle else None
    return find_matching_lenders(list_lenders(db), criteria.creditScore, vehicle)
