import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from FinDesk.core.firebase import DEALS_COLLECTION, SERVER_TIMESTAMP

logger = logging.getLogger(__name__)


class DealNotFound(LookupError):
    pass


def _clean(data: Dict) -> Dict:
    """Firestore rejects undefined values, so drop anything that is None."""
    return {key: value for key, value in data.items() if value is not None}


def create_deal(db, deal_data: Dict) -> Dict:
    deal = _clean(deal_data)
    deal["createdAt"] = SERVER_TIMESTAMP
    deal["updatedAt"] = SERVER_TIMESTAMP

    _, doc_ref = db.collection(DEALS_COLLECTION).add(deal)
    logger.info("Deal created with ID %s", doc_ref.id)
    return {"id": doc_ref.id, **deal}


def get_deal(db, deal_id: str) -> Dict:
    snap = db.collection(DEALS_COLLECTION).document(deal_id).get()
    if not snap.exists:
        raise DealNotFound(f"Deal not found: {deal_id}")
    return {"id": snap.id, **snap.to_dict()}


def update_deal(db, deal_id: str, deal_data: Dict) -> Dict:
    ref = db.collection(DEALS_COLLECTION).document(deal_id)
    if not ref.get().exists:
        raise DealNotFound(f"Deal not found: {deal_id}")

    changes = _clean(deal_data)
    ref.update({**changes, "updatedAt": SERVER_TIMESTAMP})
    return {"id": deal_id, **changes}


def delete_deal(db, deal_id: str) -> bool:
    db.collection(DEALS_COLLECTION).document(deal_id).delete()
    logger.info("Deal %s deleted", deal_id)
    return True


def list_deals(
    db,
    user_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    page_size: int = 10,
    start_after: Optional[str] = None,
) -> Tuple[List[Dict], Optional[str]]:
    """One page of deals, newest first. Returns the deals and the id to pass as
    ``start_after`` for the next page."""
    query = db.collection(DEALS_COLLECTION)

    if user_id:
        query = query.where(filter=FieldFilter("userId", "==", user_id))
    if start and end:
        query = query.where(filter=FieldFilter("date", ">=", start))
        query = query.where(filter=FieldFilter("date", "<=", end))

    query = query.order_by("createdAt", direction=firestore.Query.DESCENDING)

    if start_after:
        cursor = db.collection(DEALS_COLLECTION).document(start_after).get()
        if cursor.exists:
            query = query.start_after(cursor)

    query = query.limit(page_size)

    deals = [{"id": snap.id, **snap.to_dict()} for snap in query.stream()]
    last_id = deals[-1]["id"] if deals else None
    return deals, last_id


def user_deals(db, user_id: str) -> List[Dict]:
    query = db.collection(DEALS_COLLECTION).where(filter=FieldFilter("userId", "==", user_id))
    return [{"id": snap.id, **snap.to_dict()} for snap in query.stream()]


def recent_deals(db, limit: int = 20) -> List[Dict]:
    deals_ref = db.collection(DEALS_COLLECTION)
    try:
        query = deals_ref.order_by("createdAt", direction=firestore.Query.DESCENDING).limit(limit)
        return [{"id": snap.id, **snap.to_dict()} for snap in query.stream()]
    except Exception as e:
        # ordered query needs an index; fall back to an unordered page
        logger.warning("Ordered deals query failed, retrying without order: %s", e)
        return [{"id": snap.id, **snap.to_dict()} for snap in deals_ref.limit(limit).stream()]


def mark_funded(db, deal_id: str) -> Dict:
    return update_deal(db, deal_id, {"fundedDate": SERVER_TIMESTAMP})


def unmark_funded(db, deal_id: str) -> Dict:
    ref = db.collection(DEALS_COLLECTION).document(deal_id)
    if not ref.get().exists:
        raise DealNotFound(f"Deal not found: {deal_id}")
    ref.update({"fundedDate": None, "updatedAt": SERVER_TIMESTAMP})
    return {"id": deal_id, "fundedDate": None}


def all_deals(db) -> List[Dict]:
    return [{"id": snap.id, **snap.to_dict()} for snap in db.collection(DEALS_COLLECTION).stream()]
