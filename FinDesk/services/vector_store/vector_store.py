import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

import openai
from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPICallError
from google.cloud.firestore_v1.base_query import FieldFilter

from FinDesk.core.config import settings
from FinDesk.core.firebase import (
    OPENAI_FILES_SUBCOLLECTION,
    SERVER_TIMESTAMP,
    USER_CONFIG_COLLECTION,
    VECTOR_STORES_SUBCOLLECTION,
)
from FinDesk.services.lenders.lenders import list_lenders

logger = logging.getLogger(__name__)


def _user_config(db, user_id: str):
    ref = db.collection(USER_CONFIG_COLLECTION).document(user_id)
    if not ref.get().exists:
        ref.set({"createdAt": SERVER_TIMESTAMP, "updatedAt": SERVER_TIMESTAMP})
    return ref


def list_vector_stores(db, user_id: str) -> List[Dict]:
    stores = _user_config(db, user_id).collection(VECTOR_STORES_SUBCOLLECTION).stream()
    result = []
    for snap in stores:
        data = snap.to_dict()
        result.append({"id": snap.id, **data, "openaiId": data.get("openaiId") or snap.id})
    return result


def get_or_create_vector_store_ref(db, user_id: str, vector_store_id: Optional[str] = None) -> Dict:
    """Firestore entry tracking the shared lender vector store for this user."""
    vector_store_id = vector_store_id or settings.terrance_vector_store_id
    stores = _user_config(db, user_id).collection(VECTOR_STORES_SUBCOLLECTION)

    existing = stores.where(filter=FieldFilter("openaiId", "==", vector_store_id)).limit(1).stream()
    for snap in existing:
        return {"id": snap.id, **snap.to_dict()}

    logger.info("Creating reference to vector store %s for user %s", vector_store_id, user_id)
    data = {
        "name": "Terrance Lender Database",
        "description": "Vector store for Terrance containing all lender information",
        "openaiId": vector_store_id,
        "createdAt": SERVER_TIMESTAMP,
        "updatedAt": SERVER_TIMESTAMP,
        "fileCount": 0,
        "files": [],
    }
    _, ref = stores.add(data)
    return {"id": ref.id, "openaiId": vector_store_id, "files": []}


def format_lender_notes(lender_id: str, lender_name: str, notes: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return (
        f"LENDER: {lender_name} (ID: {lender_id})\n"
        f"DOCUMENT TYPE: Structured Notes\n"
        f"DATE ADDED: {now.isoformat()}\n"
        f"\n{notes}\n"
        f"\n---\n"
        f"This document contains structured lender information for Terrance to reference.\n"
    )


def _format_tier(tier: Dict) -> str:
    line = f"  - {tier.get('name') or 'Tier'}: min score {tier.get('minScore', 0)}, max LTV {tier.get('maxLTV', 0)}%"
    rates = tier.get("rates") or {}
    if rates:
        terms = ", ".join(
            f"{term} mo {rate}" + ("" if rate == "N/A" else "%")
            for term, rate in sorted(rates.items())
        )
        line += f", rates: {terms}"
    return line


def format_lender_database(lenders: List[Dict], now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    sections = [f"TERRANCE LENDER DATABASE\nGENERATED: {now.isoformat()}\nLENDERS: {len(lenders)}\n"]

    for lender in lenders:
        lines = [f"LENDER: {lender.get('name', 'Unknown')} (ID: {lender.get('id', '')})"]
        if lender.get("type"):
            lines.append(f"Type: {lender['type']}")
        if lender.get("tiers"):
            lines.append(f"Tiers: {lender['tiers']}")

        tiers = lender.get("creditTiers") or []
        if tiers:
            lines.append("Credit tiers:")
            lines.extend(_format_tier(tier) for tier in tiers)

        guidelines = {k: v for k, v in (lender.get("backendGuidelines") or {}).items() if v not in ("", None)}
        if guidelines:
            lines.append("Backend guidelines: " + ", ".join(f"{k}={v}" for k, v in sorted(guidelines.items())))

        restrictions = {k: v for k, v in (lender.get("vehicleRestrictions") or {}).items() if v not in ("", None)}
        if restrictions:
            lines.append("Vehicle restrictions: " + ", ".join(f"{k}={v}" for k, v in sorted(restrictions.items())))

        if lender.get("notes"):
            lines.append(f"Notes:\n{lender['notes']}")

        sections.append("\n".join(lines))

    return "\n\n---\n\n".join(sections) + "\n"


def upload_text_file(client, filename: str, text: str) -> str:
    uploaded = client.files.create(file=(filename, text.encode("utf-8"), "text/plain"), purpose="assistants")
    logger.info("Uploaded %s to OpenAI as %s", filename, uploaded.id)
    return uploaded.id


def add_file_to_vector_store(db, client, user_id: str, file_id: str, vector_store_id: Optional[str] = None) -> Dict:
    """Attach an uploaded file to the vector store and record the association.

    If the OpenAI call fails the association is tracked as pending so it can be
    retried later; the upload itself is not lost.
    """
    vector_store_id = vector_store_id or settings.terrance_vector_store_id

    try:
        client.vector_stores.files.create(vector_store_id=vector_store_id, file_id=file_id)
        api_success = True
    except openai.OpenAIError as e:
        logger.warning("Could not associate file %s via OpenAI API: %s", file_id, e)
        api_success = False

    status = "associated_with_store" if api_success else "association_pending"
    config = _user_config(db, user_id)
    try:
        files = config.collection(OPENAI_FILES_SUBCOLLECTION)
        tracked = list(files.where(filter=FieldFilter("openaiId", "==", file_id)).limit(1).stream())
        record = {
            "status": status,
            "vectorStoreId": vector_store_id,
            "updatedAt": SERVER_TIMESTAMP,
            "apiSuccess": api_success,
        }
        if tracked:
            tracked[0].reference.update(record)
        else:
            files.add({**record, "openaiId": file_id, "uploadedAt": SERVER_TIMESTAMP})

        store = get_or_create_vector_store_ref(db, user_id, vector_store_id)
        config.collection(VECTOR_STORES_SUBCOLLECTION).document(store["id"]).update({
            "files": firestore.ArrayUnion([file_id]),
            "updatedAt": SERVER_TIMESTAMP,
        })
    except GoogleAPICallError as e:
        logger.warning("Could not update file tracking for %s: %s", file_id, e)

    return {
        "vectorStoreId": vector_store_id,
        "fileId": file_id,
        "status": "success" if api_success else "pending",
        "apiSuccess": api_success,
    }


def upload_lender_notes(db, client, user_id: str, lender_id: str, lender_name: str, notes: str) -> Dict:
    text = format_lender_notes(lender_id, lender_name, notes)
    filename = f"{lender_name}_notes_{int(datetime.now().timestamp() * 1000)}.txt"
    file_id = upload_text_file(client, filename, text)
    return add_file_to_vector_store(db, client, user_id, file_id)


def upload_lender_data(db, client, user_id: str) -> Dict:
    """Upload every lender as one text file and attach it to the vector store."""
    lenders = list_lenders(db)
    if not lenders:
        logger.warning("No lenders to upload to the vector store")
        return {"fileId": None, "status": "no_lenders"}

    text = format_lender_database(lenders)
    filename = f"lender_database_{int(datetime.now().timestamp() * 1000)}.txt"
    file_id = upload_text_file(client, filename, text)
    result = add_file_to_vector_store(db, client, user_id, file_id)
    result["lenderCount"] = len(lenders)
    return result
