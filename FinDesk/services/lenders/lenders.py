import copy
import logging
import math
from typing import Dict, List, Optional

from google.cloud.firestore_v1.base_query import FieldFilter

from FinDesk.core.firebase import LENDERS_COLLECTION, SERVER_TIMESTAMP

logger = logging.getLogger(__name__)

BACKEND_NUMERIC_FIELDS = ("maxWarrantyAmount", "maxGapAmount", "maxTotalBackend", "maxBackendPercent")
RESTRICTION_NUMERIC_FIELDS = ("maxMileage", "oldestYear", "maxAgeYears", "maxLoanTerm")
DEFAULT_RATE_TERMS = ("60", "72", "84")


class LenderNotFound(LookupError):
    pass


def _to_float(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def _number(value):
    """Numeric form of a form value. Text such as "unlimited" is kept as entered."""
    number = _to_float(value)
    if number is None or math.isinf(number):
        return value
    return int(number) if number.is_integer() else number


def _sanitize_tier(tier: Dict) -> Dict:
    sanitized = {
        "name": tier.get("name") or "",
        "minScore": _number(tier.get("minScore") or 0),
        "maxLTV": _number(tier.get("maxLTV") or 0),
    }

    # single-rate tiers predate the per-term rates map
    if "rate" in tier and tier["rate"] is not None:
        rate = tier["rate"]
        sanitized["rate"] = "N/A" if rate == "N/A" else _number(rate or 0)

    rates = tier.get("rates")
    if isinstance(rates, dict):
        sanitized["rates"] = {}
        for term, rate in rates.items():
            if rate == "N/A":
                sanitized["rates"][term] = "N/A"
            elif rate not in ("", None):
                sanitized["rates"][term] = _number(rate)

    return sanitized


def sanitize_lender(lender_data: Dict) -> Dict:
    """Coerce form values into the numeric shapes stored on a lender."""
    sanitized = copy.deepcopy(lender_data)

    guidelines = sanitized.setdefault("backendGuidelines", {}) or {}
    sanitized["backendGuidelines"] = guidelines
    for field in BACKEND_NUMERIC_FIELDS:
        if guidelines.get(field):
            guidelines[field] = _number(guidelines[field])

    restrictions = sanitized.setdefault("vehicleRestrictions", {}) or {}
    sanitized["vehicleRestrictions"] = restrictions
    for field in RESTRICTION_NUMERIC_FIELDS:
        if restrictions.get(field):
            restrictions[field] = _number(restrictions[field])

    if isinstance(sanitized.get("creditTiers"), list):
        sanitized["creditTiers"] = [_sanitize_tier(tier) for tier in sanitized["creditTiers"]]

    return sanitized


def format_lender(lender: Dict) -> Dict:
    """Give a stored lender the structure the dashboard and assistant expect."""
    formatted = dict(lender)
    formatted["backendGuidelines"] = lender.get("backendGuidelines") or {
        "maxWarrantyAmount": "",
        "maxGapAmount": "",
        "maxTotalBackend": "",
        "maxBackendPercent": "",
        "backendOnTopOfLTV": False,
        "backendIncludedInLTV": True,
        "requiresIncome": False,
        "requiresProofOfIncome": False,
    }

    tiers = formatted.get("creditTiers")
    if isinstance(tiers, list):
        formatted_tiers = []
        for tier in tiers:
            tier = dict(tier)
            if not tier.get("rates"):
                tier["rates"] = {}
                rate = tier.get("rate")
                if rate is not None and rate != "N/A":
                    tier["rates"] = {term: rate for term in DEFAULT_RATE_TERMS}
            formatted_tiers.append(tier)
        formatted["creditTiers"] = formatted_tiers

    return formatted


def create_lender(db, lender_data: Dict) -> Dict:
    lender = sanitize_lender(lender_data)
    lender["createdAt"] = SERVER_TIMESTAMP
    lender["updatedAt"] = SERVER_TIMESTAMP
    _, doc_ref = db.collection(LENDERS_COLLECTION).add(lender)
    logger.info("Lender %s created with ID %s", lender.get("name"), doc_ref.id)
    return {"id": doc_ref.id, **lender}


def get_lender(db, lender_id: str) -> Dict:
    snap = db.collection(LENDERS_COLLECTION).document(lender_id).get()
    if not snap.exists:
        raise LenderNotFound(f"Lender not found: {lender_id}")
    return format_lender({"id": snap.id, **snap.to_dict()})


def update_lender(db, lender_id: str, lender_data: Dict) -> Dict:
    ref = db.collection(LENDERS_COLLECTION).document(lender_id)
    if not ref.get().exists:
        raise LenderNotFound(f"Lender not found: {lender_id}")
    lender = sanitize_lender(lender_data)
    ref.update({**lender, "updatedAt": SERVER_TIMESTAMP})
    return {"id": lender_id, **lender}


def delete_lender(db, lender_id: str) -> bool:
    db.collection(LENDERS_COLLECTION).document(lender_id).delete()
    return True


def list_lenders(db, name: Optional[str] = None) -> List[Dict]:
    query = db.collection(LENDERS_COLLECTION)
    if name:
        query = query.where(filter=FieldFilter("name", "==", name))
    query = query.order_by("name")
    return [format_lender({"id": snap.id, **snap.to_dict()}) for snap in query.stream()]


def _passes_restrictions(lender: Dict, vehicle: Optional[Dict]) -> bool:
    if not vehicle:
        return True
    restrictions = lender.get("vehicleRestrictions") or {}

    # restrictions that are not numbers are not enforced
    max_mileage = _to_float(restrictions.get("maxMileage"))
    mileage = _to_float(vehicle.get("mileage"))
    if max_mileage and mileage is not None and mileage > max_mileage:
        return False

    oldest_year = _to_float(restrictions.get("oldestYear"))
    year = _to_float(vehicle.get("year"))
    if oldest_year and year is not None and year < oldest_year:
        return False

    return True


def _qualifies(credit_score: float, tier: Dict) -> bool:
    min_score = tier.get("minScore") or 0
    threshold = _to_float(min_score)
    # a tier whose minimum score is unreadable never qualifies
    return threshold is not None and credit_score >= threshold


def find_matching_lenders(lenders: List[Dict], credit_score: Optional[float], vehicle: Optional[Dict] = None) -> List[Dict]:
    """Lenders with a tier the score qualifies for and no vehicle restriction violated.

    Only restrictions that are set on the lender are applied.
    """
    matches = []
    for lender in lenders:
        if credit_score is not None:
            tiers = lender.get("creditTiers") or []
            if not any(_qualifies(credit_score, tier) for tier in tiers):
                continue
        if not _passes_restrictions(lender, vehicle):
            continue
        matches.append(lender)
    return matches
