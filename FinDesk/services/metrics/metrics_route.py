import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from FinDesk.core.config import settings
from FinDesk.core.firebase import USERS_COLLECTION, get_db
from FinDesk.services.deals.deals import all_deals, user_deals
from .metrics import (
    build_user_context,
    dashboard_stats,
    deals_in_range,
    funding_summary,
    lender_report,
    month_bounds,
    monthly_report,
    normalize_deals,
    product_report,
    report_csv,
    shift_month,
    to_number,
)
from .metrics_schema import DashboardStats, FundingSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/metrics", tags=["Metrics"])

REPORT_KINDS = ("monthly", "products", "lenders")


def load_user_profile(db, user_id: str) -> Dict:
    snap = db.collection(USERS_COLLECTION).document(user_id).get()
    if not snap.exists:
        logger.info("No user document for %s, using default targets", user_id)
        return {}
    return snap.to_dict() or {}


def monthly_goal_for(profile: Dict) -> float:
    return to_number(profile.get("monthlyTarget")) or settings.default_monthly_target


@router.get("/dashboard", response_model=DashboardStats)
def dashboard(
    user_id: str,
    year: Optional[int] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    db=Depends(get_db),
):
    today = datetime.now(timezone.utc)
    deals = normalize_deals(user_deals(db, user_id))
    profile = load_user_profile(db, user_id)
    return dashboard_stats(deals, year or today.year, month or today.month, monthly_goal_for(profile))


@router.get("/reports/{kind}")
def report(
    kind: str,
    user_id: str,
    months: int = Query(6, ge=1, le=36),
    format: str = Query("json", pattern="^(json|csv)$"),
    db=Depends(get_db),
):
    if kind not in REPORT_KINDS:
        raise HTTPException(status_code=400, detail=f"Unknown report type: {kind}")

    today = datetime.now(timezone.utc)
    deals = normalize_deals(user_deals(db, user_id))
    goal = monthly_goal_for(load_user_profile(db, user_id))

    first_year, first_month = shift_month(today.year, today.month, -(months - 1))
    window = deals_in_range(deals, month_bounds(first_year, first_month)[0], today)

    if kind == "monthly":
        rows = monthly_report(window, months, goal, today)
    elif kind == "products":
        rows = product_report(window)
    else:
        rows = lender_report(window)

    if format == "csv":
        filename = f"{kind}_report_{today:%Y-%m-%d}.csv"
        return PlainTextResponse(
            report_csv(kind, rows),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    return rows


@router.get("/funding", response_model=FundingSummary)
def funding(user_id: Optional[str] = None, db=Depends(get_db)):
    raw = user_deals(db, user_id) if user_id else all_deals(db)
    return funding_summary(normalize_deals(raw))


@router.get("/context")
def context(user_id: str, db=Depends(get_db)):
    deals = normalize_deals(user_deals(db, user_id))
    return build_user_context(deals, load_user_profile(db, user_id), datetime.now(timezone.utc))
