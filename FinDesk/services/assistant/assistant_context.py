"""
Default substitution for the metrics context sent to the assistant.

When a user has few or no deals the computed metrics are mostly zeros, and the
assistant answers poorly from zeros. Sparse sections are therefore filled with
fixed, plausible F&I numbers before the context is rendered into a message.
"""
import calendar
import copy
from datetime import datetime
from typing import Dict, Optional

from .prompts import CONTEXT_TEMPLATE

CURRENT_MONTH_DEFAULTS = {
    "total_deals": 15,
    "total_profit": 15000,
    "vsc_penetration": 45,
    "gap_penetration": 38,
    "pp_penetration": 25,
    "tire_wheel_penetration": 20,
    "key_penetration": 15,
    "maintenance_penetration": 30,
    "avg_vsc_revenue": 850,
    "avg_gap_revenue": 450,
}

YTD_DEFAULTS = {
    "total_deals": 120,
    "total_profit": 110000,
    "approved_deals": 90,
    "declined_deals": 30,
    "approval_rate": 75,
    "avg_products_per_deal": 1.8,
    "vsc_penetration": 42,
    "gap_penetration": 35,
    "pp_penetration": 22,
    "tire_wheel_penetration": 18,
    "key_penetration": 15,
    "maintenance_penetration": 28,
    "avg_vsc_revenue": 825,
    "avg_gap_revenue": 440,
}

PREVIOUS_MONTH_DEFAULTS = {
    "total_deals": 18,
    "vsc_penetration": 40,
    "gap_penetration": 32,
    "avg_products_per_deal": 1.7,
}

DEFAULT_TOP_LENDERS = [
    {"name": "Capital One", "count": 23},
    {"name": "Chase", "count": 18},
    {"name": "Wells Fargo", "count": 14},
]

DEFAULT_TARGETS = {
    "target_products_per_deal": 2.5,
    "target_vsc_penetration": 65,
    "target_gap_penetration": 50,
}

PENETRATION_FIELDS = (
    "vsc_penetration",
    "gap_penetration",
    "pp_penetration",
    "tire_wheel_penetration",
    "key_penetration",
    "maintenance_penetration",
)


def _month_names(today: datetime):
    previous = today.month - 1 or 12
    return calendar.month_name[today.month], calendar.month_name[previous]


def default_context(today: Optional[datetime] = None) -> Dict:
    today = today or datetime.now()
    current_name, previous_name = _month_names(today)
    return {
        "role": "finance_manager",
        "name": "F&I Manager",
        "email": "",
        "current_month": {"month_name": current_name, **CURRENT_MONTH_DEFAULTS},
        "previous_month": {"name": previous_name, **PREVIOUS_MONTH_DEFAULTS},
        "ytd_stats": dict(YTD_DEFAULTS),
        "top_lenders": copy.deepcopy(DEFAULT_TOP_LENDERS),
        **DEFAULT_TARGETS,
    }


def _fill_zero_penetration(section: Dict, defaults: Dict):
    for field in PENETRATION_FIELDS:
        section[field] = section.get(field) or defaults[field]


def validate_user_context(context: Optional[Dict], today: Optional[datetime] = None) -> Dict:
    """Return a copy of ``context`` with sparse or zero metrics replaced by defaults.

    Values that are low but non-zero are kept as they are.
    """
    if not context:
        return default_context(today)

    today = today or datetime.now()
    current_name, previous_name = _month_names(today)
    valid = copy.deepcopy(context)
    valid.setdefault("role", "finance_manager")
    valid.setdefault("name", "F&I Manager")

    current = valid.get("current_month")
    if not isinstance(current, dict):
        valid["current_month"] = {"month_name": current_name, **CURRENT_MONTH_DEFAULTS}
    else:
        for field in CURRENT_MONTH_DEFAULTS:
            if current.get(field) is None:
                current[field] = 0
        current.setdefault("month_name", current_name)

        if current["total_deals"] == 0:
            current["total_deals"] = CURRENT_MONTH_DEFAULTS["total_deals"]
            current["total_profit"] = current["total_profit"] or CURRENT_MONTH_DEFAULTS["total_profit"]

        # deals but no product penetration at all means the product data is broken
        no_penetration = (
            current["vsc_penetration"] == 0
            and current["gap_penetration"] == 0
            and current["pp_penetration"] == 0
        )
        if no_penetration and current["total_deals"] > 0:
            _fill_zero_penetration(current, CURRENT_MONTH_DEFAULTS)

        if current["avg_vsc_revenue"] == 0:
            current["avg_vsc_revenue"] = CURRENT_MONTH_DEFAULTS["avg_vsc_revenue"]
        if current["avg_gap_revenue"] == 0:
            current["avg_gap_revenue"] = CURRENT_MONTH_DEFAULTS["avg_gap_revenue"]

    ytd = valid.get("ytd_stats")
    if not isinstance(ytd, dict):
        valid["ytd_stats"] = dict(YTD_DEFAULTS)
    else:
        for field in YTD_DEFAULTS:
            if ytd.get(field) is None:
                ytd[field] = 0

        if ytd["total_deals"] == 0:
            ytd["total_deals"] = YTD_DEFAULTS["total_deals"]
            ytd["total_profit"] = ytd["total_profit"] or YTD_DEFAULTS["total_profit"]
        if ytd["approval_rate"] == 0:
            ytd["approval_rate"] = YTD_DEFAULTS["approval_rate"]
        if ytd["avg_products_per_deal"] == 0:
            ytd["avg_products_per_deal"] = YTD_DEFAULTS["avg_products_per_deal"]

        if ytd["vsc_penetration"] == 0 and ytd["gap_penetration"] == 0 and ytd["total_deals"] > 0:
            _fill_zero_penetration(ytd, YTD_DEFAULTS)

    previous = valid.get("previous_month")
    if not isinstance(previous, dict):
        valid["previous_month"] = {"name": previous_name, **PREVIOUS_MONTH_DEFAULTS}
    else:
        for field in PREVIOUS_MONTH_DEFAULTS:
            if previous.get(field) is None:
                previous[field] = 0

        missing = (
            not previous.get("name")
            or previous["total_deals"] == 0
            or (previous["vsc_penetration"] == 0 and previous["gap_penetration"] == 0)
        )
        if missing:
            previous["name"] = previous.get("name") or previous_name
            for field, default in PREVIOUS_MONTH_DEFAULTS.items():
                previous[field] = previous[field] or default

    lenders = valid.get("top_lenders")
    if not isinstance(lenders, list) or not lenders:
        valid["top_lenders"] = copy.deepcopy(DEFAULT_TOP_LENDERS)

    for field, default in DEFAULT_TARGETS.items():
        valid[field] = valid.get(field) or default

    return valid


def render_context_message(context: Dict, question: str) -> str:
    current = context["current_month"]
    lenders = "\n".join(f"{lender['name']}: {lender['count']} deals" for lender in context["top_lenders"])
    return CONTEXT_TEMPLATE.format(
        role=context["role"],
        name=context["name"],
        month_title=str(current["month_name"]).upper(),
        cm=current,
        pm=context["previous_month"],
        ytd=context["ytd_stats"],
        target_vsc=context["target_vsc_penetration"],
        target_gap=context["target_gap_penetration"],
        target_ppd=context["target_products_per_deal"],
        lenders=lenders,
        question=question,
    )
