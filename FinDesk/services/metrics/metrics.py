"""
Deal metrics for the dashboard, the reports page and the assistant context.

Deal documents are schemaless, so everything starts by coercing a raw
Firestore dict into a ``DealRecord``. After that every metric is a plain
filter/reduce over a list of records.
"""
import calendar
import csv
import io
import logging
import math
from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .metrics_schema import (
    DashboardStats,
    DealProduct,
    DealRecord,
    FundingSummary,
    LenderRow,
    MonthlyRow,
    PeriodSummary,
    ProductRow,
    RecentDeal,
)

logger = logging.getLogger(__name__)

# Product name keywords per F&I category, matched case-insensitively
PRODUCT_CATEGORIES = {
    "vsc": ["vsc", "warranty", "service contract"],
    "gap": ["gap"],
    "pp": ["paint"],
    "tire_wheel": ["tire", "wheel"],
    "key": ["key"],
    "maintenance": ["maintenance"],
}

APPROVED_STATUSES = {"approved", "funded", "booked", "contracted"}
DECLINED_STATUSES = {"declined", "rejected", "denied"}

DEFAULT_TARGET_PRODUCTS_PER_DEAL = 2.5
DEFAULT_TARGET_VSC_PENETRATION = 65
DEFAULT_TARGET_GAP_PENETRATION = 50


# ---------- coercion ----------

def to_number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def to_datetime(value) -> Optional[datetime]:
    """Firestore timestamps, ``{seconds: ...}`` maps, ISO strings or epoch millis."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            return None
        try:
            return datetime.fromtimestamp(float(seconds), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None
    return None


def _products(raw) -> List[DealProduct]:
    if isinstance(raw, str):
        return [DealProduct(name=name.strip()) for name in raw.split(",") if name.strip()]
    if not isinstance(raw, list):
        return []

    products = []
    for item in raw:
        if isinstance(item, str):
            products.append(DealProduct(name=item))
        elif isinstance(item, Mapping):
            products.append(DealProduct(
                name=str(item.get("name") or item.get("type") or "Unknown"),
                price=to_number(item.get("price")) or 0,
                profit=to_number(item.get("profit")) or 0,
            ))
    return products


def _name_of(value, default: str = "Unknown") -> str:
    if isinstance(value, Mapping):
        return str(value.get("name") or default)
    if value:
        return str(value)
    return default


def _vehicle(value) -> str:
    if isinstance(value, Mapping):
        return f"{value.get('year') or ''} {value.get('model') or ''}".strip()
    return str(value) if value else ""


def normalize_deal(doc_id: str, data: Mapping) -> DealRecord:
    products = _products(data.get("products"))

    profit = None
    for key in ("totalProfit", "backEndProfit", "profit"):
        profit = to_number(data.get(key))
        if profit is not None:
            break
    if profit is None:
        profit = sum(p.profit for p in products)

    date = None
    for key in ("date", "dateSold", "createdAt"):
        date = to_datetime(data.get(key))
        if date is not None:
            break

    lender = data.get("lender")
    if not lender:
        lender = data.get("lenderName") or data.get("lenderId")

    status = data.get("status")
    return DealRecord(
        id=doc_id,
        user_id=data.get("userId"),
        customer=_name_of(data.get("customer")),
        vehicle=_vehicle(data.get("vehicle")),
        lender=_name_of(lender),
        products=products,
        profit=profit,
        apr=to_number(data.get("rate", data.get("apr"))) or 0,
        term=to_number(data.get("term")) or 0,
        status=str(status).lower() if status else None,
        funded=bool(data.get("fundedDate")),
        date=date,
    )


def normalize_deals(raw_deals: Iterable[Mapping]) -> List[DealRecord]:
    return [normalize_deal(str(d.get("id", "")), d) for d in raw_deals]


# ---------- period math ----------

def product_category(name: str) -> Optional[str]:
    lowered = name.lower()
    for category, keywords in PRODUCT_CATEGORIES.items():
        if any(keyword in lowered for keyword in keywords):
            return category
    return None


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = datetime(year, month, last_day, 23, 59, 59, 999999, tzinfo=timezone.utc)
    return start, end


def deals_in_month(deals: List[DealRecord], year: int, month: int, include_undated: bool = True) -> List[DealRecord]:
    start, end = month_bounds(year, month)
    return [
        d for d in deals
        if (d.date is None and include_undated) or (d.date is not None and start <= d.date <= end)
    ]


def deals_in_range(deals: List[DealRecord], start: datetime, end: datetime) -> List[DealRecord]:
    return [d for d in deals if d.date is not None and start <= d.date <= end]


def _percent(part: float, whole: float) -> float:
    return part / whole * 100 if whole else 0


def summarize(deals: List[DealRecord]) -> PeriodSummary:
    total = len(deals)
    if not total:
        return PeriodSummary()

    carrying = Counter()
    revenue = defaultdict(list)
    product_count = 0
    approved = declined = 0

    for deal in deals:
        product_count += len(deal.products)
        seen = set()
        for product in deal.products:
            category = product_category(product.name)
            if category is None:
                continue
            seen.add(category)
            if category in ("vsc", "gap"):
                revenue[category].append(product.profit or product.price)
        carrying.update(seen)

        if deal.funded or deal.status in APPROVED_STATUSES:
            approved += 1
        elif deal.status in DECLINED_STATUSES:
            declined += 1

    total_profit = sum(d.profit for d in deals)

    def avg(values):
        return sum(values) / len(values) if values else 0

    return PeriodSummary(
        total_deals=total,
        total_profit=total_profit,
        avg_profit=total_profit / total,
        products_per_deal=product_count / total,
        vsc_penetration=_percent(carrying["vsc"], total),
        gap_penetration=_percent(carrying["gap"], total),
        pp_penetration=_percent(carrying["pp"], total),
        tire_wheel_penetration=_percent(carrying["tire_wheel"], total),
        key_penetration=_percent(carrying["key"], total),
        maintenance_penetration=_percent(carrying["maintenance"], total),
        avg_vsc_revenue=avg(revenue["vsc"]),
        avg_gap_revenue=avg(revenue["gap"]),
        approved_deals=approved,
        declined_deals=declined,
        approval_rate=_percent(approved, approved + declined),
    )


# ---------- dashboard and reports ----------

def goal_progress(total_profit: float, monthly_goal: float) -> int:
    if not monthly_goal:
        return 0
    return min(round(total_profit / monthly_goal * 100), 100)


def _sort_key(deal: DealRecord) -> datetime:
    return deal.date or datetime.min.replace(tzinfo=timezone.utc)


def dashboard_stats(deals: List[DealRecord], year: int, month: int, monthly_goal: float) -> DashboardStats:
    monthly = deals_in_month(deals, year, month)
    summary = summarize(monthly)
    newest = sorted(deals, key=_sort_key, reverse=True)[:5]

    return DashboardStats(
        total_deals=summary.total_deals,
        avg_profit=round(summary.avg_profit),
        products_per_deal=round(summary.products_per_deal, 1),
        goal_progress=goal_progress(summary.total_profit, monthly_goal),
        recent_deals=[
            RecentDeal(
                id=d.id,
                customer=d.customer,
                vehicle=d.vehicle,
                lender=d.lender,
                products=[p.name for p in d.products],
                profit=d.profit,
                date=d.date,
            )
            for d in newest
        ],
    )


def monthly_report(deals: List[DealRecord], months: int, monthly_goal: float, today: datetime) -> List[MonthlyRow]:
    rows = []
    for back in range(months - 1, -1, -1):
        year, month = shift_month(today.year, today.month, -back)
        summary = summarize(deals_in_month(deals, year, month, include_undated=False))
        rows.append(MonthlyRow(
            month=f"{calendar.month_abbr[month]} {year}",
            deals=summary.total_deals,
            back_end_profit=summary.total_profit,
            avg_profit=summary.avg_profit,
            products_per_deal=summary.products_per_deal,
            goal=monthly_goal,
        ))
    return rows


def product_report(deals: List[DealRecord]) -> List[ProductRow]:
    counts = Counter(p.name for d in deals for p in d.products if p.name)
    return [ProductRow(name=name, value=value) for name, value in counts.most_common()]


def lender_report(deals: List[DealRecord]) -> List[LenderRow]:
    counts = Counter()
    profits = defaultdict(float)
    for deal in deals:
        counts[deal.lender] += 1
        profits[deal.lender] += deal.profit

    return [
        LenderRow(name=name, deals=count, profit=profits[name], avg_profit=profits[name] / count)
        for name, count in counts.most_common()
    ]


def top_lenders(deals: List[DealRecord], n: int = 3) -> List[Dict]:
    counts = Counter(d.lender for d in deals if d.lender != "Unknown")
    return [{"name": name, "count": count} for name, count in counts.most_common(n)]


def funding_summary(deals: List[DealRecord]) -> FundingSummary:
    funded = [d for d in deals if d.funded]
    return FundingSummary(
        funded=len(funded),
        pending=len(deals) - len(funded),
        funded_value=sum(d.profit for d in funded),
        funding_rate=round(_percent(len(funded), len(deals))),
    )


def report_csv(kind: str, rows: List) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    if kind == "monthly":
        writer.writerow(["Month", "Deals", "Back-End Profit", "Average Profit", "Products Per Deal", "Goal"])
        for row in rows:
            writer.writerow([
                row.month,
                row.deals,
                f"${row.back_end_profit:.2f}",
                f"${row.avg_profit:.2f}",
                f"{row.products_per_deal:.2f}",
                f"{row.goal:.2f}",
            ])
    elif kind == "products":
        writer.writerow(["Product", "Count"])
        for row in rows:
            writer.writerow([row.name, row.value])
    elif kind == "lenders":
        writer.writerow(["Lender", "Deals", "Total Profit", "Average Profit"])
        for row in rows:
            writer.writerow([row.name, row.deals, f"${row.profit:.2f}", f"${row.avg_profit:.2f}"])
    else:
        raise ValueError(f"Unknown report type: {kind}")

    return buffer.getvalue()


# ---------- assistant context ----------

def build_user_context(deals: List[DealRecord], profile: Optional[Mapping], today: datetime) -> Dict:
    """Metrics block injected into assistant messages about the user's performance."""
    profile = profile or {}
    prev_year, prev_month = shift_month(today.year, today.month, -1)

    current = summarize(deals_in_month(deals, today.year, today.month))
    previous = summarize(deals_in_month(deals, prev_year, prev_month, include_undated=False))
    year_start = datetime(today.year, 1, 1, tzinfo=timezone.utc)
    ytd_deals = [d for d in deals if d.date is None or year_start <= d.date]
    ytd = summarize(ytd_deals)

    return {
        "role": profile.get("role") or "finance_manager",
        "name": profile.get("name") or profile.get("email") or "F&I Manager",
        "email": profile.get("email") or "",
        "current_month": {
            "month_name": calendar.month_name[today.month],
            "total_deals": current.total_deals,
            "total_profit": current.total_profit,
            "vsc_penetration": current.vsc_penetration,
            "gap_penetration": current.gap_penetration,
            "pp_penetration": current.pp_penetration,
            "tire_wheel_penetration": current.tire_wheel_penetration,
            "key_penetration": current.key_penetration,
            "maintenance_penetration": current.maintenance_penetration,
            "avg_vsc_revenue": current.avg_vsc_revenue,
            "avg_gap_revenue": current.avg_gap_revenue,
        },
        "previous_month": {
            "name": calendar.month_name[prev_month],
            "total_deals": previous.total_deals,
            "vsc_penetration": previous.vsc_penetration,
            "gap_penetration": previous.gap_penetration,
            "avg_products_per_deal": previous.products_per_deal,
        },
        "ytd_stats": {
            "total_deals": ytd.total_deals,
            "total_profit": ytd.total_profit,
            "approved_deals": ytd.approved_deals,
            "declined_deals": ytd.declined_deals,
            "approval_rate": ytd.approval_rate,
            "avg_products_per_deal": ytd.products_per_deal,
            "vsc_penetration": ytd.vsc_penetration,
            "gap_penetration": ytd.gap_penetration,
            "pp_penetration": ytd.pp_penetration,
            "tire_wheel_penetration": ytd.tire_wheel_penetration,
            "key_penetration": ytd.key_penetration,
            "maintenance_penetration": ytd.maintenance_penetration,
            "avg_vsc_revenue": ytd.avg_vsc_revenue,
            "avg_gap_revenue": ytd.avg_gap_revenue,
        },
        "top_lenders": top_lenders(ytd_deals),
        "target_products_per_deal": to_number(profile.get("targetProductsPerDeal")) or DEFAULT_TARGET_PRODUCTS_PER_DEAL,
        "target_vsc_penetration": to_number(profile.get("targetVscPenetration")) or DEFAULT_TARGET_VSC_PENETRATION,
        "target_gap_penetration": to_number(profile.get("targetGapPenetration")) or DEFAULT_TARGET_GAP_PENETRATION,
    }
