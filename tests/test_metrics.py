from datetime import datetime, timezone

import pytest

from FinDesk.services.metrics.metrics import (
    build_user_context,
    dashboard_stats,
    funding_summary,
    goal_progress,
    lender_report,
    monthly_report,
    normalize_deal,
    normalize_deals,
    product_category,
    product_report,
    report_csv,
    shift_month,
    summarize,
    to_datetime,
    top_lenders,
)

UTC = timezone.utc
TODAY = datetime(2025, 3, 15, tzinfo=UTC)


@pytest.fixture
def deals():
    raw = [
        {
            "id": "d1",
            "date": datetime(2025, 3, 2, tzinfo=UTC),
            "products": [{"name": "VSC Platinum", "profit": 1000}, {"name": "GAP", "profit": 400}],
            "backEndProfit": 1400,
            "lender": "Chase",
            "status": "approved",
        },
        {
            "id": "d2",
            "date": "2025-03-10T12:00:00Z",
            "products": ["Paint Protection", "Tire & Wheel"],
            "totalProfit": "800",
            "lender": {"name": "Capital One"},
            "status": "Declined",
        },
        {
            "id": "d3",
            "dateSold": {"seconds": int(datetime(2025, 2, 20, tzinfo=UTC).timestamp())},
            "products": ["VSC"],
            "profit": 600,
            "lenderName": "Chase",
            "fundedDate": datetime(2025, 2, 25, tzinfo=UTC),
        },
        {"id": "d4", "products": [], "lenderId": "Ally"},
    ]
    return normalize_deals(raw)


def test_profit_prefers_total_then_backend_then_products():
    assert normalize_deal("a", {"totalProfit": 900, "backEndProfit": 500}).profit == 900
    assert normalize_deal("b", {"backEndProfit": "500", "profit": 10}).profit == 500
    products = [{"name": "GAP", "profit": 300}, {"name": "VSC", "profit": 700}]
    assert normalize_deal("c", {"products": products}).profit == 1000


def test_normalize_reads_alternate_shapes(deals):
    d2 = deals[1]
    assert d2.lender == "Capital One"
    assert d2.status == "declined"
    assert [p.name for p in d2.products] == ["Paint Protection", "Tire & Wheel"]
    assert deals[2].funded is True
    assert deals[3].date is None
    assert deals[3].lender == "Ally"


def test_comma_separated_products():
    deal = normalize_deal("x", {"products": "VSC, GAP ,"})
    assert [p.name for p in deal.products] == ["VSC", "GAP"]


def test_to_datetime_variants():
    assert to_datetime(0) == datetime(1970, 1, 1, tzinfo=UTC)
    assert to_datetime("2025-03-10T12:00:00Z") == datetime(2025, 3, 10, 12, tzinfo=UTC)
    assert to_datetime({"_seconds": 60}) == datetime(1970, 1, 1, 0, 1, tzinfo=UTC)
    assert to_datetime(datetime(2025, 1, 1)).tzinfo is UTC
    assert to_datetime("not a date") is None
    assert to_datetime({"nanos": 5}) is None
    assert to_datetime({"seconds": "oops"}) is None
    assert to_datetime({"seconds": float("inf")}) is None
    assert to_datetime(10**20) is None
    assert to_datetime(float("nan")) is None


def test_malformed_dates_leave_the_deal_undated():
    assert normalize_deal("d1", {"date": {"seconds": "oops"}, "profit": 300}).date is None
    assert normalize_deal("d2", {"date": 10**20}).date is None
    fallback = normalize_deal("d3", {"date": {"seconds": "oops"}, "createdAt": "2025-03-01T00:00:00Z"})
    assert fallback.date == datetime(2025, 3, 1, tzinfo=UTC)


def test_product_category():
    assert product_category("Extended Warranty") == "vsc"
    assert product_category("GAP Insurance") == "gap"
    assert product_category("Key Replacement") == "key"
    assert product_category("Prepaid Maintenance") == "maintenance"
    assert product_category("Theft Deterrent") is None


def test_shift_month_crosses_years():
    assert shift_month(2025, 1, -1) == (2024, 12)
    assert shift_month(2024, 12, 1) == (2025, 1)
    assert shift_month(2025, 3, -14) == (2024, 1)


def test_summarize_counts_each_category_once_per_deal():
    deal = normalize_deal("x", {"products": ["VSC", "Powertrain Warranty", "GAP"]})
    summary = summarize([deal, normalize_deal("y", {"products": []})])
    assert summary.vsc_penetration == 50
    assert summary.gap_penetration == 50
    assert summary.products_per_deal == 1.5


def test_summarize_month(deals):
    march = [deals[0], deals[1], deals[3]]
    summary = summarize(march)
    assert summary.total_deals == 3
    assert summary.total_profit == 2200
    assert summary.vsc_penetration == pytest.approx(100 / 3)
    assert summary.pp_penetration == pytest.approx(100 / 3)
    assert summary.tire_wheel_penetration == pytest.approx(100 / 3)
    assert summary.avg_vsc_revenue == 1000
    assert summary.avg_gap_revenue == 400
    assert summary.approved_deals == 1
    assert summary.declined_deals == 1
    assert summary.approval_rate == 50


def test_summarize_empty():
    summary = summarize([])
    assert summary.total_deals == 0
    assert summary.approval_rate == 0


def test_goal_progress_caps_at_100():
    assert goal_progress(25000, 10000) == 100
    assert goal_progress(2200, 10000) == 22
    assert goal_progress(500, 0) == 0


def test_dashboard_stats(deals):
    stats = dashboard_stats(deals, 2025, 3, 10000)
    # undated deals count toward the current month
    assert stats.total_deals == 3
    assert stats.avg_profit == 733
    assert stats.products_per_deal == 1.3
    assert stats.goal_progress == 22
    assert [d.id for d in stats.recent_deals] == ["d2", "d1", "d3", "d4"]


def test_monthly_report_oldest_first(deals):
    rows = monthly_report(deals, 3, 10000, TODAY)
    assert [r.month for r in rows] == ["Jan 2025", "Feb 2025", "Mar 2025"]
    assert [r.deals for r in rows] == [0, 1, 2]
    assert rows[2].back_end_profit == 2200
    assert rows[1].products_per_deal == 1
    assert all(r.goal == 10000 for r in rows)


def test_product_and_lender_reports(deals):
    products = {row.name: row.value for row in product_report(deals)}
    assert products == {"VSC Platinum": 1, "GAP": 1, "Paint Protection": 1, "Tire & Wheel": 1, "VSC": 1}

    lenders = {row.name: row for row in lender_report(deals)}
    assert lenders["Chase"].deals == 2
    assert lenders["Chase"].profit == 2000
    assert lenders["Chase"].avg_profit == 1000
    assert lenders["Ally"].profit == 0


def test_top_lenders_skips_unknown():
    deals = normalize_deals([{"id": "a"}, {"id": "b"}, {"id": "c", "lender": "Chase"}])
    assert top_lenders(deals) == [{"name": "Chase", "count": 1}]


def test_funding_summary(deals):
    summary = funding_summary(deals)
    assert summary.funded == 1
    assert summary.pending == 3
    assert summary.funded_value == 600
    assert summary.funding_rate == 25


def test_report_csv(deals):
    text = report_csv("monthly", monthly_report(deals, 1, 10000, TODAY))
    lines = text.strip().split("\n")
    assert lines[0] == "Month,Deals,Back-End Profit,Average Profit,Products Per Deal,Goal"
    assert lines[1] == "Mar 2025,2,$2200.00,$1100.00,2.00,10000.00"

    text = report_csv("lenders", lender_report(deals))
    assert "Chase,2,$2000.00,$1000.00" in text

    with pytest.raises(ValueError):
        report_csv("weekly", [])


def test_build_user_context(deals):
    profile = {"name": "Dana", "role": "finance_manager", "targetVscPenetration": 70}
    context = build_user_context(deals, profile, TODAY)

    assert context["name"] == "Dana"
    assert context["current_month"]["month_name"] == "March"
    assert context["current_month"]["total_deals"] == 3
    assert context["previous_month"]["name"] == "February"
    assert context["previous_month"]["total_deals"] == 1
    assert context["previous_month"]["vsc_penetration"] == 100
    assert context["ytd_stats"]["total_deals"] == 4
    assert context["ytd_stats"]["approval_rate"] == pytest.approx(200 / 3)
    assert context["top_lenders"][0] == {"name": "Chase", "count": 2}
    assert context["target_vsc_penetration"] == 70
    assert context["target_gap_penetration"] == 50
    assert context["target_products_per_deal"] == 2.5


def test_metrics_routes(api, db):
    db.collection("users").document("u1").set({"monthlyTarget": 5000})
    db.collection("deals").add({
        "userId": "u1",
        "date": datetime.now(UTC),
        "products": ["VSC"],
        "profit": 1000,
        "lender": "Chase",
        "fundedDate": datetime.now(UTC),
    })
    db.collection("deals").add({"userId": "u2", "profit": 50})

    dashboard = api.get("/metrics/dashboard", params={"user_id": "u1"}).json()
    assert dashboard["total_deals"] == 1
    assert dashboard["goal_progress"] == 20

    funding = api.get("/metrics/funding").json()
    assert funding["funded"] == 1
    assert funding["pending"] == 1

    res = api.get("/metrics/reports/lenders", params={"user_id": "u1", "format": "csv"})
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/csv")
    assert "lenders_report_" in res.headers["content-disposition"]
    assert "Chase,1,$1000.00,$1000.00" in res.text

    assert api.get("/metrics/reports/weekly", params={"user_id": "u1"}).status_code == 400

    context = api.get("/metrics/context", params={"user_id": "u1"}).json()
    assert context["current_month"]["total_deals"] == 1


def test_dashboard_survives_malformed_deal(api, db):
    db.collection("deals").add({"userId": "u1", "date": datetime.now(UTC), "profit": 1000})
    db.collection("deals").add({"userId": "u1", "date": {"seconds": "oops"}, "profit": 200})
    db.collection("deals").add({"userId": "u1", "dateSold": 10**20, "totalProfit": "not a number"})

    res = api.get("/metrics/dashboard", params={"user_id": "u1"})
    assert res.status_code == 200
    assert res.json()["total_deals"] == 3

    assert api.get("/metrics/reports/monthly", params={"user_id": "u1"}).status_code == 200
    assert api.get("/metrics/context", params={"user_id": "u1"}).status_code == 200
