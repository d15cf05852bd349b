"""Tests for dashboard analytics."""

from datetime import date

import pytest

from shopledger.aggregation import AggregationEngine
from shopledger.analysis import (
    change_percentage,
    daily_series,
    low_stock_alerts,
    monthly_trend,
    period_comparison,
    top_customers,
    top_products,
    work_order_status_counts,
)
from shopledger.dates import DateRange, month_range
from shopledger.ledger import project


@pytest.fixture
def engine(resolver):
    return AggregationEngine(resolver)


def test_top_products(sales, work_orders, period):
    df = top_products(sales, work_orders, "CN1", period)
    assert list(df["part_id"]) == ["P2", "P1"]
    assert list(df["quantity"]) == [3, 2]
    assert df.loc[0, "revenue"] == pytest.approx(360000)


def test_top_products_limit_and_empty(sales, work_orders, period):
    assert len(top_products(sales, work_orders, "CN1", period, limit=1)) == 1
    empty = top_products([], [], "CN1", period)
    assert empty.empty
    assert list(empty.columns) == ["part_id", "part_name", "quantity", "revenue"]


def test_work_order_status_counts(work_orders, period):
    counts = work_order_status_counts(work_orders, "CN1", period)
    assert counts == {
        "received": 1,
        "in_progress": 1,
        "done": 0,
        "delivered": 0,
        "cancelled": 1,
    }


def test_top_customers(sales, work_orders):
    df = top_customers(sales, work_orders, "CN1")
    assert list(df["customer_key"]) == ["0901", "0903", "0902"]
    first = df.iloc[0]
    assert first["total_spent"] == pytest.approx(750000)
    assert first["order_count"] == 2
    # Unpaid and cancelled work orders do not count
    assert "Dũng" not in set(df["name"])


def test_daily_series(engine, sales, work_orders, cash_transactions):
    df = daily_series(engine, sales, work_orders, cash_transactions, "CN1", date(2024, 8, 21), days=3)
    assert list(df["date"]) == [date(2024, 8, 19), date(2024, 8, 20), date(2024, 8, 21)]
    assert list(df["revenue"]) == pytest.approx([0, 700000, 600000])
    assert list(df["gross_profit"]) == pytest.approx([0, 500000, 310000])
    assert list(df["profit"]) == pytest.approx([0, 500000, 160000])


def test_daily_series_matches_period_total(engine, sales, work_orders, cash_transactions, period):
    df = daily_series(engine, sales, work_orders, cash_transactions, "CN1", period.end, days=period.days)
    total = engine.aggregate(sales, work_orders, cash_transactions, "CN1", period)
    assert df["revenue"].sum() == pytest.approx(total.revenue)
    assert df["profit"].sum() == pytest.approx(total.profit)


def test_monthly_trend(engine, sales, work_orders, cash_transactions):
    df = monthly_trend(engine, sales, work_orders, cash_transactions, "CN1", date(2024, 8, 21), months=2)
    assert list(df["month"]) == ["2024-07", "2024-08"]
    assert list(df["revenue"]) == pytest.approx([0, 1300000])
    assert list(df["order_count"]) == [0, 4]


def test_period_comparison(engine, sales, work_orders, cash_transactions):
    current = month_range(2024, 8)
    previous = month_range(2024, 7)
    comparison = period_comparison(
        engine, sales, work_orders, cash_transactions, "CN1", current, previous
    )
    assert comparison["current_revenue"] == pytest.approx(1300000)
    assert comparison["previous_revenue"] == 0
    assert comparison["revenue_change_pct"] == 0


def test_period_comparison_against_earlier_days(engine, sales, work_orders, cash_transactions):
    day_before = DateRange(date(2024, 8, 20), date(2024, 8, 20))
    day = DateRange(date(2024, 8, 21), date(2024, 8, 21))
    comparison = period_comparison(engine, sales, work_orders, cash_transactions, "CN1", day, day_before)
    # 600,000 against 700,000
    assert comparison["revenue_change_pct"] == pytest.approx(-100 / 7)


@pytest.mark.parametrize(
    "current,previous,expected",
    [(150, 100, 50.0), (50, 100, -50.0), (100, 0, 0.0), (-50, -100, 50.0)],
)
def test_change_percentage(current, previous, expected):
    assert change_percentage(current, previous) == pytest.approx(expected)


def test_low_stock_alerts(inventory_transactions, parts):
    projection = project(inventory_transactions)
    alerts = low_stock_alerts(projection, parts, "CN1", threshold=5)
    assert list(alerts["part_id"]) == ["P2"]
    assert alerts.loc[0, "stock"] == 4

    everything = low_stock_alerts(projection, parts, "CN1", threshold=10)
    assert list(everything["part_id"]) == ["P2", "P1"]


def test_low_stock_alerts_include_parts_without_movements(parts):
    alerts = low_stock_alerts(project([]), parts, "CN3", threshold=1)
    assert set(alerts["part_id"]) == {"P1", "P2"}
    assert (alerts["stock"] == 0).all()
