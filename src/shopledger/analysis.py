"""
Dashboard analytics built on the aggregation engine and the ledger.

Computes:
- Top products and top customers
- Work order status breakdown
- Daily and monthly series
- Period-over-period comparison
- Low-stock alerts

Every series reuses ``AggregationEngine.aggregate`` so a chart and the
headline figures never disagree.
"""

from datetime import date, timedelta
from typing import Iterable

import pandas as pd
from dateutil.relativedelta import relativedelta

from .aggregation import AggregationEngine
from .dates import DateRange, month_range
from .ledger import StockProjection
from .models import (
    CashTransactionRecord,
    LineItem,
    PartCostEntry,
    SaleRecord,
    WorkOrderRecord,
    WorkOrderStatus,
)


def _branch_match(record_branch: str, branch_id: str | None) -> bool:
    return branch_id is None or record_branch == branch_id


def _product_row(item: LineItem) -> dict:
    return {
        "part_id": item.part_id or item.part_name,
        "part_name": item.part_name,
        "quantity": item.quantity,
        "revenue": item.gross_amount,
    }


def top_products(
    sales: Iterable[SaleRecord],
    work_orders: Iterable[WorkOrderRecord],
    branch_id: str | None,
    date_range: DateRange,
    limit: int = 10,
) -> pd.DataFrame:
    """
    Best-selling parts by quantity.

    Sales are dated by sale date, work orders by creation date; cancelled
    work orders are left out. Service lines are not products.

    Returns DataFrame with:
    - part_id (part id, else part name)
    - part_name
    - quantity
    - revenue (quantity x unit price)
    """
    rows = []
    for sale in sales:
        if not _branch_match(sale.branch_id, branch_id) or not date_range.contains(sale.local_date):
            continue
        rows.extend(_product_row(item) for item in sale.items if not item.is_service)
    for order in work_orders:
        if order.is_cancelled or not _branch_match(order.branch_id, branch_id):
            continue
        if not date_range.contains(order.created_date):
            continue
        rows.extend(_product_row(part) for part in order.parts)

    columns = ["part_id", "part_name", "quantity", "revenue"]
    df = pd.DataFrame(rows, columns=columns)
    df = df[df["part_id"] != ""]
    if df.empty:
        return pd.DataFrame(columns=columns)

    ranked = (
        df.groupby("part_id")
        .agg(part_name=("part_name", "first"), quantity=("quantity", "sum"), revenue=("revenue", "sum"))
        .reset_index()
        .sort_values(["quantity", "revenue", "part_id"], ascending=[False, False, True])
    )
    return ranked.head(limit).reset_index(drop=True)


def work_order_status_counts(
    work_orders: Iterable[WorkOrderRecord],
    branch_id: str | None,
    date_range: DateRange,
) -> dict[str, int]:
    """Work orders created in range, counted per status (every status present)."""
    counts = {status.value: 0 for status in WorkOrderStatus}
    for order in work_orders:
        if _branch_match(order.branch_id, branch_id) and date_range.contains(order.created_date):
            counts[order.status.value] += 1
    return counts


def _customer_row(key: str, name: str, phone: str, amount: float) -> dict:
    return {"customer_key": key, "name": name, "phone": phone, "amount": amount}


def top_customers(
    sales: Iterable[SaleRecord],
    work_orders: Iterable[WorkOrderRecord],
    branch_id: str | None = None,
    limit: int = 10,
) -> pd.DataFrame:
    """
    Customers ranked by total spending, all time.

    Customers are keyed by phone, else name. Work orders only count once
    they count as revenue.

    Returns DataFrame with: customer_key, name, phone, total_spent, order_count
    """
    rows = [
        _customer_row(sale.customer.key, sale.customer.name, sale.customer.phone, sale.total)
        for sale in sales
        if _branch_match(sale.branch_id, branch_id)
    ]
    rows.extend(
        _customer_row(order.customer_key, order.customer_name, order.customer_phone, order.collected)
        for order in work_orders
        if order.counts_as_revenue and _branch_match(order.branch_id, branch_id)
    )

    columns = ["customer_key", "name", "phone", "total_spent", "order_count"]
    df = pd.DataFrame(rows, columns=["customer_key", "name", "phone", "amount"])
    df = df[df["customer_key"] != ""]
    if df.empty:
        return pd.DataFrame(columns=columns)

    ranked = (
        df.groupby("customer_key")
        .agg(
            name=("name", "first"),
            phone=("phone", "first"),
            total_spent=("amount", "sum"),
            order_count=("amount", "count"),
        )
        .reset_index()
        .sort_values(["total_spent", "customer_key"], ascending=[False, True])
    )
    return ranked[columns].head(limit).reset_index(drop=True)


def daily_series(
    engine: AggregationEngine,
    sales: Iterable[SaleRecord],
    work_orders: Iterable[WorkOrderRecord],
    cash_transactions: Iterable[CashTransactionRecord],
    branch_id: str | None,
    end: date,
    days: int = 7,
) -> pd.DataFrame:
    """
    Per-day revenue, gross profit and profit for the ``days`` days ending at ``end``.

    Returns DataFrame with: date, revenue, gross_profit, profit (oldest first)
    """
    sales, work_orders, cash_transactions = list(sales), list(work_orders), list(cash_transactions)
    rows = []
    for offset in range(days - 1, -1, -1):
        day = end - timedelta(days=offset)
        result = engine.aggregate(
            sales, work_orders, cash_transactions, branch_id, DateRange(day, day, day.isoformat())
        )
        rows.append(
            {
                "date": day,
                "revenue": result.revenue,
                "gross_profit": result.gross_profit,
                "profit": result.profit,
            }
        )
    return pd.DataFrame(rows, columns=["date", "revenue", "gross_profit", "profit"])


def monthly_trend(
    engine: AggregationEngine,
    sales: Iterable[SaleRecord],
    work_orders: Iterable[WorkOrderRecord],
    cash_transactions: Iterable[CashTransactionRecord],
    branch_id: str | None,
    now: date,
    months: int = 6,
) -> pd.DataFrame:
    """
    Full calendar months up to and including the month of ``now``.

    Returns DataFrame with: month ("YYYY-MM"), revenue, profit, order_count
    """
    sales, work_orders, cash_transactions = list(sales), list(work_orders), list(cash_transactions)
    first = now.replace(day=1)
    rows = []
    for offset in range(months - 1, -1, -1):
        month_start = first - relativedelta(months=offset)
        period = month_range(month_start.year, month_start.month)
        result = engine.aggregate(sales, work_orders, cash_transactions, branch_id, period)
        rows.append(
            {
                "month": period.label,
                "revenue": result.revenue,
                "profit": result.profit,
                "order_count": result.order_count,
            }
        )
    return pd.DataFrame(rows, columns=["month", "revenue", "profit", "order_count"])


def change_percentage(current: float, previous: float) -> float:
    """Relative change in percent; 0 when there is nothing to compare to."""
    if previous == 0:
        return 0.0
    return (current - previous) / abs(previous) * 100


def period_comparison(
    engine: AggregationEngine,
    sales: Iterable[SaleRecord],
    work_orders: Iterable[WorkOrderRecord],
    cash_transactions: Iterable[CashTransactionRecord],
    branch_id: str | None,
    current: DateRange,
    previous: DateRange,
) -> dict:
    """Revenue and profit of two periods with their change percentages."""
    sales, work_orders, cash_transactions = list(sales), list(work_orders), list(cash_transactions)
    now = engine.aggregate(sales, work_orders, cash_transactions, branch_id, current)
    before = engine.aggregate(sales, work_orders, cash_transactions, branch_id, previous)
    return {
        "current_label": current.label,
        "previous_label": previous.label,
        "current_revenue": now.revenue,
        "previous_revenue": before.revenue,
        "revenue_change_pct": change_percentage(now.revenue, before.revenue),
        "current_profit": now.profit,
        "previous_profit": before.profit,
        "profit_change_pct": change_percentage(now.profit, before.profit),
    }


def low_stock_alerts(
    projection: StockProjection,
    parts: Iterable[PartCostEntry],
    branch_id: str,
    threshold: float = 10,
) -> pd.DataFrame:
    """
    Parts whose projected stock at the branch is below ``threshold``.

    Master parts with no movements at the branch project to 0.

    Returns DataFrame with: part_id, name, sku, stock (lowest first)
    """
    levels = projection.for_branch(branch_id)
    rows = []
    seen = set()
    for part in parts:
        if not part.part_id or part.part_id in seen:
            continue
        seen.add(part.part_id)
        rows.append(
            {
                "part_id": part.part_id,
                "name": part.name,
                "sku": part.sku,
                "stock": levels.get(part.part_id, 0.0),
            }
        )
    rows.extend(
        {"part_id": part_id, "name": "", "sku": "", "stock": qty}
        for part_id, qty in levels.items()
        if part_id not in seen
    )

    columns = ["part_id", "name", "sku", "stock"]
    df = pd.DataFrame(rows, columns=columns)
    alerts = df[df["stock"] < threshold]
    return alerts.sort_values(["stock", "part_id"]).reset_index(drop=True)
