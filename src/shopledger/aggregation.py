"""
Financial aggregation across the sales, work-order and cash streams.

The three streams are entered independently, and the same economic event
often shows up twice: a repair paid in cash is a work order *and* a manual
"service" income entry. Revenue and cost are therefore taken from sales and
work orders, and cash transactions only contribute categories that are not
already covered (see ``categories``).
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Iterable, TypeVar

from .categories import is_excluded_expense, is_excluded_income
from .costing import CostResolver, CostSource
from .dates import DateRange
from .models import (
    CashTransactionRecord,
    CashTransactionType,
    PartCostEntry,
    SaleRecord,
    WorkOrderRecord,
)

logger = logging.getLogger(__name__)

R = TypeVar("R", SaleRecord, WorkOrderRecord, CashTransactionRecord)


@dataclass
class AggregateResult:
    """Financial totals for one branch and date range."""

    revenue: float = 0.0
    gross_profit: float = 0.0
    profit: float = 0.0  # Net of other income and operating expense
    income: float = 0.0  # Cash income not already counted as sales/service revenue
    expense: float = 0.0  # Cash expense not already counted as COGS
    customer_count: int = 0
    order_count: int = 0

    sales_revenue: float = 0.0
    sales_cogs: float = 0.0
    work_order_revenue: float = 0.0
    work_order_cogs: float = 0.0
    sales_count: int = 0
    work_order_count: int = 0

    skipped_records: int = 0  # Unreadable dates, left out of the totals
    missing_cost_lines: int = 0  # Lines costed at 0 for lack of cost data
    diagnostics: list[str] = field(default_factory=list)

    @property
    def sales_profit(self) -> float:
        return self.sales_revenue - self.sales_cogs

    @property
    def work_order_profit(self) -> float:
        return self.work_order_revenue - self.work_order_cogs

    @property
    def cogs(self) -> float:
        return self.sales_cogs + self.work_order_cogs

    def to_dict(self) -> dict:
        return asdict(self)

    def summary(self) -> dict:
        """Return a summary dict for display."""
        return {
            "revenue": self.revenue,
            "gross_profit": self.gross_profit,
            "profit": self.profit,
            "income": self.income,
            "expense": self.expense,
            "customers": self.customer_count,
            "orders": self.order_count,
        }


class AggregationEngine:
    """
    Folds the three transaction streams into one ``AggregateResult``.

    The engine holds no state besides the part master used for costing, and
    never mutates its inputs; call ``aggregate`` again with a fresh snapshot
    whenever the data changes.

    Usage:
        engine = AggregationEngine(CostResolver(parts))
        result = engine.aggregate(sales, work_orders, cash, "CN1", date_range)
    """

    def __init__(self, cost_resolver: CostResolver | None = None):
        self.cost_resolver = cost_resolver or CostResolver()

    def _in_scope(
        self,
        records: Iterable[R],
        branch_id: str | None,
        date_range: DateRange,
        stream: str,
    ) -> tuple[list[R], int]:
        """Records of the branch whose local date falls in the range, plus skip count."""
        selected = []
        skipped = 0
        for record in records:
            if branch_id is not None and record.branch_id != branch_id:
                continue
            day = record.local_date
            if day is None:
                skipped += 1
                logger.debug(
                    "Skipping %s %r: unreadable date %r", stream, record.id, record.raw_date
                )
                continue
            if date_range.contains(day):
                selected.append(record)
        return selected, skipped

    def filter_sales(
        self, sales: Iterable[SaleRecord], branch_id: str | None, date_range: DateRange
    ) -> tuple[list[SaleRecord], int]:
        return self._in_scope(sales, branch_id, date_range, "sale")

    def filter_work_orders(
        self,
        work_orders: Iterable[WorkOrderRecord],
        branch_id: str | None,
        date_range: DateRange,
    ) -> tuple[list[WorkOrderRecord], int]:
        """Work orders dated (payment, else creation) in range that count as revenue."""
        in_range, skipped = self._in_scope(work_orders, branch_id, date_range, "work order")
        return [wo for wo in in_range if wo.counts_as_revenue], skipped

    def filter_cash(
        self,
        cash_transactions: Iterable[CashTransactionRecord],
        branch_id: str | None,
        date_range: DateRange,
    ) -> tuple[list[CashTransactionRecord], int]:
        return self._in_scope(cash_transactions, branch_id, date_range, "cash transaction")

    def aggregate(
        self,
        sales: Iterable[SaleRecord],
        work_orders: Iterable[WorkOrderRecord],
        cash_transactions: Iterable[CashTransactionRecord],
        branch_id: str | None,
        date_range: DateRange,
    ) -> AggregateResult:
        """
        Aggregate one branch over an inclusive local date range.

        Args:
            branch_id: branch to report on; None aggregates every branch
            date_range: output of ``dates.resolve``

        Returns:
            AggregateResult with the totals, the per-stream breakdown and any
            diagnostics (skipped records, missing costs, range fallback).
        """
        result = AggregateResult()

        period_sales, skipped_sales = self.filter_sales(sales, branch_id, date_range)
        period_orders, skipped_orders = self.filter_work_orders(
            work_orders, branch_id, date_range
        )
        period_cash, skipped_cash = self.filter_cash(cash_transactions, branch_id, date_range)
        result.skipped_records = skipped_sales + skipped_orders + skipped_cash

        # Sales
        for sale in period_sales:
            result.sales_revenue += sale.total
            for item in sale.items:
                cost, source = self.cost_resolver.line_cost(item, sale.branch_id)
                result.sales_cogs += cost
                if source is CostSource.MISSING:
                    result.missing_cost_lines += 1

        # Work orders
        for order in period_orders:
            result.work_order_revenue += order.collected
            for part in order.parts:
                cost, source = self.cost_resolver.line_cost(part, order.branch_id)
                result.work_order_cogs += cost
                if source is CostSource.MISSING:
                    result.missing_cost_lines += 1
            for service in order.services:
                result.work_order_cogs += service.cost_price * service.quantity

        # Cash movements not already covered by the two streams above
        for tx in period_cash:
            if tx.type is CashTransactionType.INCOME:
                if not is_excluded_income(tx.category):
                    result.income += tx.amount
            elif not is_excluded_expense(tx.category):
                result.expense += tx.amount

        result.sales_count = len(period_sales)
        result.work_order_count = len(period_orders)
        result.order_count = result.sales_count + result.work_order_count

        result.revenue = result.sales_revenue + result.work_order_revenue + result.income
        result.gross_profit = result.sales_profit + result.work_order_profit
        result.profit = result.gross_profit + result.income - result.expense

        customer_keys = {sale.customer.key for sale in period_sales}
        customer_keys.update(order.customer_key for order in period_orders)
        customer_keys.discard("")
        result.customer_count = len(customer_keys)

        result.diagnostics = self._diagnostics(result, date_range)
        return result

    def _diagnostics(self, result: AggregateResult, date_range: DateRange) -> list[str]:
        messages = []
        if date_range.diagnostic:
            messages.append(date_range.diagnostic)
        if result.skipped_records:
            messages.append(
                f"{result.skipped_records} records with unreadable dates were left out"
            )
            logger.info(
                "Aggregation %s..%s skipped %d records with unreadable dates",
                date_range.start,
                date_range.end,
                result.skipped_records,
            )
        if result.missing_cost_lines:
            messages.append(
                f"{result.missing_cost_lines} line items have no cost price; COGS is understated"
            )
        return messages


def aggregate(
    sales: Iterable[SaleRecord],
    work_orders: Iterable[WorkOrderRecord],
    cash_transactions: Iterable[CashTransactionRecord],
    branch_id: str | None,
    date_range: DateRange,
    parts: Iterable[PartCostEntry] = (),
) -> AggregateResult:
    """Aggregate with a cost resolver built from ``parts``."""
    engine = AggregationEngine(CostResolver(parts))
    return engine.aggregate(sales, work_orders, cash_transactions, branch_id, date_range)
