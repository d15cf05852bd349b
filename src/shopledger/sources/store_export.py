"""
Loader for the shop application's JSON table exports.

An export is one JSON file per table, each holding a list of rows exactly as
the store returned them (mixed camelCase/lowercase/snake_case keys):

    sales.json
    work_orders.json
    cash_transactions.json
    parts.json
    inventory_transactions.json

A file may also wrap its rows as ``{"<table>": [...]}`` or ``{"data": [...]}``.
Missing files load as empty streams. The loader normalizes every row and runs
quality checks per stream; nothing here changes what the engine computes.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import pandas as pd

from ..categories import CashCategory, is_excluded
from ..exceptions import InvalidTransactionError
from ..models import (
    CashTransactionRecord,
    InventoryTransaction,
    PartCostEntry,
    SaleRecord,
    WorkOrderRecord,
)
from ..normalizer import Normalizer
from ..parsers import TimestampParser
from ..quality import DataQualityChecker, DataQualityIssue, DataQualityReport, records_frame

logger = logging.getLogger(__name__)

# Sale totals are entered in whole VND; allow for rounding
TOTAL_TOLERANCE = 1.0


@dataclass
class LoadedSnapshot:
    """Container for all normalized record streams."""

    sales: list[SaleRecord] = field(default_factory=list)
    work_orders: list[WorkOrderRecord] = field(default_factory=list)
    cash_transactions: list[CashTransactionRecord] = field(default_factory=list)
    parts: list[PartCostEntry] = field(default_factory=list)
    inventory_transactions: list[InventoryTransaction] = field(default_factory=list)
    quality_reports: dict[str, DataQualityReport] = field(default_factory=dict)

    @property
    def has_critical_issues(self) -> bool:
        return any(report.has_critical_issues for report in self.quality_reports.values())


class StoreSnapshotLoader:
    """
    Normalizes a snapshot of store tables.

    Export quirks handled:
    - The same field under several spellings (handled by ``Normalizer``)
    - Timestamps with and without a UTC offset
    - Inventory rows with an unknown movement type (rejected and reported)
    - Rows that are not objects at all (dropped)

    Usage:
        snapshot = StoreSnapshotLoader.from_directory("exports/2024-08-25").load_all()
    """

    TABLE_FILES = {
        "sales": "sales.json",
        "work_orders": "work_orders.json",
        "cash_transactions": "cash_transactions.json",
        "parts": "parts.json",
        "inventory_transactions": "inventory_transactions.json",
    }

    def __init__(
        self,
        tables: Mapping[str, list[Any]] | None = None,
        timezone: str = "Asia/Ho_Chi_Minh",
    ):
        """
        Args:
            tables: raw rows per table name (keys of ``TABLE_FILES``)
            timezone: shop timezone used to read stored timestamps
        """
        self.tables = dict(tables or {})
        self.normalizer = Normalizer(TimestampParser(timezone))
        self._rejected_inventory: list[tuple[Any, str]] = []

    @classmethod
    def from_directory(
        cls, data_dir: Path | str, timezone: str = "Asia/Ho_Chi_Minh"
    ) -> "StoreSnapshotLoader":
        """Read every table file present in ``data_dir``."""
        data_dir = Path(data_dir)
        tables = {}
        for table, filename in cls.TABLE_FILES.items():
            path = data_dir / filename
            if not path.exists():
                logger.info("No %s in %s; loading an empty %s stream", filename, data_dir, table)
                tables[table] = []
                continue
            with open(path, encoding="utf-8") as f:
                tables[table] = cls._unwrap(json.load(f), table)
        return cls(tables, timezone)

    @staticmethod
    def _unwrap(data: Any, table: str) -> list[Any]:
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for key in (table, "data", "rows"):
                if isinstance(data.get(key), list):
                    return data[key]
        logger.warning("Unrecognized layout for %s export; loading it as empty", table)
        return []

    def load_all(self) -> LoadedSnapshot:
        """Normalize all tables and run quality checks."""
        sales = self.load_sales()
        work_orders = self.load_work_orders()
        cash = self.load_cash_transactions()
        parts = self.load_parts()
        inventory = self.load_inventory_transactions()

        quality_reports = {
            "sales": self._check_sales_quality(sales),
            "work_orders": self._check_work_order_quality(work_orders),
            "cash_transactions": self._check_cash_quality(cash),
            "parts": self._check_parts_quality(parts),
            "inventory_transactions": self._check_inventory_quality(inventory),
        }

        return LoadedSnapshot(
            sales=sales,
            work_orders=work_orders,
            cash_transactions=cash,
            parts=parts,
            inventory_transactions=inventory,
            quality_reports=quality_reports,
        )

    def load_sales(self) -> list[SaleRecord]:
        return self.normalizer.many(self.tables.get("sales", []), self.normalizer.sale)

    def load_work_orders(self) -> list[WorkOrderRecord]:
        return self.normalizer.many(self.tables.get("work_orders", []), self.normalizer.work_order)

    def load_cash_transactions(self) -> list[CashTransactionRecord]:
        return self.normalizer.many(
            self.tables.get("cash_transactions", []), self.normalizer.cash_transaction
        )

    def load_parts(self) -> list[PartCostEntry]:
        return self.normalizer.many(self.tables.get("parts", []), self.normalizer.part)

    def load_inventory_transactions(self) -> list[InventoryTransaction]:
        """
        Normalize ledger rows.

        Rows with an unknown movement type cannot be projected; they are left
        out and reported in the inventory quality report.
        """
        self._rejected_inventory = []
        records = []
        for row in self.tables.get("inventory_transactions", []):
            if not isinstance(row, Mapping):
                self._rejected_inventory.append((row, "not an object"))
                continue
            try:
                records.append(self.normalizer.inventory_transaction(row))
            except InvalidTransactionError as e:
                logger.warning("Rejecting inventory row %r: %s", row.get("id"), e)
                self._rejected_inventory.append((row.get("id"), str(e)))
        return records

    def _check_sales_quality(self, sales: list[SaleRecord]) -> DataQualityReport:
        """Run quality checks on sales."""
        df = records_frame(
            sales,
            {
                "id": lambda s: s.id,
                "branch_id": lambda s: s.branch_id,
                "raw_date": lambda s: s.raw_date,
                "occurred_at": lambda s: s.occurred_at,
                "total": lambda s: s.total,
                "total_gap": lambda s: s.total - s.expected_total,
            },
        )
        checker = DataQualityChecker("Sales", required_columns=["id", "branch_id"])
        checker.check_unparsed_dates("raw_date", "occurred_at")
        checker.check_duplicates(["id"], severity="critical")

        # Stored total should equal line totals minus discounts
        checker.check_invalid_values(
            "total_gap",
            validator=lambda gap: abs(gap) <= TOTAL_TOLERANCE,
            issue_type="total_mismatch",
            description="sales whose total differs from their line items",
        )
        checker.check_outliers("total", min_val=0, sample_column="id")

        return checker.run(df)

    def _check_work_order_quality(self, work_orders: list[WorkOrderRecord]) -> DataQualityReport:
        """Run quality checks on work orders."""
        df = records_frame(
            work_orders,
            {
                "id": lambda w: w.id,
                "branch_id": lambda w: w.branch_id,
                "raw_date": lambda w: w.raw_date,
                "revenue_at": lambda w: w.revenue_at,
                "total_paid": lambda w: w.total_paid,
                "paid_without_amount": lambda w: w.counts_as_revenue and w.collected == 0,
            },
        )
        checker = DataQualityChecker("Work Orders", required_columns=["id", "branch_id"])
        checker.check_unparsed_dates("raw_date", "revenue_at")
        checker.check_duplicates(["id"], severity="critical")
        checker.check_outliers("total_paid", min_val=0, sample_column="id")
        checker.check_invalid_values(
            "paid_without_amount",
            validator=lambda flagged: not flagged,
            severity="info",
            issue_type="zero_revenue",
            description="paid work orders with neither totalPaid nor total",
        )

        return checker.run(df)

    def _check_cash_quality(self, cash: list[CashTransactionRecord]) -> DataQualityReport:
        """Run quality checks on cash transactions."""
        df = records_frame(
            cash,
            {
                "id": lambda t: t.id,
                "branch_id": lambda t: t.branch_id,
                "raw_date": lambda t: t.raw_date,
                "occurred_at": lambda t: t.occurred_at,
                "raw_category": lambda t: t.raw_category,
                "category": lambda t: t.category.value,
                # Linked to a sale/work order yet counted as other income/expense
                "double_count_risk": lambda t: t.is_linked and not is_excluded(t.category),
            },
        )
        checker = DataQualityChecker("Cash Transactions", required_columns=["id", "branch_id"])
        checker.check_unparsed_dates("raw_date", "occurred_at")
        checker.check_duplicates(["id"], severity="critical")
        checker.check_invalid_values(
            "double_count_risk",
            validator=lambda risky: not risky,
            issue_type="double_count_risk",
            description="linked transactions with a category that is still counted",
        )
        checker.check_invalid_values(
            "category",
            validator=lambda value: value != CashCategory.OTHER.value,
            severity="info",
            issue_type="unknown_category",
            description="transactions with an unrecognized category (counted as other)",
        )

        return checker.run(df)

    def _check_parts_quality(self, parts: list[PartCostEntry]) -> DataQualityReport:
        """Run quality checks on the part master."""
        df = records_frame(
            parts,
            {
                "part_id": lambda p: p.part_id,
                "sku": lambda p: p.sku or None,
                "has_cost": lambda p: any(p.cost_price.values()),
            },
        )
        checker = DataQualityChecker("Parts", required_columns=["part_id"])
        checker.check_duplicates(["part_id"])
        checker.check_invalid_values(
            "has_cost",
            validator=bool,
            severity="info",
            issue_type="missing_cost",
            description="parts without a cost price at any branch",
        )

        def check_sku_collisions(d: pd.DataFrame) -> list[DataQualityIssue]:
            skus = d["sku"].dropna()
            collisions = int(skus.duplicated(keep=False).sum())
            if collisions > 0:
                return [
                    DataQualityIssue(
                        column="sku",
                        issue_type="duplicate",
                        severity="info",
                        count=collisions,
                        percentage=(collisions / len(d)) * 100,
                        sample_values=skus[skus.duplicated(keep=False)].head(5).tolist(),
                        description=f"{collisions} parts share a SKU; the first one wins in cost lookups",
                    )
                ]
            return []

        checker.add_check(check_sku_collisions)

        return checker.run(df)

    def _check_inventory_quality(
        self, transactions: list[InventoryTransaction]
    ) -> DataQualityReport:
        """Run quality checks on the inventory ledger."""
        df = records_frame(
            transactions,
            {
                "id": lambda t: t.id,
                "part_id": lambda t: t.part_id,
                "branch_id": lambda t: t.branch_id,
                "quantity": lambda t: t.quantity,
                "occurred_at": lambda t: t.occurred_at,
            },
        )
        checker = DataQualityChecker(
            "Inventory Transactions", required_columns=["id", "part_id", "branch_id"]
        )
        checker.check_duplicates(["id"], severity="critical")
        checker.check_invalid_values(
            "quantity",
            validator=lambda qty: qty > 0,
            issue_type="non_positive_quantity",
            description="movements with a quantity of 0 or less",
        )

        rejected = list(self._rejected_inventory)

        def check_rejected(d: pd.DataFrame) -> list[DataQualityIssue]:
            if not rejected:
                return []
            total = len(d) + len(rejected)
            return [
                DataQualityIssue(
                    column="type",
                    issue_type="invalid_type",
                    severity="critical",
                    count=len(rejected),
                    percentage=(len(rejected) / total) * 100,
                    sample_values=[key for key, _ in rejected[:5]],
                    description=f"{len(rejected)} rows rejected and left out of the projection",
                )
            ]

        checker.add_check(check_rejected)

        return checker.run(df)
