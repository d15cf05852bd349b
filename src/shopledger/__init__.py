# Reconciliation and aggregation engine for a multi-branch repair shop
# Pure functions over normalized snapshots; no I/O outside shopledger.sources and the CLI

from .aggregation import AggregateResult, AggregationEngine, aggregate
from .analysis import (
    daily_series,
    low_stock_alerts,
    monthly_trend,
    period_comparison,
    top_customers,
    top_products,
    work_order_status_counts,
)
from .categories import CashCategory, decode_category, is_excluded_expense, is_excluded_income
from .costing import CostResolver, CostSource
from .dates import DateRange, Preset, previous_range, resolve
from .exceptions import DuplicateTransactionIdError, InvalidTransactionError, LedgerError
from .ledger import StockProjection, append, history, project, valuation
from .normalizer import Normalizer
from .parsers import TimestampParser
from .quality import DataQualityChecker, DataQualityReport
from .reconciliation import StockReconciler, StockReconciliationResult, reconcile_stock

__version__ = "0.1.0"

__all__ = [
    "AggregateResult",
    "AggregationEngine",
    "aggregate",
    "daily_series",
    "low_stock_alerts",
    "monthly_trend",
    "period_comparison",
    "top_customers",
    "top_products",
    "work_order_status_counts",
    "CashCategory",
    "decode_category",
    "is_excluded_expense",
    "is_excluded_income",
    "CostResolver",
    "CostSource",
    "DateRange",
    "Preset",
    "previous_range",
    "resolve",
    "DuplicateTransactionIdError",
    "InvalidTransactionError",
    "LedgerError",
    "StockProjection",
    "append",
    "history",
    "project",
    "valuation",
    "Normalizer",
    "TimestampParser",
    "DataQualityChecker",
    "DataQualityReport",
    "StockReconciler",
    "StockReconciliationResult",
    "reconcile_stock",
]
