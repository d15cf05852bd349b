"""
Cross-check of replayed stock against the stock the store reports.

The store adjusts its per-branch stock column when it inserts a ledger row,
so the two figures should agree. When they do not, something wrote stock
without a ledger entry (or the other way round). The remedy is to re-fetch
and recompute; this module only reports.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

import numpy as np
import pandas as pd

from .ledger import StockProjection
from .models import PartCostEntry


class StockMatchType(Enum):
    """How a (part, branch) pair compared."""

    MATCHED = "matched"  # Same quantity on both sides
    DRIFT = "drift"  # Both sides know the part, quantities differ
    LEDGER_ONLY = "ledger_only"  # Ledger has stock, store reports none
    STORE_ONLY = "store_only"  # Store reports stock with no ledger movements


@dataclass
class StockMatch:
    part_id: str
    branch_id: str
    ledger_quantity: float
    store_quantity: float
    match_type: StockMatchType

    @property
    def difference(self) -> float:
        """Ledger minus store."""
        return self.ledger_quantity - self.store_quantity


@dataclass
class StockReconciliationResult:
    """Summary of the ledger/store comparison."""

    branch_id: str | None
    total_records: int
    matched_records: int
    matches: list[StockMatch] = field(default_factory=list)

    @property
    def unmatched_records(self) -> int:
        return self.total_records - self.matched_records

    @property
    def match_rate(self) -> float:
        if self.total_records == 0:
            return 0
        return self.matched_records / self.total_records

    def unmatched_items(self) -> list[StockMatch]:
        return [m for m in self.matches if m.match_type is not StockMatchType.MATCHED]

    def to_frame(self) -> pd.DataFrame:
        rows = [
            {
                "part_id": m.part_id,
                "branch_id": m.branch_id,
                "ledger_quantity": m.ledger_quantity,
                "store_quantity": m.store_quantity,
                "difference": m.difference,
                "match_type": m.match_type.value,
            }
            for m in self.matches
        ]
        return pd.DataFrame(
            rows,
            columns=[
                "part_id",
                "branch_id",
                "ledger_quantity",
                "store_quantity",
                "difference",
                "match_type",
            ],
        )

    def summary(self) -> dict:
        return {
            "branch": self.branch_id or "all",
            "total": self.total_records,
            "matched": self.matched_records,
            "unmatched": self.unmatched_records,
            "match_rate": f"{self.match_rate:.1%}",
        }


class StockReconciler:
    """
    Compares a ledger projection with store-reported stock.

    A pair known to only one side counts as matched when that side is 0.

    Usage:
        reconciler = StockReconciler(project(ledger), parts)
        result = reconciler.reconcile("CN1")
        for item in result.unmatched_items():
            ...
    """

    def __init__(
        self,
        projection: StockProjection,
        parts: Iterable[PartCostEntry],
        tolerance: float = 0.0,
    ):
        self.projection = projection
        self.parts = list(parts)
        self.tolerance = tolerance

    def _store_frame(self) -> pd.DataFrame:
        rows = [
            {"part_id": part.part_id, "branch_id": branch, "store_quantity": qty}
            for part in self.parts
            if part.part_id
            for branch, qty in part.stock.items()
        ]
        frame = pd.DataFrame(rows, columns=["part_id", "branch_id", "store_quantity"])
        # First master row per part wins, as in the cost lookup
        return frame.drop_duplicates(subset=["part_id", "branch_id"], keep="first")

    def reconcile(self, branch_id: str | None = None) -> StockReconciliationResult:
        """
        Compare both sides, optionally for one branch only.

        Args:
            branch_id: branch to check; None checks every branch
        """
        ledger = self.projection.to_frame().rename(columns={"stock": "ledger_quantity"})
        store = self._store_frame()
        if branch_id is not None:
            ledger = ledger[ledger["branch_id"] == branch_id]
            store = store[store["branch_id"] == branch_id]

        merged = ledger.merge(store, on=["part_id", "branch_id"], how="outer", indicator=True)
        merged = merged.sort_values(["part_id", "branch_id"]).reset_index(drop=True)
        merged["ledger_quantity"] = merged["ledger_quantity"].fillna(0.0).astype(float)
        merged["store_quantity"] = merged["store_quantity"].fillna(0.0).astype(float)

        within = (merged["ledger_quantity"] - merged["store_quantity"]).abs() <= self.tolerance
        merged["match_type"] = np.select(
            [
                within,
                merged["_merge"] == "left_only",
                merged["_merge"] == "right_only",
            ],
            [
                StockMatchType.MATCHED.value,
                StockMatchType.LEDGER_ONLY.value,
                StockMatchType.STORE_ONLY.value,
            ],
            default=StockMatchType.DRIFT.value,
        )

        matches = [
            StockMatch(
                part_id=row.part_id,
                branch_id=row.branch_id,
                ledger_quantity=float(row.ledger_quantity),
                store_quantity=float(row.store_quantity),
                match_type=StockMatchType(row.match_type),
            )
            for row in merged.itertuples(index=False)
        ]
        matched = sum(1 for m in matches if m.match_type is StockMatchType.MATCHED)

        return StockReconciliationResult(
            branch_id=branch_id,
            total_records=len(matches),
            matched_records=matched,
            matches=matches,
        )


def reconcile_stock(
    projection: StockProjection,
    parts: Iterable[PartCostEntry],
    branch_id: str | None = None,
    tolerance: float = 0.0,
) -> StockReconciliationResult:
    """Convenience wrapper around ``StockReconciler``."""
    return StockReconciler(projection, parts, tolerance).reconcile(branch_id)
