"""Tests for the ledger/store stock cross-check."""

import pytest

from shopledger.ledger import project
from shopledger.models import InventoryTransaction, InventoryTransactionType, PartCostEntry
from shopledger.reconciliation import StockMatchType, StockReconciler, reconcile_stock


@pytest.fixture
def projection(inventory_transactions):
    return project(inventory_transactions)


class TestStockReconciler:
    def test_fixture_snapshot(self, projection, parts):
        result = reconcile_stock(projection, parts)

        assert result.total_records == 3
        assert result.matched_records == 2
        assert result.match_rate == pytest.approx(2 / 3)

        drift = result.unmatched_items()
        assert len(drift) == 1
        assert (drift[0].part_id, drift[0].branch_id) == ("P2", "CN1")
        assert drift[0].match_type is StockMatchType.DRIFT
        assert drift[0].difference == 1

    def test_single_branch(self, projection, parts):
        result = StockReconciler(projection, parts).reconcile("CN2")
        assert result.total_records == 1
        assert result.match_rate == 1
        assert result.summary()["branch"] == "CN2"

    def test_one_sided_pairs(self):
        ledger = [
            InventoryTransaction(
                id="T1",
                type=InventoryTransactionType.RECEIPT,
                part_id="P9",
                part_name="Unlisted",
                quantity=2,
                branch_id="CN1",
            )
        ]
        parts = [
            PartCostEntry(part_id="P1", stock={"CN1": 4}),
            PartCostEntry(part_id="P2", stock={"CN1": 0}),
        ]
        result = reconcile_stock(project(ledger), parts, "CN1")
        types = {m.part_id: m.match_type for m in result.matches}
        assert types == {
            "P1": StockMatchType.STORE_ONLY,
            "P2": StockMatchType.MATCHED,
            "P9": StockMatchType.LEDGER_ONLY,
        }

    def test_tolerance(self, projection, parts):
        result = reconcile_stock(projection, parts, tolerance=1)
        assert result.unmatched_items() == []

    def test_empty_inputs(self):
        result = reconcile_stock(project([]), [])
        assert result.total_records == 0
        assert result.match_rate == 0
        assert result.to_frame().empty

    def test_summary_and_frame(self, projection, parts):
        result = reconcile_stock(projection, parts, "CN1")
        assert result.summary() == {
            "branch": "CN1",
            "total": 2,
            "matched": 1,
            "unmatched": 1,
            "match_rate": "50.0%",
        }
        frame = result.to_frame()
        assert list(frame["match_type"]) == ["matched", "drift"]
