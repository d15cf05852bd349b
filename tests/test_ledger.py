"""Tests for the inventory ledger and stock projection."""

import itertools
import random
from datetime import date, datetime

import pytest
import pytz

from shopledger.dates import DateRange
from shopledger.exceptions import DuplicateTransactionIdError, InvalidTransactionError
from shopledger.ledger import append, history, new_transaction, project, valuation, valuation_frame
from shopledger.models import InventoryTransaction, InventoryTransactionType

RECEIPT = InventoryTransactionType.RECEIPT
ISSUE = InventoryTransactionType.ISSUE
TZ = pytz.timezone("Asia/Ho_Chi_Minh")


def movement(tx_id, tx_type, quantity, part_id="P1", branch_id="CN1", day=1, **kwargs):
    return InventoryTransaction(
        id=tx_id,
        type=tx_type,
        part_id=part_id,
        part_name=f"Part {part_id}",
        quantity=quantity,
        occurred_at=TZ.localize(datetime(2024, 8, day, 9)),
        branch_id=branch_id,
        **kwargs,
    )


class TestProject:
    def test_receipt_then_issue(self):
        ledger = [movement("T1", RECEIPT, 10), movement("T2", ISSUE, 3, day=2)]
        assert project(ledger).get("P1", "CN1") == 7

    def test_empty_ledger(self):
        projection = project([])
        assert projection.stock == {}
        assert projection.get("P1", "CN1") == 0
        assert projection.transaction_count == 0

    def test_order_independent(self):
        ledger = [
            movement("T1", RECEIPT, 10),
            movement("T2", ISSUE, 3),
            movement("T3", RECEIPT, 4, part_id="P2"),
            movement("T4", ISSUE, 6, branch_id="CN2"),
            movement("T5", RECEIPT, 2.5),
        ]
        expected = project(ledger).stock
        for perm in itertools.permutations(ledger):
            assert project(perm).stock == expected

        rng = random.Random(7)
        shuffled = ledger[:]
        rng.shuffle(shuffled)
        assert project(shuffled).stock == expected

    def test_branches_are_separate(self, inventory_transactions):
        projection = project(inventory_transactions)
        assert projection.get("P1", "CN1") == 7
        assert projection.get("P1", "CN2") == 5
        assert projection.get("P2", "CN1") == 4
        assert projection.for_branch("CN1") == {"P1": 7, "P2": 4}

    def test_negative_stock_allowed_and_reported(self):
        projection = project([movement("T1", RECEIPT, 2), movement("T2", ISSUE, 5)])
        assert projection.get("P1", "CN1") == -3
        assert projection.has_warnings
        assert projection.negative[0].part_id == "P1"
        assert projection.negative[0].quantity == -3

    def test_to_frame(self, inventory_transactions):
        frame = project(inventory_transactions).to_frame()
        assert list(frame.columns) == ["part_id", "branch_id", "stock"]
        assert len(frame) == 3


class TestAppend:
    def test_returns_new_ledger(self):
        ledger = (movement("T1", RECEIPT, 10),)
        extended = append(ledger, movement("T2", ISSUE, 3))
        assert len(ledger) == 1
        assert [tx.id for tx in extended] == ["T1", "T2"]
        assert project(extended).get("P1", "CN1") == 7

    def test_duplicate_id_rejected(self):
        ledger = (movement("T1", RECEIPT, 10),)
        with pytest.raises(DuplicateTransactionIdError) as excinfo:
            append(ledger, movement("T1", ISSUE, 3))
        assert excinfo.value.transaction_id == "T1"

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"quantity": 0}, "quantity"),
            ({"quantity": -2}, "quantity"),
            ({"part_id": ""}, "part_id"),
            ({"part_name": ""}, "part_id"),
            ({"branch_id": ""}, "branch_id"),
            ({"id": ""}, "id"),
        ],
    )
    def test_malformed_rejected(self, overrides, field):
        bad = movement("T2", RECEIPT, 1).model_copy(update=overrides)
        with pytest.raises(InvalidTransactionError) as excinfo:
            append((), bad)
        assert excinfo.value.field == field

    def test_invalid_transaction_is_value_error(self):
        with pytest.raises(ValueError):
            append((), movement("T1", RECEIPT, 0))

    def test_total_price_filled(self):
        extended = append((), movement("T1", RECEIPT, 4, unit_price=25000))
        assert extended[0].total_price == 100000

    def test_explicit_total_price_kept(self):
        extended = append((), movement("T1", RECEIPT, 4, unit_price=25000, total_price=90000))
        assert extended[0].total_price == 90000

    def test_new_transaction_helper(self):
        tx = new_transaction(
            RECEIPT, "P1", "Lốp trước", 3, "CN1", TZ.localize(datetime(2024, 8, 1)), unit_price=1000
        )
        assert tx.id
        assert tx.total_price == 3000
        assert append((), tx)[0] is tx


class TestValuationAndHistory:
    def test_valuation_at_branch_cost(self, inventory_transactions, resolver):
        projection = project(inventory_transactions)
        # 7 x 90,000 + 4 x 70,000
        assert valuation(projection, resolver, "CN1") == pytest.approx(910000)
        assert valuation(projection, resolver, "CN2") == pytest.approx(475000)
        assert valuation(projection, resolver, "CN9") == 0

    def test_negative_stock_valued_at_zero(self, resolver):
        projection = project([movement("T1", ISSUE, 2)])
        frame = valuation_frame(projection, resolver, "CN1")
        assert frame.loc[0, "value"] == 0

    def test_history_newest_first(self, inventory_transactions):
        ids = [tx.id for tx in history(inventory_transactions, "CN1")]
        assert ids == ["I4", "I2", "I3", "I1"]

    def test_history_limit_and_range(self, inventory_transactions):
        window = DateRange(date(2024, 8, 2), date(2024, 8, 20))
        assert [tx.id for tx in history(inventory_transactions, "CN1", window)] == ["I2", "I3"]
        assert [tx.id for tx in history(inventory_transactions, limit=2)] == ["I4", "I2"]
