"""
Append-only inventory ledger and stock projection.

Current stock is never stored here; it is replayed from the ledger:

    stock(part, branch) = sum(+quantity for receipts, -quantity for issues)

The backing store also adjusts stock itself when a transaction is inserted.
Replaying the ledger gives an independent figure that can be checked against
the store's (see ``reconciliation``); when they disagree, re-fetch and
recompute rather than patching either side.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from .costing import CostResolver
from .dates import DateRange
from .exceptions import DuplicateTransactionIdError, InvalidTransactionError
from .models import InventoryTransaction, InventoryTransactionType

logger = logging.getLogger(__name__)

StockKey = tuple[str, str]  # (part_id, branch_id)


@dataclass(frozen=True)
class NegativeStock:
    """A projected level below zero. Allowed, but worth showing to a human."""

    part_id: str
    branch_id: str
    quantity: float


@dataclass
class StockProjection:
    """Projected stock per (part, branch)."""

    stock: dict[StockKey, float] = field(default_factory=dict)
    negative: list[NegativeStock] = field(default_factory=list)
    transaction_count: int = 0

    def get(self, part_id: str, branch_id: str) -> float:
        return self.stock.get((part_id, branch_id), 0.0)

    def for_branch(self, branch_id: str) -> dict[str, float]:
        """Part id -> stock for one branch."""
        return {part: qty for (part, branch), qty in self.stock.items() if branch == branch_id}

    @property
    def has_warnings(self) -> bool:
        return len(self.negative) > 0

    def to_frame(self) -> pd.DataFrame:
        rows = [
            {"part_id": part, "branch_id": branch, "stock": qty}
            for (part, branch), qty in sorted(self.stock.items())
        ]
        return pd.DataFrame(rows, columns=["part_id", "branch_id", "stock"])


def project(transactions: Iterable[InventoryTransaction]) -> StockProjection:
    """
    Replay the ledger into stock levels.

    The result only depends on the multiset of transactions, not on their
    order. Negative levels are kept and listed in ``negative``.
    """
    txs = list(transactions)
    if not txs:
        return StockProjection()

    is_receipt = np.array([tx.type is InventoryTransactionType.RECEIPT for tx in txs])
    quantities = np.array([tx.quantity for tx in txs], dtype=float)
    df = pd.DataFrame(
        {
            "part_id": [tx.part_id for tx in txs],
            "branch_id": [tx.branch_id for tx in txs],
            "signed_quantity": np.where(is_receipt, quantities, -quantities),
        }
    )
    levels = df.groupby(["part_id", "branch_id"], sort=True)["signed_quantity"].sum()

    stock = {(part, branch): float(qty) for (part, branch), qty in levels.items()}
    negative = [
        NegativeStock(part_id=part, branch_id=branch, quantity=qty)
        for (part, branch), qty in stock.items()
        if qty < 0
    ]
    for item in negative:
        logger.warning(
            "Projected stock for part %r at branch %r is negative (%s)",
            item.part_id,
            item.branch_id,
            item.quantity,
        )

    return StockProjection(stock=stock, negative=negative, transaction_count=len(txs))


def validate(tx: InventoryTransaction) -> None:
    """
    Check a transaction before it enters the ledger.

    Raises:
        InvalidTransactionError: a required field is blank or quantity <= 0
    """
    if not tx.id:
        raise InvalidTransactionError("id", "transaction id is required")
    if not tx.part_id or not tx.part_name:
        raise InvalidTransactionError("part_id", "part id and part name are required")
    if not tx.branch_id:
        raise InvalidTransactionError("branch_id", "branch is required")
    if tx.quantity <= 0:
        raise InvalidTransactionError("quantity", f"quantity must be > 0, got {tx.quantity}")


def append(
    transactions: Sequence[InventoryTransaction], new_tx: InventoryTransaction
) -> tuple[InventoryTransaction, ...]:
    """
    Return a new ledger with ``new_tx`` at the end.

    The input sequence is left untouched. A missing total price is filled in
    as quantity x unit price.

    Raises:
        DuplicateTransactionIdError: the id is already in the ledger
        InvalidTransactionError: see ``validate``
    """
    validate(new_tx)
    if any(tx.id == new_tx.id for tx in transactions):
        raise DuplicateTransactionIdError(new_tx.id)

    if not new_tx.total_price and new_tx.unit_price:
        new_tx = new_tx.model_copy(update={"total_price": new_tx.quantity * new_tx.unit_price})

    return (*transactions, new_tx)


def new_transaction(
    tx_type: InventoryTransactionType,
    part_id: str,
    part_name: str,
    quantity: float,
    branch_id: str,
    occurred_at: datetime,
    unit_price: float = 0,
    notes: str = "",
    sale_id: str = "",
    work_order_id: str = "",
) -> InventoryTransaction:
    """Build a transaction with a fresh id, ready for ``append``."""
    return InventoryTransaction(
        id=str(uuid.uuid4()),
        type=tx_type,
        part_id=part_id,
        part_name=part_name,
        quantity=quantity,
        occurred_at=occurred_at,
        unit_price=unit_price,
        total_price=quantity * unit_price,
        branch_id=branch_id,
        notes=notes,
        sale_id=sale_id,
        work_order_id=work_order_id,
    )


def valuation_frame(
    projection: StockProjection, cost_resolver: CostResolver, branch_id: str
) -> pd.DataFrame:
    """
    Stock value per part at one branch, at current master cost.

    Negative levels are valued at 0.
    """
    rows = []
    for part_id, qty in sorted(projection.for_branch(branch_id).items()):
        part = cost_resolver.part(part_id)
        unit_cost = cost_resolver.resolve(part_id, part.sku if part else "", branch_id)
        rows.append(
            {
                "part_id": part_id,
                "stock": qty,
                "unit_cost": unit_cost,
                "value": max(qty, 0.0) * unit_cost,
            }
        )
    return pd.DataFrame(rows, columns=["part_id", "stock", "unit_cost", "value"])


def valuation(projection: StockProjection, cost_resolver: CostResolver, branch_id: str) -> float:
    """Total stock value at one branch."""
    frame = valuation_frame(projection, cost_resolver, branch_id)
    return float(frame["value"].sum()) if len(frame) > 0 else 0.0


def history(
    transactions: Iterable[InventoryTransaction],
    branch_id: str | None = None,
    date_range: DateRange | None = None,
    limit: int | None = None,
) -> list[InventoryTransaction]:
    """Movements newest first, optionally filtered by branch and local date."""
    selected = [
        tx
        for tx in transactions
        if (branch_id is None or tx.branch_id == branch_id)
        and (date_range is None or date_range.contains(tx.local_date))
    ]
    # Undated rows sort last
    selected.sort(
        key=lambda tx: (tx.occurred_at is not None, tx.occurred_at.timestamp() if tx.occurred_at else 0),
        reverse=True,
    )
    return selected[:limit] if limit is not None else selected
