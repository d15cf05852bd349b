"""
Cost-price resolution for COGS.

Profit for a past period must come out the same every time it is recomputed,
even after somebody edits a part's cost price. So the cost captured on the
line item at transaction time always wins, and the current part master is
only a fallback.
"""

import logging
from enum import Enum
from typing import Iterable

from .models import LineItem, PartCostEntry

logger = logging.getLogger(__name__)


class CostSource(Enum):
    """Which step of the fallback chain produced a cost."""

    HISTORICAL = "historical"
    MASTER_BY_ID = "master_by_id"
    MASTER_BY_SKU = "master_by_sku"
    SERVICE = "service"  # Service line without stock cost
    MISSING = "missing"


class CostResolver:
    """
    Resolves unit cost with a fixed priority, first non-zero wins:

    1. historical cost on the line item
    2. part master cost for the part id at the branch
    3. part master cost for the SKU at the branch
    4. 0

    Usage:
        resolver = CostResolver(parts)
        cost = resolver.resolve("P1", "SKU-1", "CN1", historical_cost=0)
    """

    def __init__(self, parts: Iterable[PartCostEntry] = ()):
        self._by_id: dict[str, PartCostEntry] = {}
        self._by_sku: dict[str, PartCostEntry] = {}
        for part in parts:
            if part.part_id:
                self._by_id.setdefault(part.part_id, part)
            if part.sku:
                self._by_sku.setdefault(part.sku, part)

    def __len__(self) -> int:
        return len(self._by_id)

    def part(self, part_id: str) -> PartCostEntry | None:
        return self._by_id.get(part_id)

    def resolve_with_source(
        self,
        part_id: str,
        sku: str,
        branch_id: str,
        historical_cost: float | None = None,
    ) -> tuple[float, CostSource]:
        if historical_cost:
            return historical_cost, CostSource.HISTORICAL

        by_id = self._by_id.get(part_id) if part_id else None
        if by_id is not None:
            cost = by_id.cost_for(branch_id)
            if cost:
                return cost, CostSource.MASTER_BY_ID

        by_sku = self._by_sku.get(sku) if sku else None
        if by_sku is not None:
            cost = by_sku.cost_for(branch_id)
            if cost:
                return cost, CostSource.MASTER_BY_SKU

        return 0.0, CostSource.MISSING

    def resolve(
        self,
        part_id: str,
        sku: str,
        branch_id: str,
        historical_cost: float | None = None,
    ) -> float:
        """Unit cost for a part at a branch."""
        return self.resolve_with_source(part_id, sku, branch_id, historical_cost)[0]

    def line_cost(self, item: LineItem, branch_id: str) -> tuple[float, CostSource]:
        """
        Total cost of a line item (unit cost x quantity).

        Service lines carry no stock cost, so only a recorded historical cost
        counts for them.
        """
        if item.is_service:
            if item.cost_price:
                return item.cost_price * item.quantity, CostSource.HISTORICAL
            return 0.0, CostSource.SERVICE
        unit_cost, source = self.resolve_with_source(
            item.part_id, item.sku, branch_id, item.cost_price
        )
        if source is CostSource.MISSING:
            logger.debug(
                "No cost for part %r (sku %r) at branch %r; counting 0",
                item.part_id,
                item.sku,
                branch_id,
            )
        return unit_cost * item.quantity, source
