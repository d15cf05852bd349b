"""
Canonical record shapes produced by the normalizer.

Every stream the engine reads is normalized into one of these frozen pydantic
models first, so business logic never has to know which spelling a field
arrived under. Timestamps are aware datetimes in the shop's local timezone;
``None`` means the stored value could not be parsed.
"""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .categories import CashCategory


class CashTransactionType(Enum):
    INCOME = "income"
    EXPENSE = "expense"


class WorkOrderStatus(Enum):
    """Repair ticket lifecycle."""

    RECEIVED = "received"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    DELIVERED = "delivered"  # Vehicle/device returned to the customer
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class InventoryTransactionType(Enum):
    RECEIPT = "receipt"  # Stock in
    ISSUE = "issue"  # Stock out


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class Customer(_Record):
    id: str = ""
    name: str = ""
    phone: str = ""

    @property
    def key(self) -> str:
        """Dedup key for customer counts: phone when known, else name."""
        return self.phone or self.name


class LineItem(_Record):
    """A sold or consumed part."""

    part_id: str = ""
    part_name: str = ""
    sku: str = ""
    quantity: float = 0
    unit_price: float = Field(default=0, description="Selling price per unit")
    discount: float = Field(default=0, description="Absolute per-line discount")
    cost_price: float = Field(
        default=0, description="Historical unit cost captured at transaction time"
    )
    is_service: bool = False

    @property
    def gross_amount(self) -> float:
        return self.quantity * self.unit_price


class ServiceLine(_Record):
    """Outsourced or additional service on a work order."""

    id: str = ""
    description: str = ""
    quantity: float = 0
    unit_price: float = 0
    cost_price: float = 0


class SaleRecord(_Record):
    id: str
    occurred_at: datetime | None = None
    raw_date: str = Field(default="", description="Stored date text, kept for diagnostics")
    items: tuple[LineItem, ...] = ()
    discount: float = Field(default=0, description="Order-level discount")
    total: float = 0
    customer: Customer = Customer()
    branch_id: str = ""
    sale_code: str = ""

    @property
    def local_date(self) -> date | None:
        return self.occurred_at.date() if self.occurred_at is not None else None

    @property
    def expected_total(self) -> float:
        """Line totals minus line and order discounts."""
        lines = sum(item.gross_amount - item.discount for item in self.items)
        return lines - self.discount


class WorkOrderRecord(_Record):
    id: str
    created_at: datetime | None = None
    paid_at: datetime | None = None
    raw_paid_at: str = ""
    raw_date: str = ""
    status: WorkOrderStatus = WorkOrderStatus.RECEIVED
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    parts: tuple[LineItem, ...] = ()
    services: tuple[ServiceLine, ...] = ()
    labor_cost: float = 0
    discount: float = 0
    total: float = 0
    total_paid: float = 0
    customer_name: str = ""
    customer_phone: str = ""
    branch_id: str = ""
    refunded: bool = False

    @property
    def revenue_at(self) -> datetime | None:
        """
        Payment time, falling back to creation time.

        None when a payment date was recorded but could not be read, so the
        order is skipped rather than dated by its creation time.
        """
        if self.raw_paid_at and self.paid_at is None:
            return None
        return self.paid_at or self.created_at

    @property
    def local_date(self) -> date | None:
        moment = self.revenue_at
        return moment.date() if moment is not None else None

    @property
    def created_date(self) -> date | None:
        return self.created_at.date() if self.created_at is not None else None

    @property
    def customer_key(self) -> str:
        return self.customer_phone or self.customer_name

    @property
    def is_cancelled(self) -> bool:
        return self.refunded or self.status is WorkOrderStatus.CANCELLED

    @property
    def counts_as_revenue(self) -> bool:
        """Paid or partially paid (or money received), and not refunded/cancelled."""
        if self.is_cancelled:
            return False
        return (
            self.payment_status in (PaymentStatus.PARTIAL, PaymentStatus.PAID)
            or self.total_paid > 0
        )

    @property
    def collected(self) -> float:
        """Amount collected; an unrecorded totalPaid falls back to the total."""
        return self.total_paid or self.total


class CashTransactionRecord(_Record):
    id: str
    occurred_at: datetime | None = None
    raw_date: str = ""
    type: CashTransactionType = CashTransactionType.EXPENSE
    category: CashCategory = CashCategory.UNCATEGORIZED
    raw_category: str = ""
    amount: float = Field(default=0, ge=0, description="Non-negative magnitude")
    branch_id: str = ""
    sale_id: str = ""
    work_order_id: str = ""
    notes: str = ""

    @property
    def local_date(self) -> date | None:
        return self.occurred_at.date() if self.occurred_at is not None else None

    @property
    def is_linked(self) -> bool:
        return bool(self.sale_id or self.work_order_id)


class PartCostEntry(_Record):
    """Part master data: cost price and store-reported stock per branch."""

    part_id: str
    sku: str = ""
    name: str = ""
    cost_price: dict[str, float] = Field(default_factory=dict)
    stock: dict[str, float] = Field(default_factory=dict)

    def cost_for(self, branch_id: str) -> float:
        return self.cost_price.get(branch_id, 0) or 0


class InventoryTransaction(_Record):
    id: str
    type: InventoryTransactionType
    part_id: str
    part_name: str = ""
    quantity: float = 0
    occurred_at: datetime | None = None
    unit_price: float = 0
    total_price: float = 0
    branch_id: str = ""
    notes: str = ""
    sale_id: str = ""
    work_order_id: str = ""

    @property
    def signed_quantity(self) -> float:
        if self.type is InventoryTransactionType.RECEIPT:
            return self.quantity
        return -self.quantity

    @property
    def local_date(self) -> date | None:
        return self.occurred_at.date() if self.occurred_at is not None else None
