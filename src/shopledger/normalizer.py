"""
Record normalizer: one canonical shape per record type.

The store hands back the same logical field under different spellings
depending on which screen or migration wrote the row (``partsUsed`` next to
``partsused``, ``customerPhone`` next to ``customer_phone``). The alias tables
below list every accepted spelling per canonical field, in priority order.
This module is the only place that knows about them.

Rules:
- The first alias present with a non-null value wins
- Missing optional fields never raise; they default to 0, "" or []
- Same input, same output
"""

import logging
import unicodedata
from typing import Any, Callable, Iterable, Mapping, TypeVar

from .categories import decode_category
from .exceptions import InvalidTransactionError
from .models import (
    CashTransactionRecord,
    CashTransactionType,
    Customer,
    InventoryTransaction,
    InventoryTransactionType,
    LineItem,
    PartCostEntry,
    PaymentStatus,
    SaleRecord,
    ServiceLine,
    WorkOrderRecord,
    WorkOrderStatus,
)
from .parsers import TimestampParser, to_number, to_text

logger = logging.getLogger(__name__)

AliasTable = Mapping[str, tuple[str, ...]]
T = TypeVar("T")

BRANCH = ("branchId", "branchid", "branch_id")
SALE_LINK = ("saleId", "saleid", "sale_id")
WORK_ORDER_LINK = ("workOrderId", "workorderid", "work_order_id")

LINE_ITEM_ALIASES: AliasTable = {
    "part_id": ("partId", "partid", "part_id"),
    "part_name": ("partName", "partname", "part_name", "name"),
    "sku": ("sku", "SKU"),
    "quantity": ("quantity", "qty"),
    "unit_price": ("sellingPrice", "sellingprice", "selling_price", "price"),
    "discount": ("discount",),
    "cost_price": ("costPrice", "costprice", "cost_price"),
    "is_service": ("isService", "isservice", "is_service"),
}

SERVICE_ALIASES: AliasTable = {
    "id": ("id",),
    "description": ("description", "name"),
    "quantity": ("quantity", "qty"),
    "unit_price": ("price", "unitPrice", "unitprice", "unit_price"),
    "cost_price": ("costPrice", "costprice", "cost_price"),
}

CUSTOMER_ALIASES: AliasTable = {
    "id": ("id", "customerId", "customerid", "customer_id"),
    "name": ("name", "customerName", "customername", "customer_name"),
    "phone": ("phone", "customerPhone", "customerphone", "customer_phone"),
}

# Customer columns stored directly on the sale row
FLAT_CUSTOMER_ALIASES: AliasTable = {
    "id": ("customerId", "customerid", "customer_id"),
    "name": ("customerName", "customername", "customer_name"),
    "phone": ("customerPhone", "customerphone", "customer_phone"),
}

SALE_ALIASES: AliasTable = {
    "id": ("id",),
    "date": ("date", "created_at", "createdAt"),
    "items": ("items",),
    "discount": ("discount",),
    "total": ("total",),
    "customer": ("customer",),
    "branch_id": BRANCH,
    "sale_code": ("sale_code", "saleCode", "salecode"),
}

WORK_ORDER_ALIASES: AliasTable = {
    "id": ("id",),
    "created_at": ("creationDate", "creationdate", "creation_date", "created_at"),
    "paid_at": ("paymentDate", "paymentdate", "payment_date"),
    "status": ("status",),
    "payment_status": ("paymentStatus", "paymentstatus", "payment_status"),
    "parts": ("partsUsed", "partsused", "parts_used", "parts", "items"),
    "services": ("additionalServices", "additionalservices", "additional_services"),
    "labor_cost": ("laborCost", "laborcost", "labor_cost"),
    "discount": ("discount",),
    "total": ("total",),
    "total_paid": ("totalPaid", "totalpaid", "total_paid"),
    "customer_name": ("customerName", "customername", "customer_name"),
    "customer_phone": ("customerPhone", "customerphone", "customer_phone"),
    "branch_id": BRANCH,
    "refunded": ("refunded", "isRefunded", "is_refunded"),
}

CASH_TRANSACTION_ALIASES: AliasTable = {
    "id": ("id",),
    "date": ("date", "created_at", "createdAt"),
    "type": ("type",),
    "category": ("category",),
    "amount": ("amount",),
    "branch_id": BRANCH,
    "sale_id": SALE_LINK,
    "work_order_id": WORK_ORDER_LINK,
    "notes": ("notes", "description"),
}

INVENTORY_TRANSACTION_ALIASES: AliasTable = {
    "id": ("id",),
    "type": ("type",),
    "part_id": ("partId", "partid", "part_id"),
    "part_name": ("partName", "partname", "part_name"),
    "quantity": ("quantity", "qty"),
    "date": ("date", "created_at", "createdAt"),
    "unit_price": ("unitPrice", "unitprice", "unit_price"),
    "total_price": ("totalPrice", "totalprice", "total_price"),
    "branch_id": BRANCH,
    "notes": ("notes",),
    "sale_id": SALE_LINK,
    "work_order_id": WORK_ORDER_LINK,
}

PART_ALIASES: AliasTable = {
    "part_id": ("id", "partId", "partid", "part_id"),
    "sku": ("sku", "SKU"),
    "name": ("name", "partName", "partname"),
    "cost_price": ("costPrice", "costprice", "cost_price"),
    "stock": ("stock",),
}

# Stored status strings (Vietnamese UI labels and English codes)
WORK_ORDER_STATUS_MAP: dict[str, WorkOrderStatus] = {
    "tiếp nhận": WorkOrderStatus.RECEIVED,
    "received": WorkOrderStatus.RECEIVED,
    "đang sửa": WorkOrderStatus.IN_PROGRESS,
    "in_progress": WorkOrderStatus.IN_PROGRESS,
    "in-progress": WorkOrderStatus.IN_PROGRESS,
    "đã sửa xong": WorkOrderStatus.DONE,
    "done": WorkOrderStatus.DONE,
    "completed": WorkOrderStatus.DONE,
    "trả máy": WorkOrderStatus.DELIVERED,
    "đã giao": WorkOrderStatus.DELIVERED,
    "delivered": WorkOrderStatus.DELIVERED,
    "returned": WorkOrderStatus.DELIVERED,
    "đã hủy": WorkOrderStatus.CANCELLED,
    "cancelled": WorkOrderStatus.CANCELLED,
    "canceled": WorkOrderStatus.CANCELLED,
}

PAYMENT_STATUS_MAP: dict[str, PaymentStatus] = {
    "unpaid": PaymentStatus.UNPAID,
    "partial": PaymentStatus.PARTIAL,
    "paid": PaymentStatus.PAID,
}

CASH_TYPE_MAP: dict[str, CashTransactionType] = {
    "income": CashTransactionType.INCOME,
    "thu": CashTransactionType.INCOME,
    "expense": CashTransactionType.EXPENSE,
    "chi": CashTransactionType.EXPENSE,
}

INVENTORY_TYPE_MAP: dict[str, InventoryTransactionType] = {
    "nhập kho": InventoryTransactionType.RECEIPT,
    "receipt": InventoryTransactionType.RECEIPT,
    "in": InventoryTransactionType.RECEIPT,
    "xuất kho": InventoryTransactionType.ISSUE,
    "issue": InventoryTransactionType.ISSUE,
    "out": InventoryTransactionType.ISSUE,
}

TRUE_STRINGS = {"true", "1", "yes", "y"}


class RecordNormalizer:
    """
    Reads canonical fields out of a raw mapping using an alias table.

    Usage:
        reader = RecordNormalizer(SALE_ALIASES)
        total = reader.number(raw, "total")
    """

    def __init__(self, aliases: AliasTable):
        self.aliases = aliases

    def value(self, raw: Mapping[str, Any], field: str, default: Any = None) -> Any:
        """First non-null value among the field's aliases."""
        for alias in self.aliases.get(field, (field,)):
            if alias in raw and raw[alias] is not None:
                return raw[alias]
        return default

    def number(self, raw: Mapping[str, Any], field: str, default: float = 0.0) -> float:
        return to_number(self.value(raw, field), default)

    def text(self, raw: Mapping[str, Any], field: str) -> str:
        return to_text(self.value(raw, field))

    def flag(self, raw: Mapping[str, Any], field: str) -> bool:
        value = self.value(raw, field, False)
        if isinstance(value, str):
            return value.strip().lower() in TRUE_STRINGS
        return bool(value)

    def rows(self, raw: Mapping[str, Any], field: str) -> list[Mapping[str, Any]]:
        """Nested list of mappings; anything else becomes []."""
        value = self.value(raw, field, [])
        if not isinstance(value, (list, tuple)):
            return []
        return [row for row in value if isinstance(row, Mapping)]

    def mapping(self, raw: Mapping[str, Any], field: str) -> dict[str, float]:
        """Per-branch numeric mapping such as ``{"CN1": 120000}``."""
        value = self.value(raw, field, {})
        if not isinstance(value, Mapping):
            return {}
        return {str(key): to_number(amount) for key, amount in value.items()}


def _decode(text: str, table: Mapping[str, T], default: T) -> T:
    if not text:
        return default
    return table.get(unicodedata.normalize("NFC", text).strip().lower(), default)


class Normalizer:
    """
    Builds canonical records from raw store rows.

    Args:
        timestamps: parser that turns stored dates into local datetimes
    """

    def __init__(self, timestamps: TimestampParser | None = None):
        self.timestamps = timestamps or TimestampParser()
        self._line = RecordNormalizer(LINE_ITEM_ALIASES)
        self._service = RecordNormalizer(SERVICE_ALIASES)
        self._customer = RecordNormalizer(CUSTOMER_ALIASES)
        self._flat_customer = RecordNormalizer(FLAT_CUSTOMER_ALIASES)
        self._sale = RecordNormalizer(SALE_ALIASES)
        self._work_order = RecordNormalizer(WORK_ORDER_ALIASES)
        self._cash = RecordNormalizer(CASH_TRANSACTION_ALIASES)
        self._inventory = RecordNormalizer(INVENTORY_TRANSACTION_ALIASES)
        self._part = RecordNormalizer(PART_ALIASES)

    def line_item(self, raw: Mapping[str, Any]) -> LineItem:
        r = self._line
        return LineItem(
            part_id=r.text(raw, "part_id"),
            part_name=r.text(raw, "part_name"),
            sku=r.text(raw, "sku"),
            quantity=r.number(raw, "quantity"),
            unit_price=r.number(raw, "unit_price"),
            discount=r.number(raw, "discount"),
            cost_price=r.number(raw, "cost_price"),
            is_service=r.flag(raw, "is_service"),
        )

    def service_line(self, raw: Mapping[str, Any]) -> ServiceLine:
        r = self._service
        return ServiceLine(
            id=r.text(raw, "id"),
            description=r.text(raw, "description"),
            quantity=r.number(raw, "quantity"),
            unit_price=r.number(raw, "unit_price"),
            cost_price=r.number(raw, "cost_price"),
        )

    def customer(self, raw: Mapping[str, Any]) -> Customer:
        nested = self._sale.value(raw, "customer")
        if isinstance(nested, str):
            return Customer(name=nested.strip())
        if isinstance(nested, Mapping):
            r, source = self._customer, nested
        else:
            # Older rows carry flat customer columns instead of a nested object
            r, source = self._flat_customer, raw
        return Customer(
            id=r.text(source, "id"),
            name=r.text(source, "name"),
            phone=r.text(source, "phone"),
        )

    def sale(self, raw: Mapping[str, Any]) -> SaleRecord:
        r = self._sale
        raw_date = r.text(raw, "date")
        return SaleRecord(
            id=r.text(raw, "id"),
            occurred_at=self.timestamps.parse(r.value(raw, "date")),
            raw_date=raw_date,
            items=tuple(self.line_item(row) for row in r.rows(raw, "items")),
            discount=r.number(raw, "discount"),
            total=r.number(raw, "total"),
            customer=self.customer(raw),
            branch_id=r.text(raw, "branch_id"),
            sale_code=r.text(raw, "sale_code"),
        )

    def work_order(self, raw: Mapping[str, Any]) -> WorkOrderRecord:
        r = self._work_order
        return WorkOrderRecord(
            id=r.text(raw, "id"),
            created_at=self.timestamps.parse(r.value(raw, "created_at")),
            paid_at=self.timestamps.parse(r.value(raw, "paid_at")),
            raw_paid_at=r.text(raw, "paid_at"),
            raw_date=r.text(raw, "paid_at") or r.text(raw, "created_at"),
            status=_decode(r.text(raw, "status"), WORK_ORDER_STATUS_MAP, WorkOrderStatus.RECEIVED),
            payment_status=_decode(
                r.text(raw, "payment_status"), PAYMENT_STATUS_MAP, PaymentStatus.UNPAID
            ),
            parts=tuple(self.line_item(row) for row in r.rows(raw, "parts")),
            services=tuple(self.service_line(row) for row in r.rows(raw, "services")),
            labor_cost=r.number(raw, "labor_cost"),
            discount=r.number(raw, "discount"),
            total=r.number(raw, "total"),
            total_paid=r.number(raw, "total_paid"),
            customer_name=r.text(raw, "customer_name"),
            customer_phone=r.text(raw, "customer_phone"),
            branch_id=r.text(raw, "branch_id"),
            refunded=r.flag(raw, "refunded"),
        )

    def cash_transaction(self, raw: Mapping[str, Any]) -> CashTransactionRecord:
        r = self._cash
        raw_category = r.text(raw, "category")
        return CashTransactionRecord(
            id=r.text(raw, "id"),
            occurred_at=self.timestamps.parse(r.value(raw, "date")),
            raw_date=r.text(raw, "date"),
            type=_decode(r.text(raw, "type"), CASH_TYPE_MAP, CashTransactionType.EXPENSE),
            category=decode_category(raw_category),
            raw_category=raw_category,
            amount=abs(r.number(raw, "amount")),
            branch_id=r.text(raw, "branch_id"),
            sale_id=r.text(raw, "sale_id"),
            work_order_id=r.text(raw, "work_order_id"),
            notes=r.text(raw, "notes"),
        )

    def inventory_transaction(self, raw: Mapping[str, Any]) -> InventoryTransaction:
        """
        Normalize a persisted inventory transaction.

        Raises:
            InvalidTransactionError: the movement type is not receipt or issue
        """
        r = self._inventory
        raw_type = r.text(raw, "type")
        tx_type = _decode(raw_type, INVENTORY_TYPE_MAP, None)
        if tx_type is None:
            raise InvalidTransactionError("type", f"unknown inventory movement type {raw_type!r}")

        quantity = r.number(raw, "quantity")
        unit_price = r.number(raw, "unit_price")
        return InventoryTransaction(
            id=r.text(raw, "id"),
            type=tx_type,
            part_id=r.text(raw, "part_id"),
            part_name=r.text(raw, "part_name"),
            quantity=quantity,
            occurred_at=self.timestamps.parse(r.value(raw, "date")),
            unit_price=unit_price,
            total_price=r.number(raw, "total_price", quantity * unit_price),
            branch_id=r.text(raw, "branch_id"),
            notes=r.text(raw, "notes"),
            sale_id=r.text(raw, "sale_id"),
            work_order_id=r.text(raw, "work_order_id"),
        )

    def part(self, raw: Mapping[str, Any]) -> PartCostEntry:
        r = self._part
        return PartCostEntry(
            part_id=r.text(raw, "part_id"),
            sku=r.text(raw, "sku"),
            name=r.text(raw, "name"),
            cost_price=r.mapping(raw, "cost_price"),
            stock=r.mapping(raw, "stock"),
        )

    def many(
        self, rows: Iterable[Mapping[str, Any]], build: Callable[[Mapping[str, Any]], T]
    ) -> list[T]:
        """Normalize a collection; non-mapping rows are dropped and logged."""
        records = []
        for index, row in enumerate(rows):
            if not isinstance(row, Mapping):
                logger.warning("Skipping row %d: expected a mapping, got %s", index, type(row).__name__)
                continue
            records.append(build(row))
        return records
