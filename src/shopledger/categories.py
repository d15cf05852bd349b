"""
Cash-transaction category taxonomy.

Operators record cash movements with a free-text category. Some of those
movements duplicate revenue or cost that the sales and work-order streams
already carry (a sale paid in cash gets re-entered as "Bán hàng" income,
goods received get re-entered as "Nhập kho" expense). The classifier marks
those categories so aggregation can skip them.

Raw strings are decoded into ``CashCategory`` once, at normalization time.
"""

import unicodedata
from enum import Enum


class CashCategory(Enum):
    """Decoded cash-transaction category."""

    SALE_INCOME = "sale_income"
    SERVICE_INCOME = "service_income"
    SERVICE_DEPOSIT = "service_deposit"
    SERVICE = "service"
    SUPPLIER_PAYMENT = "supplier_payment"
    GOODS_RECEIPT = "goods_receipt"
    OUTSOURCING = "outsourcing"
    SERVICE_COST = "service_cost"
    REFUND = "refund"
    OTHER = "other"  # Any category the taxonomy does not know
    UNCATEGORIZED = "uncategorized"  # Null or blank


# Accepted spellings, compared after trimming and lowercasing
CATEGORY_DECODE_TABLE: dict[str, CashCategory] = {
    "sale_income": CashCategory.SALE_INCOME,
    "bán hàng": CashCategory.SALE_INCOME,
    "service_income": CashCategory.SERVICE_INCOME,
    "service_deposit": CashCategory.SERVICE_DEPOSIT,
    "service": CashCategory.SERVICE,
    "dịch vụ": CashCategory.SERVICE,
    "supplier_payment": CashCategory.SUPPLIER_PAYMENT,
    "nhập kho": CashCategory.GOODS_RECEIPT,
    "nhập hàng": CashCategory.GOODS_RECEIPT,
    "goods_receipt": CashCategory.GOODS_RECEIPT,
    "import": CashCategory.GOODS_RECEIPT,
    "outsourcing": CashCategory.OUTSOURCING,
    "service_cost": CashCategory.SERVICE_COST,
    "refund": CashCategory.REFUND,
}

# Revenue already counted through sales or work orders
EXCLUDED_INCOME: frozenset[CashCategory] = frozenset(
    {
        CashCategory.SALE_INCOME,
        CashCategory.SERVICE_INCOME,
        CashCategory.SERVICE_DEPOSIT,
        CashCategory.SERVICE,
    }
)

# Cost already counted through COGS, plus refunds (not operating expenses)
EXCLUDED_EXPENSE: frozenset[CashCategory] = frozenset(
    {
        CashCategory.SUPPLIER_PAYMENT,
        CashCategory.GOODS_RECEIPT,
        CashCategory.OUTSOURCING,
        CashCategory.SERVICE_COST,
        CashCategory.REFUND,
    }
)


def _canonical_text(raw: str) -> str:
    # NFC so that decomposed Vietnamese input matches the table
    return unicodedata.normalize("NFC", raw).strip().lower()


def decode_category(raw: str | CashCategory | None) -> CashCategory:
    """Decode a stored category string into the closed taxonomy."""
    if isinstance(raw, CashCategory):
        return raw
    if raw is None:
        return CashCategory.UNCATEGORIZED
    text = _canonical_text(str(raw))
    if not text:
        return CashCategory.UNCATEGORIZED
    return CATEGORY_DECODE_TABLE.get(text, CashCategory.OTHER)


def is_excluded_income(category: str | CashCategory | None) -> bool:
    """True if an income category duplicates sales or work-order revenue."""
    return decode_category(category) in EXCLUDED_INCOME


def is_excluded_expense(category: str | CashCategory | None) -> bool:
    """True if an expense category duplicates cost already in COGS."""
    return decode_category(category) in EXCLUDED_EXPENSE


def is_excluded(category: str | CashCategory | None) -> bool:
    """True if the category is excluded on either side."""
    decoded = decode_category(category)
    return decoded in EXCLUDED_INCOME or decoded in EXCLUDED_EXPENSE
