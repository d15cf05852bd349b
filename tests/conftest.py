"""
Shared fixtures: one small two-branch snapshot, raw and normalized.

Figures for branch CN1 over 2024-08-19..2024-08-21 (local time):

    sales        S1 300,000 (cogs 200,000)   S2 100,000 (cogs 70,000 from master)
    work orders  W1 450,000 (cogs 170,000)   W2 partial, 400,000 collected
                 W3 unpaid, W4 cancelled     (not admitted)
    cash         +50,000 other income, -200,000 electricity
                 "Bán hàng" income and "Nhập kho" expense are excluded

    revenue 1,300,000   gross profit 810,000   profit 660,000
    customers 3         orders 4
"""

import json
from datetime import date

import pytest

from shopledger.costing import CostResolver
from shopledger.dates import DateRange
from shopledger.normalizer import Normalizer
from shopledger.parsers import TimestampParser

RAW_SALES = [
    {
        "id": "S1",
        "date": "2024-08-20T10:00:00+07:00",
        "items": [
            {
                "partId": "P1",
                "partName": "Lốp trước",
                "sku": "SKU-1",
                "quantity": 2,
                "sellingPrice": 150000,
                "costPrice": 100000,
            }
        ],
        "discount": 0,
        "total": 300000,
        "customer": {"name": "An", "phone": "0901"},
        "branchId": "CN1",
    },
    {
        # 23:30 local on the 21st
        "id": "S2",
        "date": "2024-08-21T16:30:00Z",
        "items": [
            {
                "partid": "P2",
                "partname": "Dầu nhớt",
                "sku": "SKU-2",
                "quantity": "1",
                "sellingprice": "120000",
                "discount": 20000,
            }
        ],
        "total": 100000,
        "customerName": "Bình",
        "customerPhone": "0902",
        "branchid": "CN1",
    },
    {
        "id": "S3",
        "date": "2024-08-21",
        "items": [
            {"partId": "P1", "partName": "Lốp trước", "quantity": 1, "sellingPrice": 150000, "costPrice": 100000}
        ],
        "total": 150000,
        "customer": {"name": "An", "phone": "0901"},
        "branchId": "CN2",
    },
]

RAW_WORK_ORDERS = [
    {
        "id": "W1",
        "creationDate": "2024-08-18T08:00:00+07:00",
        "paymentDate": "2024-08-21T09:00:00+07:00",
        "status": "Trả máy",
        "paymentStatus": "paid",
        "partsUsed": [{"partId": "P1", "partName": "Lốp trước", "sku": "SKU-1", "quantity": 1, "sellingPrice": 150000}],
        "additionalServices": [{"description": "Sơn", "price": 200000, "costPrice": 80000, "quantity": 1}],
        "laborCost": 100000,
        "total": 450000,
        "totalPaid": 450000,
        "customerName": "An",
        "customerPhone": "0901",
        "branchId": "CN1",
    },
    {
        "id": "W2",
        "creationdate": "2024-08-20T14:00:00+07:00",
        "status": "Đang sửa",
        "paymentstatus": "partial",
        "total": 1000000,
        "totalpaid": 400000,
        "customername": "Cường",
        "customerphone": "0903",
        "branchid": "CN1",
    },
    {
        "id": "W3",
        "creation_date": "2024-08-21T09:00:00+07:00",
        "status": "Tiếp nhận",
        "payment_status": "unpaid",
        "parts_used": [{"part_id": "P2", "part_name": "Dầu nhớt", "quantity": 2, "selling_price": 120000}],
        "total": 500000,
        "customer_name": "Dũng",
        "branch_id": "CN1",
    },
    {
        "id": "W4",
        "creationDate": "2024-08-19T10:00:00+07:00",
        "status": "Đã hủy",
        "paymentStatus": "paid",
        "total": 300000,
        "totalPaid": 300000,
        "customerName": "Em",
        "branchId": "CN1",
    },
]

RAW_CASH_TRANSACTIONS = [
    {"id": "C1", "date": "2024-08-20", "type": "income", "category": "Bán hàng", "amount": 300000, "branchId": "CN1", "saleId": "S1"},
    {"id": "C2", "date": "2024-08-21", "type": "income", "category": "Phí gửi xe", "amount": 50000, "branchId": "CN1"},
    {"id": "C3", "date": "2024-08-19", "type": "expense", "category": "Nhập kho", "amount": -500000, "branchId": "CN1"},
    {"id": "C4", "date": "2024-08-21", "type": "expense", "category": "Tiền điện", "amount": 200000, "branchId": "CN1"},
]

RAW_PARTS = [
    {"id": "P1", "sku": "SKU-1", "name": "Lốp trước", "costPrice": {"CN1": 90000, "CN2": 95000}, "stock": {"CN1": 7, "CN2": 5}},
    {"id": "P2", "sku": "SKU-2", "name": "Dầu nhớt", "costPrice": {"CN1": 70000}, "stock": {"CN1": 3}},
]

RAW_INVENTORY_TRANSACTIONS = [
    {"id": "I1", "type": "Nhập kho", "partId": "P1", "partName": "Lốp trước", "quantity": 10, "date": "2024-08-01", "unitPrice": 90000, "branchId": "CN1"},
    {"id": "I2", "type": "Xuất kho", "partId": "P1", "partName": "Lốp trước", "quantity": 3, "date": "2024-08-20", "branchId": "CN1", "saleId": "S1"},
    {"id": "I3", "type": "Nhập kho", "partId": "P2", "partName": "Dầu nhớt", "quantity": 5, "date": "2024-08-02", "unitPrice": 70000, "branchId": "CN1"},
    {"id": "I4", "type": "Xuất kho", "partId": "P2", "partName": "Dầu nhớt", "quantity": 1, "date": "2024-08-21", "branchId": "CN1", "saleId": "S2"},
    {"id": "I5", "type": "Nhập kho", "partId": "P1", "partName": "Lốp trước", "quantity": 5, "date": "2024-08-03", "unitPrice": 95000, "branchId": "CN2"},
]


@pytest.fixture
def normalizer():
    return Normalizer(TimestampParser("Asia/Ho_Chi_Minh"))


@pytest.fixture
def sales(normalizer):
    return normalizer.many(RAW_SALES, normalizer.sale)


@pytest.fixture
def work_orders(normalizer):
    return normalizer.many(RAW_WORK_ORDERS, normalizer.work_order)


@pytest.fixture
def cash_transactions(normalizer):
    return normalizer.many(RAW_CASH_TRANSACTIONS, normalizer.cash_transaction)


@pytest.fixture
def parts(normalizer):
    return normalizer.many(RAW_PARTS, normalizer.part)


@pytest.fixture
def inventory_transactions(normalizer):
    return normalizer.many(RAW_INVENTORY_TRANSACTIONS, normalizer.inventory_transaction)


@pytest.fixture
def resolver(parts):
    return CostResolver(parts)


@pytest.fixture
def period():
    return DateRange(date(2024, 8, 19), date(2024, 8, 21), "custom")


@pytest.fixture
def snapshot_dir(tmp_path):
    """Write the raw fixture tables as a JSON export directory."""
    tables = {
        "sales.json": RAW_SALES,
        "work_orders.json": {"work_orders": RAW_WORK_ORDERS},
        "cash_transactions.json": RAW_CASH_TRANSACTIONS,
        "parts.json": {"data": RAW_PARTS},
        "inventory_transactions.json": RAW_INVENTORY_TRANSACTIONS,
    }
    for filename, rows in tables.items():
        (tmp_path / filename).write_text(json.dumps(rows, ensure_ascii=False), encoding="utf-8")
    return tmp_path
