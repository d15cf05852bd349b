"""Tests for snapshot loading and data quality reports."""

import json

import pandas as pd
import pytest

from shopledger.quality import DataQualityChecker, records_frame
from shopledger.sources import StoreSnapshotLoader


class TestStoreSnapshotLoader:
    def test_load_directory(self, snapshot_dir):
        snapshot = StoreSnapshotLoader.from_directory(snapshot_dir).load_all()

        assert [s.id for s in snapshot.sales] == ["S1", "S2", "S3"]
        assert len(snapshot.work_orders) == 4
        assert len(snapshot.cash_transactions) == 4
        assert [p.part_id for p in snapshot.parts] == ["P1", "P2"]
        assert len(snapshot.inventory_transactions) == 5
        assert set(snapshot.quality_reports) == {
            "sales",
            "work_orders",
            "cash_transactions",
            "parts",
            "inventory_transactions",
        }
        assert not snapshot.has_critical_issues

    def test_fixture_sales_pass_total_check(self, snapshot_dir):
        snapshot = StoreSnapshotLoader.from_directory(snapshot_dir).load_all()
        assert snapshot.quality_reports["sales"].issues_of_type("total_mismatch") == []

    def test_missing_files_load_empty(self, tmp_path):
        (tmp_path / "sales.json").write_text("[]", encoding="utf-8")
        snapshot = StoreSnapshotLoader.from_directory(tmp_path).load_all()
        assert snapshot.sales == []
        assert snapshot.inventory_transactions == []
        assert snapshot.quality_reports["parts"].total_rows == 0

    def test_invalid_json_raises(self, tmp_path):
        (tmp_path / "sales.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(json.JSONDecodeError):
            StoreSnapshotLoader.from_directory(tmp_path)

    def test_unknown_inventory_type_rejected(self):
        loader = StoreSnapshotLoader(
            {
                "inventory_transactions": [
                    {"id": "I1", "type": "Nhập kho", "partId": "P1", "partName": "A", "quantity": 1, "branchId": "CN1"},
                    {"id": "I2", "type": "Chuyển kho", "partId": "P1", "partName": "A", "quantity": 1, "branchId": "CN1"},
                ]
            }
        )
        snapshot = loader.load_all()
        assert [tx.id for tx in snapshot.inventory_transactions] == ["I1"]
        issues = snapshot.quality_reports["inventory_transactions"].issues_of_type("invalid_type")
        assert len(issues) == 1
        assert issues[0].sample_values == ["I2"]
        assert snapshot.has_critical_issues

    def test_sale_total_mismatch_flagged(self):
        loader = StoreSnapshotLoader(
            {
                "sales": [
                    {
                        "id": "S1",
                        "date": "2024-08-20",
                        "items": [{"partId": "P1", "quantity": 2, "sellingPrice": 100}],
                        "total": 150,
                        "branchId": "CN1",
                    }
                ]
            }
        )
        report = loader.load_all().quality_reports["sales"]
        assert report.issues_of_type("total_mismatch")[0].count == 1

    def test_linked_cash_with_counted_category_flagged(self):
        loader = StoreSnapshotLoader(
            {
                "cash_transactions": [
                    {"id": "C1", "date": "2024-08-20", "type": "income", "category": "Bán hàng", "amount": 10, "branchId": "CN1", "saleId": "S1"},
                    {"id": "C2", "date": "2024-08-20", "type": "income", "category": "Thu khác", "amount": 10, "branchId": "CN1", "workOrderId": "W1"},
                ]
            }
        )
        report = loader.load_all().quality_reports["cash_transactions"]
        risk = report.issues_of_type("double_count_risk")
        assert len(risk) == 1
        assert risk[0].count == 1

    def test_duplicate_ids_and_unparsed_dates(self):
        loader = StoreSnapshotLoader(
            {
                "sales": [
                    {"id": "S1", "date": "2024-08-20", "total": 0, "branchId": "CN1"},
                    {"id": "S1", "date": "sometime", "total": 0, "branchId": "CN1"},
                ]
            }
        )
        report = loader.load_all().quality_reports["sales"]
        assert report.issues_of_type("duplicate")[0].severity == "critical"
        unparsed = report.issues_of_type("unparsed_date")[0]
        assert unparsed.sample_values == ["sometime"]

    def test_unreadable_payment_date_flagged(self):
        loader = StoreSnapshotLoader(
            {
                "work_orders": [
                    {
                        "id": "W1",
                        "creationDate": "2024-08-20",
                        "paymentDate": "not-a-date",
                        "paymentStatus": "paid",
                        "branchId": "CN1",
                    }
                ]
            }
        )
        report = loader.load_all().quality_reports["work_orders"]
        assert report.issues_of_type("unparsed_date")[0].sample_values == ["not-a-date"]

    def test_timezone_passed_to_parser(self):
        loader = StoreSnapshotLoader(
            {"sales": [{"id": "S1", "date": "2024-08-21T20:00:00Z", "branchId": "CN1"}]},
            timezone="UTC",
        )
        sale = loader.load_sales()[0]
        assert sale.local_date.isoformat() == "2024-08-21"


class TestDataQualityChecker:
    def test_missing_required_values(self):
        df = pd.DataFrame({"id": ["a", "", None, "d"], "note": [None, None, None, None]})
        report = DataQualityChecker("Test", required_columns=["id"]).run(df)
        assert len(report.issues) == 1
        assert report.issues[0].count == 2
        assert report.issues[0].severity == "critical"

    def test_outliers(self):
        df = pd.DataFrame({"id": ["a", "b", "c"], "qty": [1, -5, 500]})
        report = DataQualityChecker("Test").check_outliers("qty", min_val=0, max_val=100, sample_column="id").run(df)
        assert report.issues[0].count == 2
        assert report.issues[0].sample_values == ["b", "c"]

    def test_summary(self):
        report = DataQualityChecker("Test", required_columns=["id"]).run(pd.DataFrame({"id": ["a"]}))
        assert report.summary() == {"source": "Test", "total_rows": 1, "critical": 0, "warnings": 0, "info": 0}

    def test_records_frame(self, sales):
        df = records_frame(sales, {"id": lambda s: s.id, "total": lambda s: s.total})
        assert list(df.columns) == ["id", "total"]
        assert df["total"].sum() == 550000
