from __future__ import annotations

import json

import pandas as pd
import pytest

from salescore.data import format_date_range, parse_count, read_upload_rows, safe_number
from salescore.errors import UploadProcessingError
from salescore.ingest import build_upload_record


def test_amazon_orders():
    rows = [
        {"sku": "A-1", "item-price": "499", "product-name": "Kurta", "ship-city": "Pune"},
        {"SKU": "A-1", "Item Price": 501, "Product Name": "Kurta", "Ship City": "Delhi"},
        {"sku": "A-2", "item-price": 0, "product-name": "Top"},
        {"sku": "", "item-price": 100},
        "not a row",
    ]
    record = build_upload_record(rows, platform="amazon", report_type="orders", start_date="2026-02-01", end_date="2026-02-07")
    assert record.total_orders == 2
    assert record.total_sales == 1000
    assert record.skus == {"A-1": 1000}
    assert record.cities == {"Pune": 499, "Delhi": 501}
    assert record.categories == {"Kurta": 1000}
    assert record.skipped_rows == 3
    assert record.record_count == 5
    assert record.date_range == "2026-02-01 to 2026-02-07"
    assert record.report_kind == "orders"


def test_myntra_orders_need_a_subtype():
    rows = [{"myntra sku code": "BW123", "final amount": 100}]
    with pytest.raises(UploadProcessingError):
        build_upload_record(rows, platform="myntra", report_type="orders", start_date="2026-02-01", end_date="2026-02-01")

    record = build_upload_record(
        rows, platform="myntra", report_type="orders", start_date="2026-02-01", end_date="2026-02-01", subtype="sjit"
    )
    assert record.report_type == "sjit"
    assert record.report_kind == "orders"
    assert record.date_range == "2026-02-01"
    assert record.skus == {"BW123": 100}


def test_myntra_rtv_uses_van_column():
    rows = [{"van": "LOCAL-9", "myntra sku code": "BW123", "final amount": 250}]
    record = build_upload_record(
        rows, platform="myntra", report_type="orders", start_date="2026-02-01", end_date="2026-02-01", subtype="rtv"
    )
    assert record.skus == {"LOCAL-9": 250}


def test_myntra_returns_count_per_subtype():
    rows = [
        {"seller_sku_code": "BW123", "refund amount": "300", "return_reason": "Size", "type": "RTO"},
        {"seller_sku_code": "BW123", "refund amount": "", "is_refunded": "true", "return_reason": "Size"},
        {"seller_sku_code": "BW9", "return_reason": "Damaged"},
    ]
    record = build_upload_record(
        rows, platform="myntra", report_type="returns", start_date="2026-02-01", end_date="2026-02-07", subtype="sjit"
    )
    assert record.report_type == "sjit"
    assert record.total_returns == 3
    assert record.total_refund_amount == 301
    assert record.sjit_returns == 3
    assert record.ppmp_returns == 0
    assert record.skus == {"BW123": 2, "BW9": 1}
    assert record.return_reasons == {"Size": 2, "Damaged": 1}
    assert record.report_kind == "returns"


def test_delhi_inventory_builds_cross_index():
    rows = [
        {"internal code": "BW6085_DRS-M", "Style code": "BW6085", "Total Stock": "1,200", "Free Stock": "1,000", "Department": "Dresses"},
        {"internal code": "BW6085_DRS-L", "Style code": "BW6085", "Total Stock": "300", "Free Stock": "0", "Department": ""},
        {"internal code": "BW7000_TOP-S", "Style code": "BW7000", "Total Stock": "0", "Free Stock": "0"},
    ]
    record = build_upload_record(rows, platform="delhi_warehouse", report_type="inventory", start_date="2026-02-01", end_date="2026-02-01")
    assert record.total_stock == 1500
    assert record.total_free_stock == 1000
    assert record.skipped_rows == 1
    assert record.warehouses == {"Delhi": 1500}
    assert record.warehouse_sku_data == {"Delhi": {"BW6085_DRS-M": 1200, "BW6085_DRS-L": 300}}
    assert record.sku_warehouse_data["BW6085_DRS-L"] == {"Delhi": 300}
    assert record.parent_skus == {"BW6085": 1500}
    assert record.sku_categories == {"BW6085_DRS-M": "Dresses", "BW6085_DRS-L": "Unknown"}
    assert record.categories == {"Dresses": 1200, "General": 300}
    assert len(record.raw_data) == 3


def test_amazon_inventory_per_warehouse():
    rows = [
        {"seller_sku": "A-1", "available_quantity": 10, "warehouse_name": "BLR8"},
        {"seller_sku": "A-1", "available_quantity": 5, "warehouse_name": "DEL4"},
        {"seller_sku": "A-2", "available_quantity": 7, "warehouse_name": "BLR8"},
    ]
    record = build_upload_record(rows, platform="amazon", report_type="inventory", start_date="2026-02-01", end_date="2026-02-01")
    assert record.warehouses == {"BLR8": 17, "DEL4": 5}
    assert record.sku_warehouse_data["A-1"] == {"BLR8": 10, "DEL4": 5}
    assert record.warehouse_sku_data["BLR8"] == {"A-1": 10, "A-2": 7}


@pytest.mark.parametrize(
    "rows, kwargs",
    [
        ([], {"platform": "amazon", "report_type": "orders"}),
        ({"sku": "A"}, {"platform": "amazon", "report_type": "orders"}),
        ([{"sku": "A"}], {"platform": "ebay", "report_type": "orders"}),
        ([{"sku": "A"}], {"platform": "amazon", "report_type": "ads"}),
    ],
)
def test_bad_uploads_are_rejected(rows, kwargs):
    with pytest.raises(UploadProcessingError):
        build_upload_record(rows, start_date="2026-02-01", end_date="2026-02-01", **kwargs)


def test_number_coercion():
    assert safe_number("12.5") == 12.5
    assert safe_number("abc") == 0
    assert safe_number(None) == 0
    assert safe_number(float("inf")) == 0
    assert parse_count("1,234.9") == 1234
    assert parse_count(None) == 0


def test_format_date_range():
    assert format_date_range("2026-01-01", "2026-01-01") == "2026-01-01"
    assert format_date_range("2026-01-01", "2026-01-31") == "2026-01-01 to 2026-01-31"


def test_read_upload_rows(tmp_path):
    csv_path = tmp_path / "orders.csv"
    pd.DataFrame([{"sku": "A-1", "item-price": 10}]).to_csv(csv_path, index=False)
    assert read_upload_rows(csv_path)[0]["sku"] == "A-1"

    json_path = tmp_path / "orders.json"
    json_path.write_text(json.dumps([{"sku": "A-1"}, 3]), encoding="utf-8")
    assert read_upload_rows(json_path) == [{"sku": "A-1"}]

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"sku": "A-1"}), encoding="utf-8")
    with pytest.raises(UploadProcessingError):
        read_upload_rows(bad)

    with pytest.raises(UploadProcessingError):
        read_upload_rows(tmp_path / "notes.txt")

    empty = tmp_path / "empty.csv"
    empty.write_text("", encoding="utf-8")
    with pytest.raises(UploadProcessingError):
        read_upload_rows(empty)
