from __future__ import annotations

import pytest

from salescore.aggregate import (
    aggregate,
    build_warehouse_index,
    parent_sku,
    parent_warehouse_distribution,
    platform_totals,
    rollup_parents,
    sum_maps,
    top_n,
    warehouse_distribution,
)
from salescore.ingest import build_upload_record
from salescore.records import UploadRecord


@pytest.mark.parametrize(
    "sku, parent",
    [
        ("BW6085_DRS-M", "BW6085"),
        ("BW6085BLUE-M", "BW6085"),
        ("ABCD123456XL", "ABCD123456"),
        ("X-1", "X-1"),
        ("  KURTA  ", "KURTA"),
        ("_LEADING", "_LEADING"),
        ("", "Unknown"),
        (None, "Unknown"),
    ],
)
def test_parent_sku(sku, parent):
    assert parent_sku(sku) == parent


def test_rollup_keeps_children_and_sums():
    rollups = rollup_parents(
        {"BW6085_DRS-M": 100, "BW6085_DRS-L": 50, "BW7000_TOP-S": 120, "Unknown": 999, "N/A": 5},
        {"BW6085_DRS-L": "Dresses"},
    )
    assert [r.parent for r in rollups] == ["BW6085", "BW7000"]
    top = rollups[0]
    assert top.total == 150
    assert top.children == {"BW6085_DRS-M": 100, "BW6085_DRS-L": 50}
    assert top.category == "Dresses"
    assert top.to_dict(child_limit=1)["children"] == [{"sku": "BW6085_DRS-M", "value": 100}]
    assert top.child_count == 2


def test_top_n_ties_keep_insertion_order():
    assert top_n({"b": 5, "a": 5, "c": 9, "d": 1}, 3) == [("c", 9.0), ("b", 5.0), ("a", 5.0)]
    assert top_n({}) == []


def test_sum_maps_coerces_and_keeps_order():
    assert sum_maps([{"x": 1, "y": "2"}, None, {"y": 3, "z": "oops"}]) == {"x": 1.0, "y": 5.0, "z": 0.0}


def test_platform_totals_by_report_type():
    orders = UploadRecord(platform="amazon", report_type="orders", start_date="2026-01-01", end_date="2026-01-01", total_sales=100)
    returns = UploadRecord(platform="amazon", report_type="returns", start_date="2026-01-01", end_date="2026-01-01", total_refund_amount=40)
    stock = UploadRecord(platform="ajio", report_type="inventory", start_date="2026-01-01", end_date="2026-01-01", total_stock=7)
    assert platform_totals([orders, returns, stock]) == {"amazon": 140.0, "ajio": 7.0}
    assert platform_totals([orders, returns], "returns") == {"amazon": 40.0}


def test_build_warehouse_index_both_directions():
    by_wh, by_sku = build_warehouse_index([("BLR", "A", 5), ("BLR", "A", 2), ("DEL", "A", 1), ("DEL", "B", "3")])
    assert by_wh == {"BLR": {"A": 7.0}, "DEL": {"A": 1.0, "B": 3.0}}
    assert by_sku == {"A": {"BLR": 7.0, "DEL": 1.0}, "B": {"DEL": 3.0}}


def _delhi_inventory():
    rows = [
        {"internal code": "BW6085_DRS-M", "Style code": "BW6085", "Total Stock": "40", "Free Stock": "10"},
        {"internal code": "BW6085_DRS-L", "Style code": "BW6085", "Total Stock": "60", "Free Stock": "0"},
    ]
    return build_upload_record(rows, platform="delhi_warehouse", report_type="inventory", start_date="2026-01-01", end_date="2026-01-01")


def test_warehouse_distribution_from_index():
    record = _delhi_inventory()
    assert warehouse_distribution(record, "BW6085_DRS-L") == [{"warehouse": "Delhi", "stock": 60.0}]
    assert warehouse_distribution(record, "MISSING") == []


def test_warehouse_distribution_falls_back_to_raw_rows(mapping_table):
    record = _delhi_inventory().copy_with(warehouse_sku_data={}, sku_warehouse_data={})
    assert warehouse_distribution(record, "bw6085_drs-m") == [{"warehouse": "Delhi", "stock": 40.0}]


def test_warehouse_distribution_matches_mapped_local_sku(mapping_table):
    rows = [{"internal code": "D-0001", "Style code": "BW1", "Total Stock": "25"}]
    record = build_upload_record(rows, platform="delhi_warehouse", report_type="inventory", start_date="2026-01-01", end_date="2026-01-01")
    assert warehouse_distribution(record, "BW-1", mapping_table) == [{"warehouse": "Delhi", "stock": 25.0}]


def test_parent_warehouse_distribution():
    record = _delhi_inventory()
    assert parent_warehouse_distribution(record, "BW6085") == [{"warehouse": "Delhi", "stock": 100.0}]
    no_raw = record.copy_with(raw_data=[])
    assert parent_warehouse_distribution(no_raw, "BW6085") == [{"warehouse": "Delhi", "stock": 100.0}]


def test_aggregate_summary():
    a = UploadRecord(
        platform="amazon",
        report_type="orders",
        start_date="2026-01-01",
        end_date="2026-01-07",
        total_orders=3,
        total_sales=300,
        skus={"BW6085_DRS-M": 200, "X-1": 100},
        categories={"Dresses": 200, "Misc": 100},
        cities={"Pune": 300},
    )
    b = UploadRecord(
        platform="nykaa",
        report_type="orders",
        start_date="2026-01-08",
        end_date="2026-01-14",
        total_orders=1,
        total_sales=50,
        skus={"BW6085_DRS-L": 50},
        categories={"Dresses": 50},
    )
    summary = aggregate([b, a], "orders")
    assert summary.record_count == 2
    assert summary.totals["total_sales"] == 350
    assert summary.skus == {"BW6085_DRS-L": 50.0, "BW6085_DRS-M": 200.0, "X-1": 100.0}
    assert summary.categories == {"Dresses": 250.0, "Misc": 100.0}
    assert summary.platforms == {"nykaa": 50.0, "amazon": 300.0}
    assert summary.parents[0].parent == "BW6085"
    assert summary.parents[0].total == 250
    assert list(summary.trend) == ["2026-01-01 to 2026-01-07", "2026-01-08 to 2026-01-14"]


def test_aggregate_empty():
    summary = aggregate([])
    assert summary.record_count == 0
    assert summary.skus == {}
