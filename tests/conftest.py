from __future__ import annotations

from datetime import date, timedelta

import pytest

from salescore.mapping import SkuMappingTable
from salescore.records import UploadRecord
from salescore.store import RecordStore


MAPPING_ROWS = [
    {"Local_SKU": "BW-1", "Myntra_SKU": "BW123", "Categories": "Tops"},
    {"Local_SKU": "BW-1", "Myntra_SKU": "bw123-L", "SKU_ID": "D-0001"},
    {"Local_SKU": "BW6085_DRS-M", "Myntra_SKU": "M-6085", "Nykaa_SKU": "NYK-6085", "Categories": "Dresses"},
    {"Local_SKU": "", "Myntra_SKU": "ORPHAN"},
]


@pytest.fixture
def mapping_table() -> SkuMappingTable:
    return SkuMappingTable.build(MAPPING_ROWS, source="test")


@pytest.fixture
def store() -> RecordStore:
    return RecordStore(":memory:")


def daily_records(values, *, start=date(2026, 3, 1), platform="amazon", sku="SKU-A"):
    """One orders record per consecutive day, each carrying ``value`` for ``sku``."""
    out = []
    for i, value in enumerate(values):
        day = (start + timedelta(days=i)).isoformat()
        out.append(
            UploadRecord(
                platform=platform,
                report_type="orders",
                start_date=day,
                end_date=day,
                total_orders=1,
                total_sales=value,
                skus={sku: value},
            )
        )
    return out


@pytest.fixture
def make_daily_records():
    return daily_records
