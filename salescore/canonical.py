from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from salescore.data import add_to, safe_number
from salescore.mapping import SkuMappingTable, namespace_for_platform
from salescore.records import UploadRecord


logger = logging.getLogger(__name__)


@dataclass
class CanonicalSkus:
    canonical: Dict[str, float] = field(default_factory=dict)
    categories_by_local_sku: Dict[str, str] = field(default_factory=dict)
    original_skus: Dict[str, float] = field(default_factory=dict)

    @property
    def total(self) -> float:
        return float(sum(self.canonical.values()))


def canonicalize(raw_sku_values: Optional[Mapping[str, object]], platform: Optional[str], table: SkuMappingTable) -> CanonicalSkus:
    """Fold platform SKUs onto local SKUs, summing values that share a local SKU."""
    out = CanonicalSkus()
    if not raw_sku_values:
        return out
    namespace = namespace_for_platform(platform)
    for sku, value in raw_sku_values.items():
        amount = safe_number(value)
        out.original_skus[str(sku)] = amount
        resolved = table.resolve(str(sku), namespace)
        local_sku = resolved.local_sku or str(sku)
        add_to(out.canonical, local_sku, amount)
        if resolved.category:
            out.categories_by_local_sku[local_sku] = resolved.category
    return out


def canonicalize_record(record: UploadRecord, table: SkuMappingTable) -> UploadRecord:
    if not table.size:
        return record
    if record.mapping_applied:
        return record
    result = canonicalize(record.skus, record.platform, table)
    categories = dict(record.sku_categories)
    categories.update(result.categories_by_local_sku)
    return record.copy_with(
        skus=result.canonical,
        original_skus=result.original_skus,
        sku_categories=categories,
        mapping_applied=True,
    )


def canonicalize_records(records: Iterable[UploadRecord], table: SkuMappingTable) -> List[UploadRecord]:
    records = list(records)
    if not table.size:
        logger.debug("No mapping applied - using original SKUs")
        return records
    logger.debug("Applying SKU mapping to %d records", len(records))
    return [canonicalize_record(r, table) for r in records]
