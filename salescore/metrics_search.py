from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from salescore.aggregate import parent_sku, parent_warehouse_distribution, warehouse_distribution
from salescore.mapping import SkuMappingTable
from salescore.records import UploadRecord


logger = logging.getLogger(__name__)

DIMENSIONS = (
    ("categories", "category"),
    ("cities", "city"),
    ("warehouses", "warehouse"),
    ("return_reasons", "return_reason"),
)


def _hit(record: UploadRecord, kind: str, key: str, value: float, **extra: Any) -> Dict[str, Any]:
    hit = {
        "type": kind,
        "key": key,
        "value": value,
        "record_id": record.id,
        "platform": record.platform,
        "report_type": record.report_type,
        "date_range": record.date_range,
    }
    hit.update(extra)
    return hit


def search_records(
    records: List[UploadRecord],
    term: str,
    table: Optional[SkuMappingTable] = None,
    *,
    limit: int = 200,
) -> Dict[str, Any]:
    """Find SKUs (platform, local or parent), categories, cities, warehouses and return reasons matching ``term``."""
    q = (term or "").strip().lower()
    if not q:
        return {"term": term, "hits": [], "groups": {}}
    table = table or SkuMappingTable.empty()

    hits: List[Dict[str, Any]] = []
    for record in records:
        is_inventory = record.report_kind == "inventory"
        parents_seen: Dict[str, float] = {}
        for sku, value in (record.skus or {}).items():
            resolved = table.resolve_for_platform(sku, record.platform)
            local_sku = resolved.local_sku or sku
            parent = parent_sku(local_sku)
            if q in sku.lower() or q in local_sku.lower():
                extra: Dict[str, Any] = {
                    "local_sku": local_sku,
                    "parent_sku": parent,
                    "category": resolved.category or record.sku_categories.get(sku, ""),
                }
                if is_inventory:
                    extra["warehouses"] = warehouse_distribution(record, sku, table)
                hits.append(_hit(record, "sku" if q in sku.lower() else "local_sku", sku, value, **extra))
            if q in parent.lower():
                parents_seen[parent] = parents_seen.get(parent, 0.0) + value
        for parent, value in (record.parent_skus or {}).items():
            if q in parent.lower() and parent not in parents_seen:
                parents_seen[parent] = value
        for parent, value in parents_seen.items():
            extra = {"parent_sku": parent}
            if is_inventory:
                extra["warehouses"] = parent_warehouse_distribution(record, parent)
            hits.append(_hit(record, "parent_sku", parent, value, **extra))
        for field_name, kind in DIMENSIONS:
            for key, value in (getattr(record, field_name) or {}).items():
                if q in str(key).lower():
                    hits.append(_hit(record, kind, key, value))
        if len(hits) >= limit:
            break

    hits = hits[:limit]
    groups: Dict[str, Dict[str, Any]] = {}
    for hit in hits:
        parent = hit.get("parent_sku")
        if not parent:
            continue
        group = groups.setdefault(parent, {"parent": None, "children": []})
        if hit["type"] == "parent_sku":
            group["parent"] = hit
        else:
            group["children"].append(hit)
    logger.debug("Search %r matched %d hits across %d records", term, len(hits), len(records))
    return {"term": term, "hits": hits, "groups": groups}
