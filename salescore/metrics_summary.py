from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

from salescore.aggregate import aggregate, top_n
from salescore.canonical import canonicalize_records
from salescore.charts import bar_chart, share_chart, trend_chart
from salescore.filters import RecordFilters, apply_filters
from salescore.mapping import SkuMappingTable
from salescore.records import UploadRecord


VALUE_TITLES = {"orders": "Sales", "returns": "Refund Amount", "inventory": "Stock"}


def _platform_summary(records: List[UploadRecord], report_type: Optional[str]) -> List[Dict[str, Any]]:
    acc: Dict[str, Dict[str, Any]] = {}
    for r in records:
        slot = acc.setdefault(
            r.platform or "Unknown",
            {"platform": r.platform or "Unknown", "orders": 0.0, "sales": 0.0, "returns": 0.0, "refund": 0.0, "stock": 0.0, "record_count": 0},
        )
        slot["record_count"] += 1
        kind = report_type or r.report_kind
        if kind == "returns":
            slot["returns"] += r.total_returns
            slot["refund"] += r.total_refund_amount
        elif kind == "inventory":
            slot["stock"] += r.total_stock
        else:
            slot["orders"] += r.total_orders
            slot["sales"] += r.total_sales
    return list(acc.values())


def compute_summary(
    filters: RecordFilters,
    records: List[UploadRecord],
    table: Optional[SkuMappingTable] = None,
) -> Dict[str, Any]:
    filtered = apply_filters(records, filters)
    if table is not None:
        filtered = canonicalize_records(filtered, table)
    kind = filters.report_type if filters.report_type in VALUE_TITLES else None
    if not filtered:
        return {"filters": asdict(filters), "kpis": {}, "platforms": [], "top": {}, "charts": {}}

    summary = aggregate(filtered, kind)
    value_title = VALUE_TITLES.get(kind or "orders", "Value")
    top_skus = top_n(summary.skus, filters.top_n)
    top_categories = top_n(summary.categories, min(filters.top_n, 8))
    top_warehouses = [(w, v) for w, v in top_n(summary.warehouses) if w and w != "Unknown" and v > 0][:5]

    kpis = {
        "record_count": summary.record_count,
        "unique_skus": len(summary.skus),
        "total_orders": summary.totals.get("total_orders", 0.0),
        "total_sales": summary.totals.get("total_sales", 0.0),
        "total_returns": summary.totals.get("total_returns", 0.0),
        "total_refund_amount": summary.totals.get("total_refund_amount", 0.0),
        "total_stock": summary.totals.get("total_stock", 0.0),
        "total_free_stock": summary.totals.get("total_free_stock", 0.0),
        "myntra_returns": {
            "sjit": summary.totals.get("sjit_returns", 0.0),
            "ppmp": summary.totals.get("ppmp_returns", 0.0),
            "rtv": summary.totals.get("rtv_returns", 0.0),
        },
    }

    charts: Dict[str, Any] = {}
    if summary.trend:
        charts["trend"] = trend_chart(summary.trend, value_title=value_title)
    if summary.platforms:
        charts["platform_distribution"] = share_chart(summary.platforms, title=value_title)
    parent_items = [(p.parent, p.total) for p in summary.parents[:10]]
    if parent_items:
        charts["top_parent_skus"] = bar_chart(parent_items, label="Parent SKU", value_title=value_title)
    if top_categories:
        charts["top_categories"] = bar_chart(top_categories, label="Category", value_title=value_title)
    if top_warehouses:
        charts["warehouse_distribution"] = bar_chart(top_warehouses, label="Warehouse", value_title="Stock")

    return {
        "filters": asdict(filters),
        "kpis": kpis,
        "platforms": _platform_summary(filtered, kind),
        "top": {
            "skus": [{"sku": k, "value": v, "category": summary.sku_categories.get(k, "")} for k, v in top_skus],
            "categories": [{"category": k, "value": v} for k, v in top_categories],
            "cities": [{"city": k, "value": v} for k, v in top_n(summary.cities, filters.top_n)],
            "warehouses": [{"warehouse": k, "stock": v} for k, v in top_warehouses],
            "parent_skus": [p.to_dict(child_limit=10) for p in summary.parents[: filters.top_n]],
            "return_reasons": [{"reason": k, "count": v} for k, v in top_n(summary.return_reasons, filters.top_n)],
            "return_types": [{"type": k, "count": v} for k, v in top_n(summary.return_types, filters.top_n)],
        },
        "trend": summary.trend,
        "charts": charts,
    }
