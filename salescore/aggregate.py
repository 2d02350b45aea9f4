from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from salescore.data import cell_text, get_column_value, parse_count, safe_number
from salescore.ingest import FIXED_WAREHOUSES, column_config
from salescore.mapping import SkuMappingTable, namespace_for_platform
from salescore.records import UploadRecord, record_value


logger = logging.getLogger(__name__)

PARENT_PREFIX_RE = re.compile(r"^([A-Za-z]{2,4}\d{3,6})")
UNKNOWN_PARENT = "Unknown"
STYLE_CODE_COLUMNS = ["Style code", "style code"]


def parent_sku(sku: object) -> str:
    """Style-level identifier for a variant SKU.

    ``BW6085_DRS-M`` -> ``BW6085``; ``BW6085BLUE-M`` -> ``BW6085``;
    anything else is its own parent.
    """
    s = cell_text(sku)
    if not s:
        return UNKNOWN_PARENT
    if "_" in s:
        head = s.split("_", 1)[0].strip()
        if head:
            return head
    match = PARENT_PREFIX_RE.match(s)
    if match:
        return match.group(1)
    return s


def _long_frame(maps: Iterable[Optional[Mapping[str, object]]]) -> pd.DataFrame:
    keys: List[str] = []
    values: List[float] = []
    for m in maps:
        if not m:
            continue
        for key, value in m.items():
            keys.append(str(key))
            values.append(safe_number(value))
    return pd.DataFrame({"key": keys, "value": values})


def sum_maps(maps: Iterable[Optional[Mapping[str, object]]]) -> Dict[str, float]:
    """Key-wise sum of dimension maps; first-seen key order is kept."""
    df = _long_frame(maps)
    if df.empty:
        return {}
    grouped = df.groupby("key", sort=False)["value"].sum()
    return {str(k): float(v) for k, v in grouped.items()}


def sum_field(records: Iterable[UploadRecord], field_name: str) -> Dict[str, float]:
    return sum_maps(getattr(r, field_name, None) for r in records)


def top_n(values: Mapping[str, float], n: Optional[int] = None) -> List[Tuple[str, float]]:
    """Descending by value; ties keep insertion order."""
    if not values:
        return []
    s = pd.Series({str(k): safe_number(v) for k, v in values.items()}, dtype=float)
    s = s.sort_values(ascending=False, kind="stable")
    if n is not None:
        s = s.head(max(0, int(n)))
    return [(str(k), float(v)) for k, v in s.items()]


def platform_totals(records: Iterable[UploadRecord], report_type: Optional[str] = None) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for r in records:
        key = r.platform or "unknown"
        out[key] = out.get(key, 0.0) + record_value(r, report_type)
    return out


@dataclass
class ParentRollup:
    parent: str
    total: float = 0.0
    children: Dict[str, float] = field(default_factory=dict)
    category: str = ""

    @property
    def child_count(self) -> int:
        return len(self.children)

    def top_children(self, n: Optional[int] = None) -> List[Tuple[str, float]]:
        return top_n(self.children, n)

    def to_dict(self, child_limit: Optional[int] = None) -> Dict[str, Any]:
        return {
            "parent_sku": self.parent,
            "total": self.total,
            "category": self.category,
            "child_count": self.child_count,
            "children": [{"sku": k, "value": v} for k, v in self.top_children(child_limit)],
        }


def rollup_parents(sku_values: Mapping[str, object], categories: Optional[Mapping[str, str]] = None) -> List[ParentRollup]:
    categories = categories or {}
    parents: Dict[str, ParentRollup] = {}
    for sku, value in sku_values.items():
        sku = cell_text(sku)
        if not sku or sku in ("Unknown", "N/A"):
            continue
        amount = safe_number(value)
        roll = parents.setdefault(parent_sku(sku), ParentRollup(parent=parent_sku(sku)))
        roll.total += amount
        roll.children[sku] = roll.children.get(sku, 0.0) + amount
        if not roll.category and categories.get(sku):
            roll.category = categories[sku]
    ordered = top_n({p: r.total for p, r in parents.items()})
    return [parents[p] for p, _ in ordered]


def build_warehouse_index(
    triples: Iterable[Tuple[str, str, object]],
) -> Tuple[Dict[str, Dict[str, float]], Dict[str, Dict[str, float]]]:
    """(warehouse, sku, stock) triples -> (warehouse->sku->stock, sku->warehouse->stock)."""
    by_warehouse: Dict[str, Dict[str, float]] = {}
    by_sku: Dict[str, Dict[str, float]] = {}
    for warehouse, sku, stock in triples:
        amount = safe_number(stock)
        wh = by_warehouse.setdefault(str(warehouse), {})
        wh[str(sku)] = wh.get(str(sku), 0.0) + amount
        sk = by_sku.setdefault(str(sku), {})
        sk[str(warehouse)] = sk.get(str(warehouse), 0.0) + amount
    return by_warehouse, by_sku


def _distribution(stock_by_warehouse: Mapping[str, float]) -> List[Dict[str, Any]]:
    return [{"warehouse": w, "stock": v} for w, v in top_n(stock_by_warehouse) if v > 0]


def _raw_row_warehouse(record: UploadRecord, row: Mapping[str, Any], cols: Dict[str, List[str]]) -> str:
    return FIXED_WAREHOUSES.get(record.platform) or cell_text(get_column_value(row, cols.get("warehouse")), "Unknown")


def warehouse_distribution(record: UploadRecord, sku: str, table: Optional[SkuMappingTable] = None) -> List[Dict[str, Any]]:
    """Stock per warehouse for one SKU.

    Uses the cross-index built at ingestion; when the SKU is not indexed
    (for example a mapped local SKU) the raw upload rows are rescanned.
    """
    if not sku:
        return []
    found: Dict[str, float] = {}
    for warehouse, skus in (record.warehouse_sku_data or {}).items():
        if sku in skus:
            found[warehouse] = found.get(warehouse, 0.0) + safe_number(skus[sku])
    if not found and sku in (record.sku_warehouse_data or {}):
        for warehouse, stock in record.sku_warehouse_data[sku].items():
            found[warehouse] = found.get(warehouse, 0.0) + safe_number(stock)
    if found:
        return _distribution(found)

    cols = column_config(record.platform, "inventory")
    namespace = namespace_for_platform(record.platform)
    wanted = sku.strip().lower()
    for row in record.raw_data or []:
        if not isinstance(row, Mapping):
            continue
        row_sku = cell_text(get_column_value(row, cols.get("child_sku") or cols.get("sku")))
        if not row_sku:
            continue
        candidates = {row_sku.lower()}
        if table is not None and table.size:
            local = table.resolve(row_sku, namespace).local_sku
            if local:
                candidates.add(local.lower())
        if wanted not in candidates:
            continue
        warehouse = _raw_row_warehouse(record, row, cols)
        stock = parse_count(get_column_value(row, cols.get("stock")))
        if warehouse != "Unknown" and stock:
            found[warehouse] = found.get(warehouse, 0.0) + stock
    if found:
        logger.debug("Warehouse distribution for %s rebuilt from raw rows", sku)
    return _distribution(found)


def parent_warehouse_distribution(record: UploadRecord, parent: str) -> List[Dict[str, Any]]:
    if not parent:
        return []
    found: Dict[str, float] = {}
    cols = column_config(record.platform, "inventory")
    for row in record.raw_data or []:
        if not isinstance(row, Mapping):
            continue
        style = cell_text(get_column_value(row, STYLE_CODE_COLUMNS))
        if not style or parent not in style:
            continue
        warehouse = _raw_row_warehouse(record, row, cols)
        stock = parse_count(get_column_value(row, cols.get("stock")))
        if warehouse != "Unknown" and stock:
            found[warehouse] = found.get(warehouse, 0.0) + stock
    if not found:
        for warehouse, skus in (record.warehouse_sku_data or {}).items():
            for sku, stock in skus.items():
                if parent_sku(sku) == parent or parent in sku:
                    found[warehouse] = found.get(warehouse, 0.0) + safe_number(stock)
    return _distribution(found)


@dataclass
class AggregateSummary:
    report_type: Optional[str]
    record_count: int = 0
    totals: Dict[str, float] = field(default_factory=dict)
    skus: Dict[str, float] = field(default_factory=dict)
    categories: Dict[str, float] = field(default_factory=dict)
    cities: Dict[str, float] = field(default_factory=dict)
    warehouses: Dict[str, float] = field(default_factory=dict)
    platforms: Dict[str, float] = field(default_factory=dict)
    return_reasons: Dict[str, float] = field(default_factory=dict)
    return_types: Dict[str, float] = field(default_factory=dict)
    sku_categories: Dict[str, str] = field(default_factory=dict)
    parents: List[ParentRollup] = field(default_factory=list)
    trend: Dict[str, float] = field(default_factory=dict)


TOTAL_FIELDS = (
    "total_orders",
    "total_sales",
    "total_returns",
    "total_refund_amount",
    "total_stock",
    "total_free_stock",
    "sjit_returns",
    "ppmp_returns",
    "rtv_returns",
)


def aggregate(records: Sequence[UploadRecord], report_type: Optional[str] = None) -> AggregateSummary:
    """Fold records into per-key totals along every dimension."""
    records = list(records)
    summary = AggregateSummary(report_type=report_type, record_count=len(records))
    if not records:
        return summary

    summary.totals = {name: float(sum(safe_number(getattr(r, name, 0)) for r in records)) for name in TOTAL_FIELDS}
    summary.skus = sum_field(records, "skus")
    summary.categories = sum_field(records, "categories")
    summary.cities = sum_field(records, "cities")
    summary.warehouses = sum_field(records, "warehouses")
    summary.return_reasons = sum_field(records, "return_reasons")
    summary.return_types = sum_field(records, "return_types")
    summary.platforms = platform_totals(records, report_type)
    for r in records:
        for sku, category in (r.sku_categories or {}).items():
            if category and sku not in summary.sku_categories:
                summary.sku_categories[sku] = category
    summary.parents = rollup_parents(summary.skus, summary.sku_categories)

    trend: Dict[str, float] = {}
    for r in records:
        label = r.date_range or r.start_date
        trend[label] = trend.get(label, 0.0) + record_value(r, report_type)
    summary.trend = {k: trend[k] for k in sorted(trend)}
    return summary
