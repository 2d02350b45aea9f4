from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from salescore.data import format_date_range, safe_number
from salescore.errors import UploadProcessingError


SCALAR_FIELDS = (
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

NUMBER_MAP_FIELDS = (
    "categories",
    "skus",
    "cities",
    "warehouses",
    "parent_skus",
    "return_reasons",
    "return_types",
    "return_statuses",
    "return_modes",
    "original_skus",
)

NESTED_MAP_FIELDS = ("warehouse_sku_data", "sku_warehouse_data")

# Myntra subtypes (sjit/ppmp/rtv) are stored as the report type; report_kind keeps
# which pipeline (orders, returns or inventory) produced the record.
BASE_REPORT_KINDS = ("orders", "returns", "inventory")


def new_record_id() -> str:
    return str(uuid.uuid4())


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _snake(name: str) -> str:
    out = []
    for ch in name:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)


def _as_map(name: str, value: Any) -> Dict[Any, Any]:
    if not isinstance(value, Mapping):
        raise UploadProcessingError(f"Invalid {_camel(name)}: expected an object, got {type(value).__name__}")
    return dict(value)


@dataclass
class UploadRecord:
    platform: str
    report_type: str
    start_date: str
    end_date: str
    id: str = field(default_factory=new_record_id)
    report_kind: str = ""
    date_range: str = ""
    file_name: str = ""
    uploaded_at: str = ""
    record_count: int = 0
    skipped_rows: int = 0

    total_orders: float = 0
    total_sales: float = 0
    total_returns: float = 0
    total_refund_amount: float = 0
    total_stock: float = 0
    total_free_stock: float = 0
    sjit_returns: float = 0
    ppmp_returns: float = 0
    rtv_returns: float = 0

    style_name: str = ""
    product_name: str = ""

    categories: Dict[str, float] = field(default_factory=dict)
    skus: Dict[str, float] = field(default_factory=dict)
    cities: Dict[str, float] = field(default_factory=dict)
    warehouses: Dict[str, float] = field(default_factory=dict)
    parent_skus: Dict[str, float] = field(default_factory=dict)
    return_reasons: Dict[str, float] = field(default_factory=dict)
    return_types: Dict[str, float] = field(default_factory=dict)
    return_statuses: Dict[str, float] = field(default_factory=dict)
    return_modes: Dict[str, float] = field(default_factory=dict)
    sku_categories: Dict[str, str] = field(default_factory=dict)
    warehouse_sku_data: Dict[str, Dict[str, float]] = field(default_factory=dict)
    sku_warehouse_data: Dict[str, Dict[str, float]] = field(default_factory=dict)
    original_skus: Dict[str, float] = field(default_factory=dict)
    mapping_applied: bool = False

    raw_data: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.report_kind:
            self.report_kind = self.report_type if self.report_type in BASE_REPORT_KINDS else "orders"
        if not self.date_range:
            self.date_range = format_date_range(self.start_date, self.end_date)
        if not self.uploaded_at:
            self.uploaded_at = datetime.now(timezone.utc).isoformat()

    @property
    def natural_key(self) -> tuple:
        return (self.platform, self.date_range, self.report_type)

    def to_dict(self, *, include_raw: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            if f.name == "raw_data" and not include_raw:
                continue
            out[_camel(f.name)] = getattr(self, f.name)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UploadRecord":
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = key if key in known else _snake(key)
            if name in known and value is not None:
                kwargs[name] = value
        for name in SCALAR_FIELDS:
            if name in kwargs:
                kwargs[name] = safe_number(kwargs[name])
        for name in NUMBER_MAP_FIELDS:
            if name in kwargs:
                kwargs[name] = {str(k): safe_number(v) for k, v in _as_map(name, kwargs[name]).items()}
        for name in NESTED_MAP_FIELDS:
            if name in kwargs:
                kwargs[name] = {
                    str(outer): {str(k): safe_number(v) for k, v in _as_map(name, inner or {}).items()}
                    for outer, inner in _as_map(name, kwargs[name]).items()
                }
        if "sku_categories" in kwargs:
            kwargs["sku_categories"] = {str(k): str(v) for k, v in _as_map("sku_categories", kwargs["sku_categories"]).items()}
        return cls(**kwargs)

    def copy_with(self, **changes: Any) -> "UploadRecord":
        return replace(self, **changes)


def record_value(record: UploadRecord, report_type: Optional[str] = None) -> float:
    """Headline metric of a record for its report type."""
    kind = report_type or record.report_kind
    if kind == "returns":
        return float(record.total_refund_amount or 0)
    if kind == "inventory":
        return float(record.total_stock or 0)
    return float(record.total_sales or 0)
