from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from salescore.data import parse_date
from salescore.records import UploadRecord
from salescore.settings import ProjectionThresholds


@dataclass(frozen=True)
class RecordFilters:
    platform: str = "all"
    report_type: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    sku_query: str = ""
    top_n: int = 10
    thresholds: ProjectionThresholds = field(default_factory=ProjectionThresholds)


def _as_date_str(value: object) -> Optional[str]:
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else None


def normalize_filters(raw: Optional[Dict[str, Any]]) -> RecordFilters:
    raw = raw or {}
    platform = str(raw.get("platform") or "all").strip().lower() or "all"
    report_type = (str(raw.get("report_type") or "").strip().lower()) or None

    start_date = _as_date_str(raw.get("start_date"))
    end_date = _as_date_str(raw.get("end_date"))
    if start_date and end_date and start_date > end_date:
        start_date, end_date = end_date, start_date

    top_n = raw.get("top_n", 10)
    try:
        top_n = int(top_n)
    except Exception:
        top_n = 10
    top_n = max(1, min(200, top_n))

    t = raw.get("thresholds") or {}
    defaults = ProjectionThresholds()
    thresholds = ProjectionThresholds(
        high_confidence_records=int(t.get("high_confidence_records", defaults.high_confidence_records)),
        medium_confidence_records=int(t.get("medium_confidence_records", defaults.medium_confidence_records)),
        min_growth_points=int(t.get("min_growth_points", defaults.min_growth_points)),
        growth_floor_pct=float(t.get("growth_floor_pct", defaults.growth_floor_pct)),
        growth_cap_pct=float(t.get("growth_cap_pct", defaults.growth_cap_pct)),
        min_order_value=float(t.get("min_order_value", defaults.min_order_value)),
        max_order_value=float(t.get("max_order_value", defaults.max_order_value)),
        growing_share_pct=float(t.get("growing_share_pct", defaults.growing_share_pct)),
        declining_share_pct=float(t.get("declining_share_pct", defaults.declining_share_pct)),
        history_limit=int(t.get("history_limit", defaults.history_limit)),
    )

    return RecordFilters(
        platform=platform,
        report_type=report_type,
        start_date=start_date,
        end_date=end_date,
        sku_query=(raw.get("sku_query") or "").strip(),
        top_n=top_n,
        thresholds=thresholds,
    )


def apply_filters(records: List[UploadRecord], filters: RecordFilters) -> List[UploadRecord]:
    out = records
    if filters.platform and filters.platform != "all":
        out = [r for r in out if (r.platform or "").lower() == filters.platform]
    if filters.report_type:
        out = [r for r in out if filters.report_type in (r.report_type, r.report_kind)]
    if filters.start_date and filters.end_date:
        out = [r for r in out if r.start_date <= filters.end_date and (r.end_date or r.start_date) >= filters.start_date]
    if filters.sku_query:
        q = filters.sku_query.lower()
        out = [r for r in out if any(q in str(sku).lower() for sku in (r.skus or {}))]
    return out
