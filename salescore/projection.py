"""Sales projection from stored upload records.

Run-rate over the covered days, adjusted by the recent-vs-early trend of the
series and by a calendar seasonality multiplier for the current month.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from salescore.aggregate import parent_sku, top_n
from salescore.data import parse_date, safe_number
from salescore.records import UploadRecord
from salescore.settings import ProjectionThresholds


logger = logging.getLogger(__name__)

# Month -> demand multiplier; festive season (Oct-Dec) peaks.
SEASONALITY: Dict[int, float] = {
    1: 0.9,
    2: 0.85,
    3: 0.95,
    4: 1.0,
    5: 1.0,
    6: 0.9,
    7: 0.8,
    8: 1.0,
    9: 1.1,
    10: 1.4,
    11: 1.6,
    12: 1.5,
}

CONFIDENCE_LEVELS = ("Low", "Medium", "High")


@dataclass
class ProjectionResult:
    sku: str
    found: bool = True
    projected_sales: float = 0.0
    projected_quantity: int = 0
    growth_rate: float = 0.0
    growth_reliable: bool = False
    confidence: str = "Low"
    seasonality_factor: float = 1.0
    horizon_days: int = 30
    platform: str = "all"
    platform_recommendations: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    platform_analysis: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    inventory_strategy: Dict[str, Any] = field(default_factory=dict)
    market_insights: List[str] = field(default_factory=list)
    risk_factors: List[str] = field(default_factory=list)
    opportunities: List[str] = field(default_factory=list)
    historical: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def confidence_label(record_count: int, thresholds: ProjectionThresholds = ProjectionThresholds()) -> str:
    if record_count > thresholds.high_confidence_records:
        return "High"
    if record_count > thresholds.medium_confidence_records:
        return "Medium"
    return "Low"


def seasonality_factor(today: Optional[date] = None) -> float:
    return SEASONALITY[(today or date.today()).month]


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def record_series_value(record: UploadRecord, target_sku: Optional[str] = None) -> float:
    if target_sku:
        skus = record.skus or {}
        if safe_number(skus.get(target_sku)):
            return safe_number(skus.get(target_sku))
        if safe_number((record.parent_skus or {}).get(target_sku)):
            return safe_number(record.parent_skus[target_sku])
        return float(sum(safe_number(v) for k, v in skus.items() if parent_sku(k) == target_sku))
    if safe_number(record.total_sales):
        return safe_number(record.total_sales)
    return float(sum(safe_number(v) for v in (record.skus or {}).values()))


def _record_dates(record: UploadRecord) -> Tuple[Optional[date], Optional[date]]:
    start = parse_date(record.start_date)
    end = parse_date(record.end_date) or start
    return start, end


def history_window(records: Sequence[UploadRecord], limit: int = 90) -> List[UploadRecord]:
    """Most recent ``limit`` records, newest first."""
    dated = sorted(records, key=lambda r: _record_dates(r)[0] or date.min, reverse=True)
    return dated[: max(0, int(limit))]


def coverage_days(records: Sequence[UploadRecord]) -> int:
    starts: List[date] = []
    ends: List[date] = []
    for r in records:
        start, end = _record_dates(r)
        if start:
            starts.append(start)
        if end:
            ends.append(end)
    if not starts or not ends:
        return 1
    return max(1, (max(ends) - min(starts)).days + 1)


def growth_rate(
    chronological_values: Sequence[float],
    thresholds: ProjectionThresholds = ProjectionThresholds(),
) -> Tuple[float, bool]:
    """Percent change of the recent half mean over the early half mean.

    Returns ``(rate, reliable)``. Too few points gives ``(0.0, False)``.
    """
    values = [safe_number(v) for v in chronological_values]
    if len(values) < thresholds.min_growth_points or sum(values) == 0:
        return 0.0, False
    recent_count = len(values) // 2
    early = values[: len(values) - recent_count]
    recent = values[len(values) - recent_count :]
    early_mean = sum(early) / max(1, len(early))
    recent_mean = sum(recent) / max(1, len(recent))
    if early_mean == 0:
        return (100.0 if recent_mean > 0 else 0.0), True
    rate = (recent_mean - early_mean) / early_mean * 100
    return clamp(rate, thresholds.growth_floor_pct, thresholds.growth_cap_pct), True


def not_found_result(target_sku: str, horizon_days: int, platform: str) -> ProjectionResult:
    return ProjectionResult(
        sku=target_sku,
        found=False,
        confidence="Low",
        horizon_days=horizon_days,
        platform=platform,
        error=f"No sales data found for SKU {target_sku}",
        risk_factors=["No historical sales for this SKU in the selected window"],
    )


def project(
    records: Sequence[UploadRecord],
    target_sku: Optional[str] = None,
    horizon_days: int = 30,
    platform: str = "all",
    *,
    thresholds: ProjectionThresholds = ProjectionThresholds(),
    today: Optional[date] = None,
    mapping_note: Optional[str] = None,
) -> ProjectionResult:
    horizon_days = max(1, int(horizon_days))
    platform = (platform or "all").lower()
    target_sku = (target_sku or "").strip() or None

    pool = [r for r in records if platform == "all" or (r.platform or "").lower() == platform]
    pool = history_window(pool, thresholds.history_limit)
    if target_sku:
        pool = [r for r in pool if record_series_value(r, target_sku) > 0]
        if not pool:
            logger.info("Projection: no records for SKU %s", target_sku)
            return not_found_result(target_sku, horizon_days, platform)

    chronological = sorted(pool, key=lambda r: _record_dates(r)[0] or date.min)
    series = [record_series_value(r, target_sku) for r in chronological]
    record_count = len(series)
    total_value = float(sum(series))
    days = coverage_days(chronological)
    avg_daily = total_value / days

    rate, reliable = growth_rate(series, thresholds)
    season = seasonality_factor(today)
    projected = avg_daily * (1 + rate / 100) * season * horizon_days
    if projected < 0:
        projected = max(0.0, avg_daily * horizon_days)

    avg_order_value = clamp(total_value / max(1, record_count), thresholds.min_order_value, thresholds.max_order_value)
    projected_quantity = max(1, math.ceil(projected / avg_order_value))

    confidence = confidence_label(record_count, thresholds)
    if not reliable:
        confidence = "Low"

    platform_analysis: Dict[str, Dict[str, Any]] = {}
    for r, value in zip(chronological, series):
        slot = platform_analysis.setdefault(r.platform or "unknown", {"sales": 0.0, "records": 0})
        slot["sales"] += value
        slot["records"] += 1
    recommendations: Dict[str, Dict[str, Any]] = {}
    for name, slot in platform_analysis.items():
        share = slot["sales"] / total_value * 100 if total_value > 0 else 0.0
        if share > thresholds.growing_share_pct:
            trend = "growing"
        elif share < thresholds.declining_share_pct:
            trend = "declining"
        else:
            trend = "stable"
        slot_aov = clamp(slot["sales"] / max(1, slot["records"]), thresholds.min_order_value, thresholds.max_order_value)
        slot_projected = share / 100 * projected
        slot.update(
            {
                "market_share": share,
                "trend": trend,
                "projected_sales": slot_projected,
                "average_order_value": slot_aov,
                "projected_quantity": math.ceil(slot_projected / slot_aov),
            }
        )
        allocation = round(share)
        if allocation > 0:
            recommendations[name] = {
                "allocation": allocation,
                "trend": trend,
                "strategy": f"Allocate {allocation}% inventory - {trend} trend",
            }

    risks = []
    if not reliable:
        risks.append("Not enough data points to measure a trend - growth assumed flat")
    if record_count < thresholds.high_confidence_records:
        risks.append("Limited historical data - projections may be less accurate")
    else:
        risks.append("Sufficient data for reliable projections")
    risks.append("Low sales volume detected" if total_value < 1000 else "Healthy sales volume")

    insights = [
        f"Historical average daily sales: ₹{avg_daily:,.0f}",
        f"Analysis period: {days} days across {record_count} records",
        f"Seasonality factor for this month: {season:.2f}",
    ]
    if mapping_note:
        insights.append(mapping_note)

    opportunities = [
        "Growth trajectory detected - consider increasing inventory" if projected > total_value else "Optimize current inventory levels",
        "Leverage cross-platform performance data for better allocation",
        "Consider expanding to more platforms" if len(platform_analysis) < 3 else "Strong multi-platform presence",
    ]

    result = ProjectionResult(
        sku=target_sku or "Overall",
        found=True,
        projected_sales=float(round(projected)),
        projected_quantity=int(projected_quantity),
        growth_rate=float(rate),
        growth_reliable=reliable,
        confidence=confidence,
        seasonality_factor=season,
        horizon_days=horizon_days,
        platform=platform,
        platform_recommendations=recommendations,
        platform_analysis=platform_analysis,
        inventory_strategy={
            "total_units": int(projected_quantity),
            "distribution_plan": f"Distribute {projected_quantity} units across {len(platform_analysis)} platforms based on performance",
            "restock_timing": "Within 1-2 weeks" if projected_quantity > 100 else "Within 3-4 weeks",
        },
        market_insights=insights,
        risk_factors=risks,
        opportunities=opportunities,
        historical={
            "total_sales": round(total_value, 2),
            "record_count": record_count,
            "historical_days": days,
            "average_daily_sales": round(avg_daily, 2),
            "average_order_value": round(avg_order_value, 2),
        },
    )
    logger.info(
        "Projection %s: projected=%.0f qty=%d growth=%.1f%% confidence=%s",
        result.sku,
        result.projected_sales,
        result.projected_quantity,
        result.growth_rate,
        result.confidence,
    )
    return result


def project_top_skus(
    records: Sequence[UploadRecord],
    horizon_days: int = 30,
    limit: int = 10,
    platform: str = "all",
    *,
    thresholds: ProjectionThresholds = ProjectionThresholds(),
    today: Optional[date] = None,
) -> List[Dict[str, Any]]:
    platform = (platform or "all").lower()
    pool = [r for r in records if platform == "all" or (r.platform or "").lower() == platform]
    pool = history_window(pool, thresholds.history_limit)

    totals: Dict[str, float] = {}
    meta: Dict[str, Dict[str, Any]] = {}
    for r in pool:
        for sku, value in (r.skus or {}).items():
            totals[sku] = totals.get(sku, 0.0) + safe_number(value)
            slot = meta.setdefault(sku, {"platforms": [], "records": 0, "category": "Unknown"})
            if r.platform not in slot["platforms"]:
                slot["platforms"].append(r.platform)
            slot["records"] += 1
            if slot["category"] == "Unknown" and (r.sku_categories or {}).get(sku):
                slot["category"] = r.sku_categories[sku]

    out: List[Dict[str, Any]] = []
    for sku, total in top_n(totals, limit):
        projection = project(pool, sku, horizon_days, "all", thresholds=thresholds, today=today)
        out.append(
            {
                "sku": sku,
                "total_sales": total,
                "platforms": meta[sku]["platforms"],
                "records": meta[sku]["records"],
                "category": meta[sku]["category"],
                "projections": {
                    "projected_sales": projection.projected_sales,
                    "projected_quantity": projection.projected_quantity,
                    "growth_rate": projection.growth_rate,
                    "confidence": projection.confidence,
                },
            }
        )
    return out
