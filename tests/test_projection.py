from __future__ import annotations

from datetime import date

import pytest

from salescore.projection import (
    CONFIDENCE_LEVELS,
    SEASONALITY,
    confidence_label,
    coverage_days,
    growth_rate,
    history_window,
    project,
    project_top_skus,
)
from salescore.records import UploadRecord
from salescore.settings import ProjectionThresholds


APRIL = date(2026, 4, 15)
OCTOBER = date(2026, 10, 15)


def test_doubling_run_rate(make_daily_records):
    records = make_daily_records([100, 100, 100, 200, 200, 200])
    result = project(records, horizon_days=30, today=APRIL)
    assert result.found
    assert result.growth_rate == 100.0
    assert result.growth_reliable
    assert result.seasonality_factor == 1.0
    assert result.projected_sales == 9000
    assert result.projected_quantity == 60
    assert result.confidence == "Medium"
    assert result.historical["historical_days"] == 6
    assert result.historical["average_daily_sales"] == 150


def test_target_sku_projection_uses_sku_values(make_daily_records):
    records = make_daily_records([100, 100, 100, 200, 200, 200], sku="BW6085_DRS-M")
    assert project(records, "BW6085_DRS-M", today=APRIL).projected_sales == 9000
    # parent style code resolves through the child SKUs
    assert project(records, "BW6085", today=APRIL).projected_sales == 9000


def test_unknown_sku_is_not_found(make_daily_records):
    result = project(make_daily_records([100] * 5), "NOPE", today=APRIL)
    assert not result.found
    assert result.confidence == "Low"
    assert result.projected_sales == 0
    assert result.error


def test_insufficient_data_is_flat_and_low_confidence(make_daily_records):
    result = project(make_daily_records([100, 400, 900]), today=APRIL)
    assert result.growth_rate == 0.0
    assert not result.growth_reliable
    assert result.confidence == "Low"
    assert any("Not enough data points" in r for r in result.risk_factors)
    # 1400 over 3 days, flat growth, 30 day horizon
    assert result.projected_sales == round(1400 / 3 * 30)


def test_growth_is_clamped():
    assert growth_rate([10, 10, 1000, 1000]) == (200.0, True)
    assert growth_rate([1000, 1000, 10, 10]) == (-50.0, True)


def test_growth_from_zero_early_half():
    assert growth_rate([0, 0, 5, 5]) == (100.0, True)


def test_growth_odd_length_gives_early_half_the_middle_point():
    # early = [10, 10, 10], recent = [20, 20]
    assert growth_rate([10, 10, 10, 20, 20]) == (100.0, True)


def test_negative_history_never_projects_negative_sales(make_daily_records):
    records = make_daily_records([-100, -100, -100, -100])
    result = project(records, today=OCTOBER)
    assert result.projected_sales == 0
    assert result.projected_quantity == 1


def test_seasonality_follows_the_calendar(make_daily_records):
    records = make_daily_records([100, 100, 100, 100])
    assert project(records, today=OCTOBER).projected_sales == round(100 * 1.4 * 30)
    assert SEASONALITY[11] == 1.6


def test_order_value_is_clamped(make_daily_records):
    big = project(make_daily_records([50000] * 4), today=APRIL)
    assert big.historical["average_order_value"] == 2000
    small = project(make_daily_records([10] * 4), today=APRIL)
    assert small.historical["average_order_value"] == 100
    assert small.projected_quantity == 3


def test_confidence_is_monotonic():
    labels = [confidence_label(n) for n in range(0, 15)]
    order = {label: i for i, label in enumerate(CONFIDENCE_LEVELS)}
    assert [order[x] for x in labels] == sorted(order[x] for x in labels)
    assert confidence_label(5) == "Low"
    assert confidence_label(6) == "Medium"
    assert confidence_label(11) == "High"


def test_coverage_days_are_inclusive():
    records = [
        UploadRecord(platform="amazon", report_type="orders", start_date="2026-01-01", end_date="2026-01-07"),
        UploadRecord(platform="amazon", report_type="orders", start_date="2026-01-08", end_date="2026-01-14"),
    ]
    assert coverage_days(records) == 14
    assert coverage_days([]) == 1


def test_history_window_keeps_newest(make_daily_records):
    records = make_daily_records([1, 2, 3, 4, 5])
    window = history_window(records, 2)
    assert [r.total_sales for r in window] == [5, 4]


def test_platform_filter_and_recommendations(make_daily_records):
    records = make_daily_records([100] * 4, platform="amazon") + make_daily_records([300] * 4, platform="nykaa")
    everything = project(records, today=APRIL)
    assert everything.platform_analysis["nykaa"]["market_share"] == pytest.approx(75.0)
    assert everything.platform_analysis["nykaa"]["trend"] == "growing"
    assert everything.platform_recommendations["amazon"]["allocation"] == 25

    amazon_only = project(records, platform="amazon", today=APRIL)
    assert list(amazon_only.platform_analysis) == ["amazon"]
    assert amazon_only.projected_sales == 3000


def test_history_limit_threshold(make_daily_records):
    records = make_daily_records([100] * 6 + [1000] * 4)
    thresholds = ProjectionThresholds(history_limit=4)
    result = project(records, thresholds=thresholds, today=APRIL)
    assert result.historical["record_count"] == 4
    assert result.historical["total_sales"] == 4000


def test_top_sku_projections_are_deterministic(make_daily_records):
    records = make_daily_records([100] * 4, sku="A") + make_daily_records([300] * 4, sku="B")
    first = project_top_skus(records, limit=1, today=APRIL)
    second = project_top_skus(records, limit=1, today=APRIL)
    assert first == second
    assert first[0]["sku"] == "B"
    assert first[0]["total_sales"] == 1200
    assert first[0]["projections"]["projected_sales"] == 9000
