from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ThresholdsModel(BaseModel):
    high_confidence_records: int = 10
    medium_confidence_records: int = 5
    min_growth_points: int = 4
    growth_floor_pct: float = -50.0
    growth_cap_pct: float = 200.0
    min_order_value: float = 100.0
    max_order_value: float = 2000.0
    growing_share_pct: float = 30.0
    declining_share_pct: float = 10.0
    history_limit: int = 90


class RecordFiltersModel(BaseModel):
    platform: str = "all"
    report_type: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    sku_query: str = ""
    top_n: int = 10
    thresholds: ThresholdsModel = Field(default_factory=ThresholdsModel)


class UploadRequest(BaseModel):
    platform: str
    report_type: str
    start_date: str
    end_date: str
    subtype: Optional[str] = None
    file_name: str = ""
    rows: List[Dict[str, Any]] = Field(default_factory=list)


class RecordModel(BaseModel):
    """Loose record body; field names may be camelCase or snake_case."""

    platform: str
    report_type: Optional[str] = Field(default=None, alias="reportType")
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")

    model_config = {"extra": "allow", "populate_by_name": True}


class MappingStatusResponse(BaseModel):
    loaded: bool
    total_mappings: int
    local_skus: int
    source: Optional[str] = None


class SaveResponse(BaseModel):
    id: str
    created: bool
    record: Dict[str, Any]
