from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path


DATA_DIR = Path(os.getenv("SALES_DATA_DIR", Path(__file__).resolve().parents[1] / "data"))
SKU_MAPPING_PATH = Path(os.getenv("SALES_SKU_MAPPING", DATA_DIR / "Master_SKU_Mapping.csv"))
DB_PATH = Path(os.getenv("SALES_DB_PATH", DATA_DIR / "records.db"))
LOG_LEVEL = os.getenv("SALES_LOG_LEVEL", "INFO").upper()

PLATFORMS = ("myntra", "amazon", "flipkart", "nykaa", "ajio", "delhi_warehouse")
MYNTRA_SUBTYPES = ("sjit", "ppmp", "rtv")


@dataclass(frozen=True)
class ProjectionThresholds:
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


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
