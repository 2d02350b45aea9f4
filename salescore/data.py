from __future__ import annotations

import json
import logging
import math
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from salescore.errors import UploadProcessingError


logger = logging.getLogger(__name__)

NA_TOKENS = {"nan", "none", "null", "<na>", "na", "n/a"}


def is_missing(value: object) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def safe_number(value: object) -> float:
    """Coerce a metric cell to a finite float; anything unparseable becomes 0."""
    if is_missing(value):
        return 0.0
    if isinstance(value, (bool, np.bool_)):
        return float(value)
    if isinstance(value, (int, float, np.integer, np.floating)):
        out = float(value)
    else:
        s = str(value).strip()
        if not s:
            return 0.0
        try:
            out = float(s)
        except ValueError:
            return 0.0
    if math.isnan(out) or math.isinf(out):
        return 0.0
    return out


def parse_count(value: object) -> int:
    """Stock-style integer parse: thousands separators dropped, fraction truncated."""
    if is_missing(value):
        return 0
    s = str(value).replace(",", "").strip()
    return int(safe_number(s))


def normalize_sku(value: object) -> Optional[str]:
    if is_missing(value):
        return None
    s = str(value).strip()
    if not s or s.lower() in NA_TOKENS:
        return None
    return s


def normalize_header(name: object) -> str:
    return str(name).strip().replace(" ", "").replace("_", "").lower()


def get_column_value(row: Mapping[str, Any], column_names: Union[str, Sequence[str], None]) -> Any:
    """Look up the first present column, exact spelling first, then case-insensitive."""
    if not column_names or not isinstance(row, Mapping):
        return None
    names = [column_names] if isinstance(column_names, str) else list(column_names)
    for name in names:
        if name in row and row[name] is not None:
            return row[name]
        lowered = name.lower()
        for key in row.keys():
            if str(key).lower() == lowered and row[key] is not None:
                return row[key]
    return None


def cell_text(value: object, default: str = "") -> str:
    if is_missing(value):
        return default
    s = str(value).strip()
    return s if s else default


def parse_date(value: object) -> Optional[date]:
    if is_missing(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = pd.to_datetime(str(value), errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def frame_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    df = df.loc[:, ~df.columns.duplicated()]
    df.columns = [str(c).strip() for c in df.columns]
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


def read_table(path: Path, *, dtype: Optional[type] = None) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix in {".xlsx", ".xls"}:
        return pd.read_excel(path, dtype=dtype, engine="openpyxl")
    return pd.read_csv(path, dtype=dtype, encoding="utf-8-sig")


def read_upload_rows(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read a CSV/XLSX/JSON export into plain row dicts."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".json":
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise UploadProcessingError(f"Invalid JSON format: {exc}") from exc
        if not isinstance(data, list):
            raise UploadProcessingError("Invalid data format: expected an array of records")
        return [row for row in data if isinstance(row, dict)]
    if suffix not in {".csv", ".xlsx", ".xls"}:
        raise UploadProcessingError(f"Unsupported file type: {suffix or path.name}")
    try:
        rows = frame_to_rows(read_table(path))
    except ValueError as exc:
        raise UploadProcessingError(f"Could not read {path.name}: {exc}") from exc
    logger.info("Read %d rows from %s", len(rows), path.name)
    return rows


def format_date_range(start_date: str, end_date: str) -> str:
    if start_date == end_date:
        return start_date
    return f"{start_date} to {end_date}"


def add_to(bucket: Dict[str, float], key: str, value: float) -> None:
    bucket[key] = bucket.get(key, 0) + value

