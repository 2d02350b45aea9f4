from __future__ import annotations

import logging
import math
from typing import Literal, Optional

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from salesapi.schemas import MappingStatusResponse, RecordFiltersModel, RecordModel, SaveResponse, UploadRequest
from salescore.canonical import canonicalize_records
from salescore.errors import DuplicateRecordError, RecordNotFoundError, UploadProcessingError
from salescore.filters import RecordFilters, apply_filters, normalize_filters
from salescore.ingest import build_upload_record
from salescore.mapping import SkuMappingTable, load_sku_mapping_cached
from salescore.metrics_search import search_records
from salescore.metrics_summary import compute_summary
from salescore.projection import project, project_top_skus
from salescore.records import UploadRecord
from salescore.settings import DB_PATH, SKU_MAPPING_PATH, configure_logging
from salescore.store import RecordStore


configure_logging()
app = FastAPI(title="Marketplace Sales API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_store: Optional[RecordStore] = None


def get_store() -> RecordStore:
    global _store
    if _store is None:
        _store = RecordStore(DB_PATH)
    return _store


def get_mapping() -> SkuMappingTable:
    return load_sku_mapping_cached(SKU_MAPPING_PATH)


def _filters_from_model(model: RecordFiltersModel) -> RecordFilters:
    return normalize_filters(model.model_dump())


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(name: str, exc: Exception) -> JSONResponse:
    content = {"error": str(exc), "type": type(exc).__name__}
    if isinstance(exc, (DuplicateRecordError, RecordNotFoundError, UploadProcessingError)):
        logger.info("%s rejected: %s", name, exc)
    if isinstance(exc, DuplicateRecordError):
        content["existing_id"] = exc.existing_id
        return JSONResponse(status_code=409, content=content)
    if isinstance(exc, RecordNotFoundError):
        return JSONResponse(status_code=404, content=content)
    if isinstance(exc, UploadProcessingError):
        return JSONResponse(status_code=422, content=content)
    logger.exception("%s failed", name)
    return JSONResponse(status_code=500, content=content)


def _load_records(
    store: RecordStore,
    *,
    platform: Optional[str] = None,
    report_type: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> list[UploadRecord]:
    platform = None if (platform or "all").lower() == "all" else platform.lower()
    return store.find(platform=platform, report_type=report_type or None, start_date=start_date, end_date=end_date)


@app.get("/health")
def health(store: RecordStore = Depends(get_store)):
    try:
        return _json({"status": "ok", "records": store.count()})
    except Exception as exc:
        return _error("health", exc)


@app.get("/mapping/status")
def mapping_status(table: SkuMappingTable = Depends(get_mapping)):
    try:
        return _json(MappingStatusResponse(**table.status()).model_dump())
    except Exception as exc:
        return _error("mapping_status", exc)


@app.get("/records")
def list_records(
    platform: str = Query(default="all"),
    report_type: Optional[str] = Query(default=None),
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1),
    include_raw: bool = Query(default=False),
    store: RecordStore = Depends(get_store),
):
    try:
        records = _load_records(store, platform=platform, report_type=report_type, start_date=start_date, end_date=end_date)
        if limit:
            records = records[:limit]
        return _json({"records": [r.to_dict(include_raw=include_raw) for r in records], "count": len(records)})
    except Exception as exc:
        return _error("list_records", exc)


@app.get("/records/search")
def search(
    q: str = Query(default=""),
    platform: str = Query(default="all"),
    report_type: Optional[str] = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
    store: RecordStore = Depends(get_store),
    table: SkuMappingTable = Depends(get_mapping),
):
    try:
        records = _load_records(store, platform=platform, report_type=report_type)
        return _json(search_records(records, q, table, limit=limit))
    except Exception as exc:
        return _error("search", exc)


@app.get("/records/{record_id}")
def get_record(record_id: str, store: RecordStore = Depends(get_store)):
    try:
        return _json(store.get(record_id).to_dict())
    except Exception as exc:
        return _error("get_record", exc)


@app.post("/records")
def create_record(
    body: RecordModel,
    replace: bool = Query(default=False),
    store: RecordStore = Depends(get_store),
):
    try:
        if not body.report_type or not body.start_date or not body.end_date:
            raise UploadProcessingError("Record needs platform, reportType, startDate and endDate")
        record = UploadRecord.from_dict(body.model_dump())
        saved, created = store.save(record, replace=replace)
        payload = SaveResponse(id=saved.id, created=created, record=saved.to_dict(include_raw=False))
        return _json(payload.model_dump(), status_code=201 if created else 200)
    except Exception as exc:
        return _error("create_record", exc)


@app.post("/uploads")
def upload(
    body: UploadRequest,
    replace: bool = Query(default=False),
    store: RecordStore = Depends(get_store),
):
    try:
        record = build_upload_record(
            body.rows,
            platform=body.platform,
            report_type=body.report_type,
            start_date=body.start_date,
            end_date=body.end_date,
            subtype=body.subtype,
            file_name=body.file_name,
        )
        saved, created = store.save(record, replace=replace)
        payload = SaveResponse(id=saved.id, created=created, record=saved.to_dict(include_raw=False))
        return _json(payload.model_dump(), status_code=201 if created else 200)
    except Exception as exc:
        return _error("upload", exc)


@app.delete("/records/{record_id}")
def delete_record(record_id: str, store: RecordStore = Depends(get_store)):
    try:
        store.delete(record_id)
        return _json({"deleted": record_id})
    except Exception as exc:
        return _error("delete_record", exc)


@app.post("/summary")
def summary(
    filters: RecordFiltersModel,
    store: RecordStore = Depends(get_store),
    table: SkuMappingTable = Depends(get_mapping),
):
    try:
        f = _filters_from_model(filters)
        records = store.find()
        return _json(compute_summary(f, records, table))
    except Exception as exc:
        return _error("summary", exc)


@app.get("/projections")
def projections(
    sku: Optional[str] = Query(default=None),
    horizon_days: int = Query(default=30, ge=1, le=365),
    platform: str = Query(default="all"),
    report_type: Literal["orders", "sjit", "ppmp", "rtv"] = Query(default="orders"),
    store: RecordStore = Depends(get_store),
    table: SkuMappingTable = Depends(get_mapping),
):
    try:
        f = normalize_filters({"platform": platform, "report_type": report_type})
        records = [r for r in apply_filters(store.find(), f) if r.report_kind == "orders"]
        records = canonicalize_records(records, table)
        note = f"SKU mapping applied ({table.size} mappings)" if table.size else None
        result = project(records, sku, horizon_days, platform, thresholds=f.thresholds, mapping_note=note)
        return _json(result.to_dict())
    except Exception as exc:
        return _error("projections", exc)


@app.get("/projections/top-skus")
def top_sku_projections(
    horizon_days: int = Query(default=30, ge=1, le=365),
    limit: int = Query(default=10, ge=1, le=100),
    platform: str = Query(default="all"),
    store: RecordStore = Depends(get_store),
    table: SkuMappingTable = Depends(get_mapping),
):
    try:
        f = normalize_filters({"platform": platform, "report_type": "orders"})
        records = canonicalize_records(apply_filters(store.find(), f), table)
        return _json({"skus": project_top_skus(records, horizon_days, limit, platform, thresholds=f.thresholds)})
    except Exception as exc:
        return _error("top_sku_projections", exc)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("salesapi.main:app", host="127.0.0.1", port=8000, reload=False)
