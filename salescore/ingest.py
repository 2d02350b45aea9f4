from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from salescore.data import add_to, cell_text, get_column_value, parse_count, safe_number
from salescore.errors import UploadProcessingError
from salescore.records import UploadRecord
from salescore.settings import MYNTRA_SUBTYPES, PLATFORMS


logger = logging.getLogger(__name__)

MYNTRA_ORDER_COLUMNS = {
    "sales": ["final amount", "Final Amount"],
    "sku": ["myntra sku code", "Seller SKU Code"],
    "article_type": ["article type", "Article Type"],
    "city": ["city", "City"],
    "style_name": ["style_name", "Style Name"],
    "order_date": ["order date", "Order Date"],
}

MYNTRA_RETURN_COLUMNS = {
    "refund_amount": ["refund amount", "Refund Amount"],
    "sku": ["seller_sku_code", "Seller SKU Code"],
    "article_type": ["article type", "Article Type"],
    "city": ["city", "City"],
    "style_name": ["style_name", "Style Name"],
    "return_reason": ["return_reason", "Return Reason"],
    "return_type": ["type", "Type"],
}

RTV_EXTRA_COLUMNS = {
    "rstn_barcode": ["rstn_barcode", "RSTN Barcode"],
    "rstn_type": ["rstn_type", "RSTN Type"],
    "van": ["van", "VAN"],
}

ORDER_COLUMNS: Dict[str, Dict[str, List[str]]] = {
    "nykaa": {
        "sales": ["LineItemTotal", "lineitemtotal"],
        "sku": ["SKUCode", "skucode"],
        "order_date": ["OrderDate", "orderdate"],
        "article_type": ["Category", "category"],
        "product_name": ["Product Name", "product name"],
    },
    "amazon": {
        "sales": ["item-price", "Item Price"],
        "sku": ["sku", "SKU"],
        "order_date": ["purchase-date", "Purchase Date"],
        "article_type": ["product-name", "Product Name"],
        "city": ["ship-city", "Ship City"],
    },
    "ajio": {
        "sales": ["Total Value", "total value"],
        "sku": ["Seller SKU", "seller sku"],
        "order_date": ["Cust Order Date", "cust order date"],
        "article_type": ["Product Name", "product name"],
        "city": ["Ship City", "ship city"],
    },
    "flipkart": {
        "sales": ["Your Selling Price", "Item Price"],
        "sku": ["SKU", "Product ID"],
        "article_type": ["Vertical", "Category"],
        "city": ["Shipping City", "shipping city"],
    },
}

RETURN_COLUMNS: Dict[str, Dict[str, List[str]]] = {
    "nykaa": {
        "refund_amount": ["Refund Amount", "refund amount"],
        "sku": ["SKUCode", "skucode"],
        "return_reason": ["Return Reason", "return reason"],
        "order_date": ["Return Date", "return date"],
    },
    "amazon": {
        "refund_amount": ["refund-amount", "Refund Amount"],
        "sku": ["sku", "SKU"],
        "return_reason": ["return-reason", "Return Reason"],
        "order_date": ["return-date", "Return Date"],
    },
    "ajio": {
        "refund_amount": ["Refund Amount", "refund amount"],
        "sku": ["Seller SKU", "seller sku"],
        "return_reason": ["Return Reason", "return reason"],
        "order_date": ["Return Date", "return date"],
    },
}

INVENTORY_COLUMNS: Dict[str, Dict[str, List[str]]] = {
    "myntra": {
        "stock": ["inventory count", "Inventory Count"],
        "sku": ["sku code", "Seller SKU Code"],
        "warehouse": ["warehouse name", "Warehouse Name", "warehouse_name", "Warehouse_Name"],
    },
    "amazon": {
        "stock": ["available_quantity", "Available Quantity"],
        "sku": ["seller_sku", "Seller SKU"],
        "warehouse": ["warehouse_name", "Warehouse Name"],
    },
    "flipkart": {
        "stock": ["inventory_count", "Inventory Count"],
        "sku": ["sku", "SKU"],
        "warehouse": ["warehouse_name", "Warehouse Name"],
    },
    "ajio": {
        "stock": ["stock_quantity", "Stock Quantity"],
        "sku": ["seller_sku", "Seller SKU"],
        "warehouse": ["warehouse_name", "Warehouse Name"],
    },
    "nykaa": {
        "stock": ["stock_count", "Stock Count"],
        "sku": ["sku_code", "SKU Code"],
        "warehouse": ["warehouse_name", "Warehouse Name"],
    },
    "delhi_warehouse": {
        "stock": ["Total Stock", "total stock"],
        "sku": ["internal code", "Internal Code"],
        "warehouse": ["Warehouse", "warehouse"],
        "free_stock": ["Free Stock", "free stock"],
        "parent_sku": ["Style code", "style code"],
        "child_sku": ["internal code", "Internal Code"],
        "category": ["Department", "department"],
    },
}

DEFAULT_INVENTORY_COLUMNS = {
    "stock": ["inventory count", "Inventory Count"],
    "sku": ["seller sku code", "Seller SKU Code"],
    "warehouse": ["warehouse name", "Warehouse Name"],
}

# Warehouse feeds without a warehouse column report a single fixed site.
FIXED_WAREHOUSES = {"delhi_warehouse": "Delhi"}


def column_config(platform: str, report_kind: str, subtype: Optional[str] = None) -> Dict[str, List[str]]:
    if report_kind == "orders":
        if platform == "myntra":
            cols = dict(MYNTRA_ORDER_COLUMNS)
            if subtype == "rtv":
                cols.update(RTV_EXTRA_COLUMNS)
            return cols
        return dict(ORDER_COLUMNS.get(platform, {}))
    if report_kind == "returns":
        if platform == "myntra":
            cols = dict(MYNTRA_RETURN_COLUMNS)
            if subtype == "ppmp":
                cols["sku"] = ["sku_code", "Seller SKU Code"]
            if subtype == "rtv":
                cols.update(RTV_EXTRA_COLUMNS)
            return cols
        return dict(RETURN_COLUMNS.get(platform, {}))
    if report_kind == "inventory":
        return dict(INVENTORY_COLUMNS.get(platform, DEFAULT_INVENTORY_COLUMNS))
    return {}


def _value(row: Mapping[str, Any], cols: Dict[str, List[str]], key: str) -> Any:
    return get_column_value(row, cols.get(key))


def _row_sku(row: Mapping[str, Any], cols: Dict[str, List[str]], platform: str, subtype: Optional[str]) -> str:
    # RTV feeds carry the local SKU in the VAN column.
    if platform == "myntra" and subtype == "rtv":
        return cell_text(_value(row, cols, "van"), "Unknown")
    return cell_text(_value(row, cols, "sku"), "Unknown")


def _ingest_orders(record: UploadRecord, rows: Sequence[Any], cols: Dict[str, List[str]], subtype: Optional[str]) -> None:
    for row in rows:
        if not isinstance(row, Mapping):
            record.skipped_rows += 1
            continue
        amount = safe_number(_value(row, cols, "sales"))
        sku = _row_sku(row, cols, record.platform, subtype)
        if amount <= 0 or sku == "Unknown":
            record.skipped_rows += 1
            continue
        category = cell_text(_value(row, cols, "article_type")) or cell_text(_value(row, cols, "product_name"), "Unknown")

        record.total_orders += 1
        record.total_sales += amount
        add_to(record.categories, category, amount)
        add_to(record.skus, sku, amount)
        if "city" in cols:
            add_to(record.cities, cell_text(_value(row, cols, "city"), "Unknown"), amount)
        if "style_name" in cols:
            record.style_name = cell_text(_value(row, cols, "style_name"), "Unknown")
        if "product_name" in cols:
            record.product_name = category


def _ingest_returns(record: UploadRecord, rows: Sequence[Any], cols: Dict[str, List[str]], subtype: Optional[str]) -> None:
    for row in rows:
        if not isinstance(row, Mapping):
            record.skipped_rows += 1
            continue
        raw_refund = _value(row, cols, "refund_amount")
        if cell_text(raw_refund):
            refund = safe_number(raw_refund)
        elif cell_text(get_column_value(row, ["is_refunded", "Is Refunded"])).lower() in {"1", "true"}:
            refund = 1.0
        else:
            refund = 0.0
        sku = _row_sku(row, cols, record.platform, subtype)
        category = cell_text(_value(row, cols, "article_type")) or cell_text(_value(row, cols, "product_name"), "Unknown")

        record.total_returns += 1
        record.total_refund_amount += refund
        if record.platform == "myntra" and subtype in MYNTRA_SUBTYPES:
            setattr(record, f"{subtype}_returns", getattr(record, f"{subtype}_returns") + 1)

        add_to(record.categories, category, refund)
        add_to(record.skus, sku, 1)
        if "city" in cols:
            add_to(record.cities, cell_text(_value(row, cols, "city"), "Unknown"), refund)
        if "return_reason" in cols:
            add_to(record.return_reasons, cell_text(_value(row, cols, "return_reason"), "Unknown"), 1)
        if "return_type" in cols:
            add_to(record.return_types, cell_text(_value(row, cols, "return_type"), "Unknown"), 1)
        if "return_status" in cols:
            add_to(record.return_statuses, cell_text(_value(row, cols, "return_status"), "Unknown"), 1)
        if "return_mode" in cols:
            add_to(record.return_modes, cell_text(_value(row, cols, "return_mode"), "Unknown"), 1)


def _ingest_inventory(record: UploadRecord, rows: Sequence[Any], cols: Dict[str, List[str]]) -> None:
    platform = record.platform
    for row in rows:
        if not isinstance(row, Mapping):
            record.skipped_rows += 1
            continue
        stock = parse_count(_value(row, cols, "stock"))
        free_stock = parse_count(_value(row, cols, "free_stock")) if "free_stock" in cols else 0
        if stock == 0 and free_stock == 0:
            record.skipped_rows += 1
            continue

        sku = cell_text(_value(row, cols, "sku"), "Unknown")
        if "child_sku" in cols:
            sku = cell_text(_value(row, cols, "child_sku"), "Unknown")
        parent = cell_text(_value(row, cols, "parent_sku"), "Unknown") if "parent_sku" in cols else None
        category = cell_text(_value(row, cols, "category"), "Unknown") if "category" in cols else "Unknown"
        warehouse = FIXED_WAREHOUSES.get(platform) or cell_text(_value(row, cols, "warehouse"), "Unknown")

        record.total_stock += stock
        record.total_free_stock += free_stock

        if warehouse != "Unknown":
            add_to(record.warehouses, warehouse, stock)
            record.warehouse_sku_data.setdefault(warehouse, {})
            if sku != "Unknown":
                add_to(record.warehouse_sku_data[warehouse], sku, stock)
                add_to(record.sku_warehouse_data.setdefault(sku, {}), warehouse, stock)

        if sku != "Unknown":
            add_to(record.skus, sku, stock)
            record.sku_categories[sku] = category
        if parent and parent != "Unknown":
            add_to(record.parent_skus, parent, stock)
        add_to(record.categories, category if category != "Unknown" else "General", stock)


def build_upload_record(
    rows: Sequence[Any],
    *,
    platform: str,
    report_type: str,
    start_date: str,
    end_date: str,
    subtype: Optional[str] = None,
    file_name: str = "",
) -> UploadRecord:
    """Turn parsed upload rows into one UploadRecord.

    ``report_type`` is the pipeline (orders, returns, inventory). For Myntra
    orders/returns ``subtype`` (sjit, ppmp, rtv) is required and becomes the
    stored report type.
    """
    if not isinstance(rows, (list, tuple)) or not rows:
        raise UploadProcessingError("File contains no valid data or is empty")
    platform = (platform or "").strip().lower()
    if platform not in PLATFORMS:
        raise UploadProcessingError(f"Unsupported platform: {platform}")
    if report_type not in ("orders", "returns", "inventory"):
        raise UploadProcessingError(f"Unsupported report type: {report_type}")

    stored_type = report_type
    if platform == "myntra" and report_type in ("orders", "returns"):
        if subtype not in MYNTRA_SUBTYPES:
            raise UploadProcessingError("Myntra orders/returns uploads need a report subtype (sjit, ppmp or rtv)")
        stored_type = subtype

    record = UploadRecord(
        platform=platform,
        report_type=stored_type,
        report_kind=report_type,
        start_date=start_date,
        end_date=end_date,
        file_name=file_name,
        record_count=len(rows),
    )
    cols = column_config(platform, report_type, subtype)
    if report_type == "orders":
        _ingest_orders(record, rows, cols, subtype)
    elif report_type == "returns":
        _ingest_returns(record, rows, cols, subtype)
    else:
        _ingest_inventory(record, rows, cols)
    record.raw_data = [dict(r) for r in rows if isinstance(r, Mapping)]

    logger.info(
        "Processed %s %s upload (%s): %d rows, %d skipped",
        platform,
        stored_type,
        record.date_range,
        len(rows),
        record.skipped_rows,
    )
    return record
