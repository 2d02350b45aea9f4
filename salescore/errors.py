from __future__ import annotations

from typing import Optional


class SalesDashboardError(Exception):
    """Base class for pipeline and persistence failures."""


class UploadProcessingError(SalesDashboardError):
    pass


class DuplicateRecordError(SalesDashboardError):
    """A record with the same (platform, date range, report type) already exists."""

    def __init__(self, platform: str, date_range: str, report_type: str, existing_id: Optional[str] = None):
        self.platform = platform
        self.date_range = date_range
        self.report_type = report_type
        self.existing_id = existing_id
        super().__init__(
            f"Data already exists for platform={platform} date_range={date_range} report_type={report_type}"
        )


class RecordNotFoundError(SalesDashboardError):
    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")


class PersistenceError(SalesDashboardError):
    pass
