"""
Import report schemas.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema
from models.import_run import ImportActionResult, ImportSummary, LogEntry


class ReportFormat(str, Enum):
    """Export formats of an import report."""
    CSV = "csv"
    JSON = "json"
    TXT = "txt"
    XLSX = "xlsx"


REPORT_MEDIA_TYPES = {
    ReportFormat.CSV: "text/csv",
    ReportFormat.JSON: "application/json",
    ReportFormat.TXT: "text/plain",
    ReportFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ImportReport(BaseSchema):
    """Everything an exported report shows about one import."""

    summary: ImportSummary = Field(default_factory=ImportSummary)
    details: list[ImportActionResult] = Field(default_factory=list)
    logs: list[LogEntry] = Field(default_factory=list)
    configuration: Optional[str] = Field(None, description="Name of the import configuration")
    file: Optional[str] = Field(None, description="Name of the imported file")
    timestamp: datetime = Field(default_factory=_utc_now)


class ReportExport(BaseSchema):
    """A rendered report, ready to download."""

    file_name: str
    media_type: str
    content: bytes
