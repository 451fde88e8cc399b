"""
Business logic services.

Each service handles one domain area.
"""

from services.import_run_service import ImportRun
from services.event_aggregator import ProgressAggregator
from services.push_channel import PushChannel, HttpSseTransport, ConnectionState
from services.directory_client import DirectoryClient
from services.import_session_service import ImportSession, create_import_session
from services.report_service import ReportService, get_report_service

__all__ = [
    "ImportRun",
    "ProgressAggregator",
    "PushChannel",
    "HttpSseTransport",
    "ConnectionState",
    "DirectoryClient",
    "ImportSession",
    "create_import_session",
    "ReportService",
    "get_report_service",
]
