"""
Pydantic models for validation and serialization.

Every model accepts snake_case or camelCase input and serializes with
camelCase aliases (see models.base.BaseSchema).
"""

from models.base import BaseSchema
from models.mapping import (
    HeaderMapping,
    ValidationResult,
    TemplateCheck,
    AttributeDefinition,
    MappingDisplayItem,
    MappingPreview,
    MappingState,
)
from models.actions import (
    ActionType,
    ActionTypeLike,
    ActionDisplay,
    ImportAction,
    ActionItem,
)
from models.import_run import (
    RunStatus,
    IMPORT_PHASES,
    TERMINAL_STATUSES,
    canonical_status,
    is_valid_run_transition,
    LogLevel,
    LogEntry,
    ImportSummary,
    ImportAnalysis,
    AnalysisOverview,
    AnalysisResult,
    ImportActionResult,
    ImportResult,
    ImportProgress,
    Reconciliation,
    ImportRunSnapshot,
)
from models.report import (
    ReportFormat,
    REPORT_MEDIA_TYPES,
    ImportReport,
    ReportExport,
)

__all__ = [
    # Base
    "BaseSchema",
    # Mapping
    "HeaderMapping",
    "ValidationResult",
    "TemplateCheck",
    "AttributeDefinition",
    "MappingDisplayItem",
    "MappingPreview",
    "MappingState",
    # Actions
    "ActionType",
    "ActionTypeLike",
    "ActionDisplay",
    "ImportAction",
    "ActionItem",
    # Import run
    "RunStatus",
    "IMPORT_PHASES",
    "TERMINAL_STATUSES",
    "canonical_status",
    "is_valid_run_transition",
    "LogLevel",
    "LogEntry",
    "ImportSummary",
    "ImportAnalysis",
    "AnalysisOverview",
    "AnalysisResult",
    "ImportActionResult",
    "ImportResult",
    "ImportProgress",
    "Reconciliation",
    "ImportRunSnapshot",
    # Report
    "ReportFormat",
    "REPORT_MEDIA_TYPES",
    "ImportReport",
    "ReportExport",
]
