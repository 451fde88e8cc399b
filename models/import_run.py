"""
Import run schemas: statuses, progress events, analysis and import results.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import Field, field_validator, model_validator

from models.base import BaseSchema
from models.actions import ActionItem, ActionTypeLike, ImportAction


class RunStatus(str, Enum):
    """Lifecycle status of one import run."""
    IDLE = "idle"
    UPLOADING = "uploading"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    IMPORTING = "importing"
    CREATING_OUS = "creating_ous"
    PROCESSING_USERS = "processing_users"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    ERROR = "error"


# Sub-phases the backend reports while importing
IMPORT_PHASES = {
    RunStatus.IMPORTING,
    RunStatus.CREATING_OUS,
    RunStatus.PROCESSING_USERS,
}

# Statuses that close an analysis or an import attempt
TERMINAL_STATUSES = {
    RunStatus.ANALYZED,
    RunStatus.COMPLETED,
    RunStatus.COMPLETED_WITH_ERRORS,
    RunStatus.ERROR,
}

VALID_TRANSITIONS: dict[RunStatus, set[RunStatus]] = {
    RunStatus.IDLE: {RunStatus.UPLOADING, RunStatus.ANALYZING},
    RunStatus.UPLOADING: {RunStatus.UPLOADING, RunStatus.ANALYZING, RunStatus.ERROR},
    RunStatus.ANALYZING: {
        RunStatus.UPLOADING,
        RunStatus.ANALYZING,
        RunStatus.ANALYZED,
        RunStatus.ERROR,
    },
    RunStatus.ANALYZED: {RunStatus.UPLOADING, RunStatus.ANALYZING, RunStatus.IMPORTING},
    RunStatus.IMPORTING: {
        RunStatus.IMPORTING,
        RunStatus.COMPLETED,
        RunStatus.COMPLETED_WITH_ERRORS,
        RunStatus.ERROR,
    },
    RunStatus.COMPLETED: {RunStatus.UPLOADING, RunStatus.ANALYZING, RunStatus.IMPORTING},
    RunStatus.COMPLETED_WITH_ERRORS: {
        RunStatus.UPLOADING,
        RunStatus.ANALYZING,
        RunStatus.IMPORTING,
    },
    RunStatus.ERROR: {RunStatus.UPLOADING, RunStatus.ANALYZING, RunStatus.IMPORTING},
}


def canonical_status(status: RunStatus) -> RunStatus:
    """Fold import sub-phases into IMPORTING."""
    return RunStatus.IMPORTING if status in IMPORT_PHASES else status


def is_valid_run_transition(current: RunStatus, new: RunStatus) -> bool:
    """
    Check if a run may move from `current` to `new`.

    Rules:
    - analyzing and importing are re-enterable (progress ticks, retries)
    - error is reachable from uploading, analyzing and importing
    - a finished run (analyzed, completed*, error) may start over
    """
    return canonical_status(new) in VALID_TRANSITIONS[canonical_status(current)]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LogLevel(str, Enum):
    """Severity of a pushed log line."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class LogEntry(BaseSchema):
    """One log line pushed by the backend."""

    timestamp: str = Field(default_factory=_utc_now)
    level: LogLevel = LogLevel.INFO
    message: str = ""

    @field_validator("timestamp", mode="before")
    @classmethod
    def default_timestamp(cls, v: Any) -> str:
        if v is None or v == "":
            return _utc_now()
        if isinstance(v, datetime):
            return v.isoformat()
        return str(v)

    @field_validator("level", mode="before")
    @classmethod
    def coerce_level(cls, v: Any) -> str:
        level = str(v or "info").strip().lower()
        if level == "warn":
            return LogLevel.WARNING.value
        if level not in {item.value for item in LogLevel}:
            return LogLevel.INFO.value
        return level

    @field_validator("message", mode="before")
    @classmethod
    def coerce_message(cls, v: Any) -> str:
        return "" if v is None else str(v)


class ImportSummary(BaseSchema):
    """Aggregate counts of an analysis or an import."""

    total_objects: int = 0
    create_count: int = 0
    create_ou_count: int = Field(0, alias="createOUCount")
    update_count: int = 0
    delete_count: int = 0
    delete_ou_count: Optional[int] = Field(None, alias="deleteOUCount")
    move_count: int = 0
    error_count: int = 0
    processed_count: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def accept_total_rows(cls, data: Any) -> Any:
        # Analysis summaries count rows rather than objects
        if isinstance(data, dict) and "totalObjects" not in data and "total_objects" not in data:
            if "totalRows" in data:
                data = {**data, "totalObjects": data["totalRows"]}
        return data

    @property
    def category_total(self) -> int:
        """Sum of the per-category counts."""
        return (
            self.create_count
            + self.create_ou_count
            + self.update_count
            + self.delete_count
            + (self.delete_ou_count or 0)
            + self.move_count
            + self.error_count
        )

    @property
    def has_category_detail(self) -> bool:
        """False when the backend sent no per-category count at all."""
        return self.category_total > 0


class ImportAnalysis(BaseSchema):
    """Terminal analysis payload."""

    actions: list[ImportAction] = Field(default_factory=list)
    summary: ImportSummary = Field(default_factory=ImportSummary)
    csv_data: list[dict[str, Any]] = Field(default_factory=list)


class AnalysisOverview(BaseSchema):
    """Headline numbers of an analysis, as shown before import."""

    total_rows: int = 0
    actions_count: int = 0
    create_count: int = 0
    update_count: int = 0
    error_count: int = 0


class AnalysisResult(BaseSchema):
    """Outcome of upload + analysis, resolved even on failure."""

    success: bool
    error_message: Optional[str] = None
    analysis: Optional[ImportAnalysis] = None
    csv_data: list[dict[str, Any]] = Field(default_factory=list)
    overview: AnalysisOverview = Field(default_factory=AnalysisOverview)


class ImportActionResult(BaseSchema):
    """Outcome of one executed action."""

    action_type: ActionTypeLike
    object_name: str = ""
    path: Optional[str] = None
    success: bool = False
    message: str = ""

    @field_validator("object_name", "message", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)


class ImportResult(BaseSchema):
    """Terminal import payload."""

    success: bool = False
    summary: ImportSummary = Field(default_factory=ImportSummary)
    details: list[ImportActionResult] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def accept_action_results(cls, data: Any) -> Any:
        # Older backends name the per-action list "actionResults"
        if isinstance(data, dict) and "details" not in data and "actionResults" in data:
            data = {**data, "details": data["actionResults"]}
        return data

    @property
    def has_errors(self) -> bool:
        return (
            not self.success
            or self.summary.error_count > 0
            or any(not d.success for d in self.details)
        )


class ImportProgress(BaseSchema):
    """One progress event from the push channel."""

    status: RunStatus
    progress: float = 0
    message: str = ""
    current_action: Optional[ImportAction] = None
    result: Optional[ImportResult] = None
    analysis: Optional[ImportAnalysis] = None
    generation: Optional[int] = None

    @field_validator("status", mode="before")
    @classmethod
    def lowercase_status(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, v: Any) -> float:
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.0
        return min(max(value, 0.0), 100.0)

    @field_validator("message", mode="before")
    @classmethod
    def coerce_message(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class Reconciliation(BaseSchema):
    """Cross-check of a result's counts against its total."""

    total_objects: int
    category_total: int
    success_count: int
    error_count: int
    derived_from_details: bool
    reconciles: bool


class ImportRunSnapshot(BaseSchema):
    """Read-only view of a run, for consumers and the HTTP surface."""

    status: RunStatus
    progress: float
    message: str
    generation: int
    detected_actions: list[ActionItem]
    disabled_action_types: list[str]
    type_filter: list[str]
    overview: Optional[AnalysisOverview] = None
    result: Optional[ImportResult] = None
    logs: list[LogEntry]
    error_message: Optional[str] = None
    counts_by_type: dict[str, int] = Field(default_factory=dict)
