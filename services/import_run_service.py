"""
Import run service — Lifecycle of one import attempt.

`ImportRun` owns the run state of a single wizard session:
status, progress, detected actions and their selection, the final
result and the log lines. Status changes arrive only through
`apply_progress`; operator actions (toggle, bulk selection, type
filter) only touch the action list.

Every begin_* call bumps the run generation. Progress tagged with an
older generation belongs to a superseded attempt and is dropped.
"""

from collections import Counter
from typing import Any, Iterable, Mapping, Optional, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from exceptions import InvalidRunTransitionError
from models.actions import ActionItem, ActionTypeLike, ImportAction
from models.import_run import (
    AnalysisOverview,
    ImportAnalysis,
    ImportProgress,
    ImportResult,
    ImportRunSnapshot,
    LogEntry,
    Reconciliation,
    RunStatus,
    canonical_status,
    is_valid_run_transition,
)
from services.action_normalizer import normalize, normalize_set

logger = structlog.get_logger(__name__)

DEFAULT_ERROR_MESSAGE = "Import failed"


class ImportRun:
    """
    State of one import run.

    Methods that receive backend events never raise: illegal
    transitions and stale events are logged and ignored so that a
    misbehaving backend cannot break the event loop. Operator-initiated
    begin_* calls raise InvalidRunTransitionError instead.
    """

    def __init__(self, disabled_action_types: Iterable[ActionTypeLike] = ()):
        self.disabled_action_types: set[str] = normalize_set(disabled_action_types)
        self.generation = 0
        self._clear()

    def _clear(self) -> None:
        self.status = RunStatus.IDLE
        self.phase = RunStatus.IDLE
        self.progress = 0.0
        self.message = ""
        self.detected_actions: list[ActionItem] = []
        self.type_filter: set[str] = set()
        self.analysis: Optional[ImportAnalysis] = None
        self.overview: Optional[AnalysisOverview] = None
        self.result: Optional[ImportResult] = None
        self.logs: list[LogEntry] = []
        self.error_message: Optional[str] = None

    # ===================
    # LIFECYCLE
    # ===================

    def _begin(self, status: RunStatus, message: str) -> int:
        if not is_valid_run_transition(self.status, status):
            raise InvalidRunTransitionError(self.status.value, status.value)

        self.generation += 1
        self.status = status
        self.phase = status
        self.progress = 0.0
        self.message = message
        self.error_message = None

        logger.info(
            "import_run_started_phase",
            status=status.value,
            generation=self.generation,
        )
        return self.generation

    def begin_upload(self) -> int:
        """Enter `uploading`. Returns the new generation."""
        return self._begin(RunStatus.UPLOADING, "Uploading file")

    def begin_analysis(self) -> int:
        """Enter `analyzing`. Returns the new generation."""
        return self._begin(RunStatus.ANALYZING, "Analyzing data")

    def begin_import(self) -> int:
        """Enter `importing`, dropping any previous result."""
        generation = self._begin(RunStatus.IMPORTING, "Importing")
        self.result = None
        return generation

    def fail(self, message: Optional[str]) -> None:
        """Force the run into `error` with a human-readable message."""
        self.status = RunStatus.ERROR
        self.phase = RunStatus.ERROR
        self.error_message = message or DEFAULT_ERROR_MESSAGE
        self.message = self.error_message
        logger.warning(
            "import_run_failed",
            error=self.error_message,
            generation=self.generation,
        )

    def reset(self) -> None:
        """
        Back to the initial state.

        Configuration-disabled types survive. The generation is bumped so
        late events from the discarded run stay stale.
        """
        self._clear()
        self.generation += 1
        logger.info("import_run_reset", generation=self.generation)

    # ===================
    # EVENTS
    # ===================

    def apply_progress(
        self,
        progress: Union[ImportProgress, Mapping[str, Any]],
        generation: Optional[int] = None,
    ) -> bool:
        """
        Single entry point for backend progress.

        Args:
            progress: ImportProgress or its wire dict
            generation: Generation the event belongs to (defaults to the
                event's own tag; untagged events are current)

        Returns:
            True if the event was applied, False if dropped
        """
        if not isinstance(progress, ImportProgress):
            try:
                progress = ImportProgress.model_validate(progress)
            except PydanticValidationError as e:
                logger.warning("malformed_progress_ignored", error=str(e))
                return False

        tag = generation if generation is not None else progress.generation
        if tag is not None and tag != self.generation:
            logger.debug(
                "stale_progress_dropped",
                status=progress.status.value,
                event_generation=tag,
                generation=self.generation,
            )
            return False

        status = canonical_status(progress.status)
        phase = progress.status
        if status in (RunStatus.COMPLETED, RunStatus.COMPLETED_WITH_ERRORS) and progress.result is None:
            # Completion is only terminal once the result is known
            status = phase = RunStatus.IMPORTING
        elif status == RunStatus.COMPLETED and progress.result.has_errors:
            status = RunStatus.COMPLETED_WITH_ERRORS

        if not is_valid_run_transition(self.status, status):
            logger.warning(
                "invalid_run_transition_ignored",
                current_status=self.status.value,
                new_status=status.value,
            )
            return False

        self.status = status
        self.phase = phase
        self.progress = progress.progress
        if progress.message:
            self.message = progress.message

        if status == RunStatus.ANALYZED:
            self.progress = 100.0
            if progress.analysis is not None:
                self.load_analysis(progress.analysis)
        elif status in (RunStatus.COMPLETED, RunStatus.COMPLETED_WITH_ERRORS):
            self.progress = 100.0
            self.result = progress.result
        elif status == RunStatus.ERROR:
            self.error_message = progress.message or DEFAULT_ERROR_MESSAGE
            self.message = self.error_message

        return True

    def load_analysis(self, analysis: Union[ImportAnalysis, Mapping[str, Any]]) -> None:
        """
        Replace the detected actions with those of a fresh analysis.

        Actions of a configuration-disabled type start unselected and stay
        that way. The type filter is cleared.
        """
        if not isinstance(analysis, ImportAnalysis):
            analysis = ImportAnalysis.model_validate(analysis)

        self.analysis = analysis
        self.type_filter = set()
        self.detected_actions = [
            ActionItem(
                id=f"action-{index}",
                action_type=action.action_type,
                object_name=action.object_name,
                path=action.path,
                message=action.message,
                attributes=action.attributes,
                selected=not self.is_type_disabled(action.action_type),
            )
            for index, action in enumerate(analysis.actions)
        ]
        self.overview = AnalysisOverview(
            total_rows=len(analysis.csv_data) or analysis.summary.total_objects,
            actions_count=len(analysis.actions),
            create_count=analysis.summary.create_count,
            update_count=analysis.summary.update_count,
            error_count=analysis.summary.error_count,
        )

        logger.info(
            "analysis_loaded",
            actions=len(self.detected_actions),
            selected=len(self.selected_actions),
            generation=self.generation,
        )

    def append_logs(self, entries: Iterable[Union[LogEntry, Mapping[str, Any]]]) -> None:
        """Append log lines in arrival order."""
        for entry in entries:
            if not isinstance(entry, LogEntry):
                entry = LogEntry.model_validate(entry)
            self.logs.append(entry)

    # ===================
    # SELECTION
    # ===================

    def set_disabled_action_types(self, types: Iterable[ActionTypeLike]) -> None:
        """Replace the configuration-disabled types and unselect their actions."""
        self.disabled_action_types = normalize_set(types)
        for action in self.detected_actions:
            if self.is_type_disabled(action.action_type):
                action.selected = False

    def is_type_disabled(self, action_type: ActionTypeLike) -> bool:
        return normalize(action_type) in self.disabled_action_types

    def get_action(self, action_id: str) -> Optional[ActionItem]:
        for action in self.detected_actions:
            if action.id == action_id:
                return action
        return None

    def toggle(self, action_id: str, selected: Optional[bool] = None) -> bool:
        """
        Select, deselect or flip one action.

        Returns:
            True if the action changed, False for unknown ids and
            configuration-disabled actions
        """
        action = self.get_action(action_id)
        if action is None or self.is_type_disabled(action.action_type):
            return False

        value = (not action.selected) if selected is None else selected
        changed = action.selected != value
        action.selected = value
        return changed

    def _set_bulk(self, selected: bool) -> int:
        changed = 0
        for action in self.visible_actions:
            if self.is_type_disabled(action.action_type):
                continue
            if action.selected != selected:
                action.selected = selected
                changed += 1
        return changed

    def select_all(self) -> int:
        """Select every enabled visible action. Returns how many changed."""
        return self._set_bulk(True)

    def deselect_all(self) -> int:
        """Deselect every enabled visible action. Returns how many changed."""
        return self._set_bulk(False)

    def set_type_filter(self, types: Optional[Iterable[ActionTypeLike]]) -> None:
        """Narrow the visible actions to some types. Empty clears the filter."""
        self.type_filter = normalize_set(types)

    @property
    def visible_actions(self) -> list[ActionItem]:
        if not self.type_filter:
            return list(self.detected_actions)
        return [a for a in self.detected_actions if normalize(a.action_type) in self.type_filter]

    @property
    def selected_actions(self) -> list[ActionItem]:
        return [
            a for a in self.detected_actions
            if a.selected and not self.is_type_disabled(a.action_type)
        ]

    def selected_import_actions(self) -> list[ImportAction]:
        """Selected actions without their review fields, as sent for execution."""
        return [
            ImportAction(
                action_type=a.action_type,
                object_name=a.object_name,
                path=a.path,
                message=a.message,
                attributes=a.attributes,
            )
            for a in self.selected_actions
        ]

    def counts_by_type(self) -> dict[str, int]:
        """Detected actions per normalized type."""
        return dict(Counter(normalize(a.action_type) for a in self.detected_actions))

    # ===================
    # RESULT
    # ===================

    def reconciliation(self) -> Optional[Reconciliation]:
        """
        Cross-check the result counts.

        Success and error counts come from the per-action details when the
        backend sent them, otherwise from the summary. Backends that send
        no per-category count are compared through the derived counts.
        """
        if self.result is None:
            return None

        summary = self.result.summary
        details = self.result.details

        if details:
            success_count = sum(1 for d in details if d.success)
            error_count = len(details) - success_count
        else:
            error_count = summary.error_count
            success_count = summary.category_total - error_count

        if summary.has_category_detail:
            category_total = summary.category_total
        else:
            category_total = success_count + error_count

        expected = summary.total_objects or len(details)
        return Reconciliation(
            total_objects=summary.total_objects,
            category_total=category_total,
            success_count=success_count,
            error_count=error_count,
            derived_from_details=bool(details),
            reconciles=category_total == expected,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in (
            RunStatus.ANALYZED,
            RunStatus.COMPLETED,
            RunStatus.COMPLETED_WITH_ERRORS,
            RunStatus.ERROR,
        )

    def snapshot(self) -> ImportRunSnapshot:
        """Immutable copy of the current state."""
        return ImportRunSnapshot(
            status=self.status,
            progress=self.progress,
            message=self.message,
            generation=self.generation,
            detected_actions=[a.model_copy() for a in self.detected_actions],
            disabled_action_types=sorted(self.disabled_action_types),
            type_filter=sorted(self.type_filter),
            overview=self.overview,
            result=self.result,
            logs=list(self.logs),
            error_message=self.error_message,
            counts_by_type=self.counts_by_type(),
        )
