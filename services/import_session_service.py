"""
Import session service — Drive one import run against the backend.

An `ImportSession` wires the pieces together for one wizard session:

    push channel events -> ProgressAggregator -> ImportRun

analyze() and execute() each open an attempt: they register their own
handlers, await the terminal event under a timeout, and always release
those handlers before returning. Transport and backend failures come
back as failure results with the run in `error`, never as exceptions.
"""

import asyncio
from typing import Any, Callable, Iterable, Optional

import structlog

from config.settings import Settings, get_settings
from exceptions import AppError, InvalidRunTransitionError, OperationTimeoutError
from models.actions import ActionTypeLike, ImportAction
from models.import_run import (
    AnalysisOverview,
    AnalysisResult,
    ImportProgress,
    ImportResult,
    ImportRunSnapshot,
    ImportSummary,
    LogEntry,
    LogLevel,
    RunStatus,
)
from services.directory_client import DirectoryClient
from services.event_aggregator import ProgressAggregator
from services.import_run_service import ImportRun
from services.push_channel import CLOSED_EVENT, HttpSseTransport, PushChannel

logger = structlog.get_logger(__name__)

# Push events
RECEIVE_PROGRESS = "ReceiveProgress"
RECEIVE_LOG = "ReceiveLog"
ANALYSIS_COMPLETE = "ANALYSIS_COMPLETE"
ANALYSIS_ERROR = "ANALYSIS_ERROR"
IMPORT_COMPLETE = "IMPORT_COMPLETE"
IMPORT_ERROR = "IMPORT_ERROR"

CONNECTION_LOST_MESSAGE = "Connection to the directory backend was lost"
ANALYSIS_ERROR_MESSAGE = "Unknown error during analysis"
IMPORT_ERROR_MESSAGE = "Unknown error during import"
NO_ACTIONS_MESSAGE = "No actions selected"
SUPERSEDED_MESSAGE = "Superseded by a newer attempt"
SESSION_CLOSED_MESSAGE = "Import session closed"

# Flat IMPORT_COMPLETE field -> ImportSummary field
FLAT_SUMMARY_FIELDS = {
    "createdCount": "create_count",
    "updatedCount": "update_count",
    "deletedCount": "delete_count",
    "movedCount": "move_count",
    "errorCount": "error_count",
    "createdOUCount": "create_ou_count",
}


def default_error_result() -> ImportResult:
    """Synthetic result for imports that never reported one."""
    return ImportResult(success=False, summary=ImportSummary(error_count=1), details=[])


def unwrap_payload(payload: Any) -> dict:
    """Hub events wrap their body in `Data`; accept both wrapped and bare."""
    if not isinstance(payload, dict):
        return {}
    for key in ("Data", "data"):
        inner = payload.get(key)
        if isinstance(inner, dict):
            return inner
    return payload


def parse_import_complete(payload: Any, fallback_total: int = 0) -> ImportResult:
    """
    Build an ImportResult from an IMPORT_COMPLETE payload.

    Two shapes are accepted:
        {success, summary, details | actionResults}
        {totalProcessed, createdCount, updatedCount, ..., actionResults}
    """
    data = unwrap_payload(payload)

    if "summary" in data or "details" in data:
        return ImportResult.model_validate(data)

    summary = ImportSummary(
        total_objects=data.get("totalProcessed") or fallback_total,
        **{field: data.get(key) or 0 for key, field in FLAT_SUMMARY_FIELDS.items()},
    )
    return ImportResult.model_validate({
        "success": data.get("success", True),
        "summary": summary,
        "details": data.get("actionResults") or [],
    })


def completion_message(result: ImportResult) -> str:
    if result.success and result.summary.error_count == 0:
        return "Import completed successfully"
    if result.summary.error_count > 0 or any(not d.success for d in result.details):
        return "Import completed with errors"
    return "Import completed"


def overview_of(progress: ImportProgress) -> AnalysisOverview:
    analysis = progress.analysis
    if analysis is None:
        return AnalysisOverview()
    return AnalysisOverview(
        total_rows=len(analysis.csv_data),
        actions_count=len(analysis.actions),
        create_count=analysis.summary.create_count,
        update_count=analysis.summary.update_count,
        error_count=analysis.summary.error_count,
    )


class _Attempt:
    """Handlers and outcome of one analysis or import attempt."""

    def __init__(self, generation: int):
        self.generation = generation
        self.future: asyncio.Future = asyncio.get_running_loop().create_future()
        self.unsubscribers: list[Callable[[], None]] = []

    def resolve(self, value: Any) -> None:
        if not self.future.done():
            self.future.set_result(value)

    def release(self) -> None:
        for unsubscribe in self.unsubscribers:
            unsubscribe()
        self.unsubscribers = []


class ImportSession:
    """
    One import wizard session.

    Usage:
        session = create_import_session(disabled_action_types=["DELETE_USER"])
        await session.open()
        analysis = await session.analyze("users.csv", content, config_id)
        session.run.deselect_all()
        session.run.toggle("action-0", True)
        result = await session.execute(config_id)
        await session.close()
    """

    def __init__(
        self,
        channel: PushChannel,
        client: DirectoryClient,
        settings: Optional[Settings] = None,
        disabled_action_types: Iterable[ActionTypeLike] = (),
    ):
        self.settings = settings or get_settings()
        self.channel = channel
        self.client = client
        self.run = ImportRun(disabled_action_types)
        self.aggregator = ProgressAggregator(
            on_progress=self._deliver_progress,
            on_logs=self.run.append_logs,
            min_interval=self.settings.progress_min_interval,
            flush_interval=self.settings.log_flush_interval,
        )
        self._attempt: Optional[_Attempt] = None
        self._session_unsubscribers: list[Callable[[], None]] = []

    # ===================
    # LIFECYCLE
    # ===================

    async def open(self) -> None:
        """Start the channel and the aggregator; subscribe to log lines."""
        await self.channel.start()
        if not self._session_unsubscribers:
            self._session_unsubscribers.append(self.channel.on(RECEIVE_LOG, self._on_log))
        await self.aggregator.start()
        logger.info("import_session_opened", hub=self.channel.hub_name)

    async def close(self) -> None:
        """Release every handler and deliver what the aggregator still holds."""
        self._release_attempt(SESSION_CLOSED_MESSAGE)
        for unsubscribe in self._session_unsubscribers:
            unsubscribe()
        self._session_unsubscribers = []
        await self.aggregator.stop()
        logger.info("import_session_closed")

    def reset(self) -> None:
        """Start over: drop the attempt in flight and reset the run."""
        self._release_attempt()
        self.aggregator.discard_pending()
        self.run.reset()

    def snapshot(self) -> ImportRunSnapshot:
        return self.run.snapshot()

    # ===================
    # EVENT PLUMBING
    # ===================

    def _deliver_progress(self, progress: ImportProgress) -> None:
        self.run.apply_progress(progress)

    def _on_log(self, payload: Any) -> None:
        data = unwrap_payload(payload) if isinstance(payload, dict) else {"message": payload}
        try:
            entry = LogEntry.model_validate(data)
        except ValueError as e:
            logger.warning("malformed_log_ignored", error=str(e))
            return
        self.aggregator.push_log(entry)

    def _push(self, attempt: _Attempt, payload: dict) -> Optional[ImportProgress]:
        try:
            progress = ImportProgress.model_validate({**payload, "generation": attempt.generation})
        except ValueError as e:
            logger.warning("malformed_progress_ignored", error=str(e))
            return None
        self.aggregator.push_progress(progress)
        return progress

    def _open_attempt(self, generation: int) -> _Attempt:
        self._release_attempt(SUPERSEDED_MESSAGE)
        attempt = _Attempt(generation)
        self._attempt = attempt

        def on_closed(reason: Any = None) -> None:
            progress = self._push(attempt, {"status": RunStatus.ERROR.value, "message": CONNECTION_LOST_MESSAGE})
            attempt.resolve(progress)

        attempt.unsubscribers.append(self.channel.on(CLOSED_EVENT, on_closed))
        return attempt

    def _release_attempt(self, message: str = SUPERSEDED_MESSAGE) -> None:
        """Drop the attempt in flight; its caller gets a failure at once."""
        if self._attempt is not None:
            attempt, self._attempt = self._attempt, None
            attempt.release()
            attempt.resolve(ImportProgress(
                status=RunStatus.ERROR,
                message=message,
                generation=attempt.generation,
            ))

    def _fail(self, attempt: _Attempt, message: str) -> None:
        if attempt.generation != self.run.generation:
            return
        self.aggregator.discard_pending()
        self.aggregator.flush_logs()
        self.run.fail(message)

    # ===================
    # ANALYSIS
    # ===================

    async def analyze(self, file_name: str, content: bytes, config_id: str) -> AnalysisResult:
        """
        Upload a file and analyze it.

        Always resolves: failures, timeouts and backend errors come back
        as AnalysisResult(success=False) with the run in `error`.
        """
        try:
            generation = self.run.begin_upload()
        except InvalidRunTransitionError as e:
            return AnalysisResult(success=False, error_message=e.message)

        attempt = self._open_attempt(generation)

        try:
            try:
                await self.client.upload(file_name, content, config_id, self.channel.connection_id)
            except OperationTimeoutError as e:
                # The backend may still have received the file
                logger.warning("upload_timeout_continuing", file_name=file_name, error=e.message)
                self.aggregator.push_log(LogEntry(level=LogLevel.WARNING, message=e.message))

            if not attempt.future.done():
                attempt.generation = self.run.begin_analysis()
                self._subscribe_analysis(attempt)
                await self.client.start_analysis(config_id)

            progress = await asyncio.wait_for(
                asyncio.shield(attempt.future),
                timeout=self.settings.analysis_timeout,
            )
        except asyncio.TimeoutError:
            message = OperationTimeoutError("analysis", self.settings.analysis_timeout).message
            logger.error("analysis_timed_out", timeout=self.settings.analysis_timeout)
            self._fail(attempt, message)
            return AnalysisResult(success=False, error_message=message)
        except AppError as e:
            logger.error("analysis_failed", error=e.message, code=e.code)
            self._fail(attempt, e.message)
            return AnalysisResult(success=False, error_message=e.message)
        finally:
            attempt.release()
            if self._attempt is attempt:
                self._attempt = None

        if progress is None or progress.status != RunStatus.ANALYZED:
            message = (progress.message if progress else "") or ANALYSIS_ERROR_MESSAGE
            self._fail(attempt, message)
            return AnalysisResult(success=False, error_message=message)

        analysis = progress.analysis
        logger.info(
            "analysis_completed",
            actions=len(analysis.actions) if analysis else 0,
            generation=attempt.generation,
        )
        return AnalysisResult(
            success=True,
            analysis=analysis,
            csv_data=analysis.csv_data if analysis else [],
            overview=overview_of(progress),
        )

    def _subscribe_analysis(self, attempt: _Attempt) -> None:
        def on_progress(payload: Any) -> None:
            progress = self._push(attempt, unwrap_payload(payload))
            if progress is not None and progress.status in (RunStatus.ANALYZED, RunStatus.ERROR):
                attempt.resolve(progress)

        def on_complete(payload: Any) -> None:
            # Analysis data normally arrives through ReceiveProgress; this is the confirmation
            data = unwrap_payload(payload)
            analysis = data.get("Analysis") or data.get("analysis")
            if isinstance(analysis, dict) and isinstance(analysis.get("actions"), list):
                message = f"Analysis confirmed by the server ({len(analysis['actions'])} actions)"
                if not attempt.future.done():
                    attempt.resolve(self._push(attempt, {
                        "status": RunStatus.ANALYZED.value,
                        "progress": 100,
                        "analysis": analysis,
                    }))
            else:
                message = "Analysis confirmed by the server"
            self.aggregator.push_log(LogEntry(level=LogLevel.INFO, message=message))

        def on_error(payload: Any) -> None:
            data = unwrap_payload(payload)
            message = data.get("Error") or data.get("error") or ANALYSIS_ERROR_MESSAGE
            attempt.resolve(self._push(attempt, {"status": RunStatus.ERROR.value, "message": message}))

        attempt.unsubscribers.extend([
            self.channel.on(RECEIVE_PROGRESS, on_progress),
            self.channel.on(ANALYSIS_COMPLETE, on_complete),
            self.channel.on(ANALYSIS_ERROR, on_error),
        ])

    # ===================
    # IMPORT
    # ===================

    async def execute(
        self,
        config_id: str,
        actions: Optional[Iterable[ImportAction]] = None,
    ) -> ImportResult:
        """
        Execute actions (default: the selected ones) and await the result.

        Always resolves. Backend errors, timeouts and transport failures
        yield a synthetic failed result with the run in `error`; a result
        with errors leaves the run in `completed_with_errors`.

        Nothing is sent when there is no action to execute: the backend
        reads an empty list as "the whole stored analysis", which would
        run deselected and disabled actions. Use execute_stored() for that.
        """
        to_execute = list(actions) if actions is not None else self.run.selected_import_actions()
        if not to_execute:
            logger.warning("import_without_actions", status=self.run.status.value)
            self.aggregator.push_log(LogEntry(level=LogLevel.WARNING, message=NO_ACTIONS_MESSAGE))
            self.aggregator.flush_logs()
            self.run.message = NO_ACTIONS_MESSAGE
            return default_error_result()
        return await self._run_import(config_id, to_execute)

    async def execute_stored(self, config_id: str) -> ImportResult:
        """Execute every action of the analysis the backend kept for config_id."""
        logger.info("import_of_stored_analysis", config_id=config_id)
        return await self._run_import(config_id, [])

    async def _run_import(self, config_id: str, to_execute: list[ImportAction]) -> ImportResult:
        try:
            generation = self.run.begin_import()
        except InvalidRunTransitionError as e:
            logger.warning("import_not_startable", error=e.message)
            return default_error_result()

        attempt = self._open_attempt(generation)
        self._subscribe_import(attempt, len(to_execute))

        try:
            await self.client.start_import(config_id, to_execute)
            outcome = await asyncio.wait_for(
                asyncio.shield(attempt.future),
                timeout=self.settings.import_timeout,
            )
        except asyncio.TimeoutError:
            message = OperationTimeoutError("import", self.settings.import_timeout).message
            logger.error("import_timed_out", timeout=self.settings.import_timeout)
            self._fail(attempt, message)
            return default_error_result()
        except AppError as e:
            logger.error("import_failed", error=e.message, code=e.code)
            self._fail(attempt, e.message)
            return default_error_result()
        finally:
            attempt.release()
            if self._attempt is attempt:
                self._attempt = None

        if isinstance(outcome, ImportResult):
            logger.info(
                "import_completed",
                success=outcome.success,
                errors=outcome.summary.error_count,
                details=len(outcome.details),
            )
            return outcome

        message = (outcome.message if outcome else "") or IMPORT_ERROR_MESSAGE
        self._fail(attempt, message)
        return default_error_result()

    def _subscribe_import(self, attempt: _Attempt, action_count: int) -> None:
        def on_progress(payload: Any) -> None:
            progress = self._push(attempt, unwrap_payload(payload))
            if progress is None:
                return
            if progress.status in (RunStatus.COMPLETED, RunStatus.COMPLETED_WITH_ERRORS):
                # Without a result the counts come with IMPORT_COMPLETE
                if progress.result is not None:
                    attempt.resolve(progress.result)
            elif progress.status == RunStatus.ERROR:
                attempt.resolve(progress)

        def on_complete(payload: Any) -> None:
            try:
                result = parse_import_complete(payload, action_count)
            except ValueError as e:
                logger.warning("malformed_import_result", error=str(e))
                result = default_error_result()
            self._push(attempt, {
                "status": RunStatus.COMPLETED.value,
                "progress": 100,
                "message": completion_message(result),
                "result": result,
            })
            attempt.resolve(result)

        def on_error(payload: Any) -> None:
            data = unwrap_payload(payload)
            message = data.get("Error") or data.get("error") or IMPORT_ERROR_MESSAGE
            attempt.resolve(self._push(attempt, {"status": RunStatus.ERROR.value, "message": message}))

        attempt.unsubscribers.extend([
            self.channel.on(RECEIVE_PROGRESS, on_progress),
            self.channel.on(IMPORT_COMPLETE, on_complete),
            self.channel.on(IMPORT_ERROR, on_error),
        ])


def create_import_session(
    settings: Optional[Settings] = None,
    disabled_action_types: Iterable[ActionTypeLike] = (),
) -> ImportSession:
    """Build a session over HTTP + SSE from settings."""
    settings = settings or get_settings()
    channel = PushChannel(settings, HttpSseTransport(settings))
    client = DirectoryClient(channel, settings)
    return ImportSession(channel, client, settings, disabled_action_types)
