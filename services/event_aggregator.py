"""
Event aggregator — Throttle progress and batch log lines.

The backend may push progress at any rate and one log line at a time.
`ProgressAggregator` hands them on at a human pace:

- progress is coalesced to at most one event per `min_interval`, the
  latest event winning; terminal statuses go through immediately
- log lines are buffered and flushed in arrival order every
  `flush_interval`, on terminal statuses and on stop()

It is a relay only. What an event means is decided by the callbacks.
"""

import asyncio
import time
from typing import Callable, Optional

import structlog

from models.import_run import ImportProgress, LogEntry

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[ImportProgress], None]
LogsCallback = Callable[[list[LogEntry]], None]

DEFAULT_MIN_INTERVAL = 0.2
DEFAULT_FLUSH_INTERVAL = 0.5


class ProgressAggregator:
    """Rate-limit progress events and batch log lines for one consumer."""

    def __init__(
        self,
        on_progress: ProgressCallback,
        on_logs: LogsCallback,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._on_progress = on_progress
        self._on_logs = on_logs
        self._min_interval = min_interval
        self._flush_interval = flush_interval
        self._clock = clock

        self._last_emit: Optional[float] = None
        self._pending: Optional[ImportProgress] = None
        self._pending_handle: Optional[asyncio.TimerHandle] = None
        self._buffer: list[LogEntry] = []

        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    # ===================
    # LIFECYCLE
    # ===================

    @property
    def is_running(self) -> bool:
        return self._task is not None

    async def start(self) -> None:
        """Spawn the log flush loop."""
        if self._task is not None:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._flush_loop())
        logger.debug("aggregator_started", flush_interval=self._flush_interval)

    async def stop(self) -> None:
        """Stop the flush loop, delivering whatever is still pending."""
        if self._task is not None and self._stop_event is not None:
            self._stop_event.set()
            try:
                await self._task
            finally:
                self._task = None
                self._stop_event = None

        self._cancel_pending_timer()
        if self._pending is not None:
            self._emit(self._pending)
        self.flush_logs()
        logger.debug("aggregator_stopped")

    async def _flush_loop(self) -> None:
        assert self._stop_event is not None
        while True:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._flush_interval)
                break
            except asyncio.TimeoutError:
                self.flush_logs()

    # ===================
    # PROGRESS
    # ===================

    def push_progress(self, event: ImportProgress) -> None:
        """
        Accept one progress event.

        Terminal events flush buffered logs, replace anything pending and
        are delivered at once. Others are delivered at once when the rate
        allows, otherwise held as the pending event.
        """
        if event.is_terminal:
            self._cancel_pending_timer()
            self._pending = None
            self.flush_logs()
            self._emit(event)
            return

        now = self._clock()
        elapsed = None if self._last_emit is None else now - self._last_emit

        if self._pending is None and (elapsed is None or elapsed >= self._min_interval):
            self._emit(event)
            return

        self._pending = event
        if self._pending_handle is None:
            delay = self._min_interval - (elapsed or 0.0)
            self._pending_handle = asyncio.get_running_loop().call_later(
                max(delay, 0.0), self._emit_pending
            )

    def discard_pending(self) -> None:
        """Drop a held progress event without delivering it."""
        self._cancel_pending_timer()
        self._pending = None

    def _emit_pending(self) -> None:
        self._pending_handle = None
        if self._pending is not None:
            event, self._pending = self._pending, None
            self._emit(event)

    def _emit(self, event: ImportProgress) -> None:
        self._last_emit = self._clock()
        self._on_progress(event)

    def _cancel_pending_timer(self) -> None:
        if self._pending_handle is not None:
            self._pending_handle.cancel()
            self._pending_handle = None

    # ===================
    # LOGS
    # ===================

    def push_log(self, entry: LogEntry) -> None:
        """Buffer one log line until the next flush."""
        self._buffer.append(entry)

    def flush_logs(self) -> None:
        """Hand every buffered line to the consumer, oldest first."""
        if not self._buffer:
            return
        batch, self._buffer = self._buffer, []
        self._on_logs(batch)

    @property
    def buffered_logs(self) -> int:
        return len(self._buffer)
