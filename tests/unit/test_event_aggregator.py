"""
Tests for event_aggregator — Progress throttling and log batching.
"""

import asyncio

from models.import_run import ImportProgress, LogEntry
from services.event_aggregator import ProgressAggregator


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _progress(status="importing", value=0):
    return ImportProgress(status=status, progress=value)


def _aggregator(min_interval=1.0, flush_interval=60.0):
    received = {"progress": [], "logs": []}
    clock = FakeClock()
    aggregator = ProgressAggregator(
        on_progress=received["progress"].append,
        on_logs=received["logs"].append,
        min_interval=min_interval,
        flush_interval=flush_interval,
        clock=clock,
    )
    return aggregator, received, clock


class TestProgressThrottling:
    """Tests for push_progress()."""

    async def test_first_event_is_immediate(self):
        aggregator, received, _ = _aggregator()
        aggregator.push_progress(_progress(value=10))
        assert [p.progress for p in received["progress"]] == [10]

    async def test_burst_is_coalesced_to_latest(self):
        aggregator, received, _ = _aggregator(min_interval=0.05)
        for value in range(1, 11):
            aggregator.push_progress(_progress(value=value))

        assert [p.progress for p in received["progress"]] == [1]
        await asyncio.sleep(0.1)
        assert [p.progress for p in received["progress"]] == [1, 10]

    async def test_event_after_interval_is_immediate(self):
        aggregator, received, clock = _aggregator()
        aggregator.push_progress(_progress(value=1))
        clock.now = 1.5
        aggregator.push_progress(_progress(value=2))
        assert [p.progress for p in received["progress"]] == [1, 2]

    async def test_terminal_event_bypasses_throttle(self):
        aggregator, received, _ = _aggregator()
        aggregator.push_progress(_progress(value=1))
        aggregator.push_progress(_progress(value=50))
        aggregator.push_progress(_progress(status="completed", value=100))

        assert [p.status.value for p in received["progress"]] == ["importing", "completed"]
        await asyncio.sleep(0)
        assert len(received["progress"]) == 2

    async def test_discard_pending(self):
        aggregator, received, _ = _aggregator(min_interval=0.05)
        aggregator.push_progress(_progress(value=1))
        aggregator.push_progress(_progress(value=2))
        aggregator.discard_pending()
        await asyncio.sleep(0.1)
        assert [p.progress for p in received["progress"]] == [1]


class TestLogBatching:
    """Tests for push_log() / flush_logs()."""

    async def test_logs_are_buffered_until_flush(self):
        aggregator, received, _ = _aggregator()
        aggregator.push_log(LogEntry(message="one"))
        aggregator.push_log(LogEntry(message="two"))

        assert received["logs"] == []
        assert aggregator.buffered_logs == 2

        aggregator.flush_logs()
        assert [[e.message for e in batch] for batch in received["logs"]] == [["one", "two"]]
        assert aggregator.buffered_logs == 0

    async def test_empty_flush_emits_nothing(self):
        aggregator, received, _ = _aggregator()
        aggregator.flush_logs()
        assert received["logs"] == []

    async def test_terminal_event_flushes_logs_first(self):
        order = []
        aggregator = ProgressAggregator(
            on_progress=lambda p: order.append(("progress", p.status.value)),
            on_logs=lambda batch: order.append(("logs", len(batch))),
        )
        aggregator.push_log(LogEntry(message="last line"))
        aggregator.push_progress(_progress(status="error"))
        assert order == [("logs", 1), ("progress", "error")]

    async def test_flush_loop(self):
        aggregator, received, _ = _aggregator(flush_interval=0.01)
        await aggregator.start()
        assert aggregator.is_running is True

        aggregator.push_log(LogEntry(message="tick"))
        await asyncio.sleep(0.05)
        assert len(received["logs"]) == 1

        await aggregator.stop()
        assert aggregator.is_running is False

    async def test_stop_delivers_pending(self):
        aggregator, received, _ = _aggregator()
        await aggregator.start()
        aggregator.push_progress(_progress(value=1))
        aggregator.push_progress(_progress(value=2))
        aggregator.push_log(LogEntry(message="tail"))

        await aggregator.stop()

        assert [p.progress for p in received["progress"]] == [1, 2]
        assert len(received["logs"]) == 1
