"""
Shared test fixtures.

Fakes stand in for the directory backend: a transport that records
invocations and lets tests push server events, and an upload client
that never touches the network.
"""

import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import asyncio
from typing import Any, AsyncIterator, Optional

import pytest

from config.settings import Settings


# ===================
# FAKE PUSH TRANSPORT
# ===================

_CLOSE = object()


class FakeTransport:
    """
    In-memory push transport.

    Usage:
        transport = FakeTransport()
        channel = PushChannel(settings, transport)
        await channel.start()
        transport.emit("ReceiveProgress", {"Data": {...}})
    """

    def __init__(self, fail_connects: int = 0, connection_id: str = "conn-1"):
        self.fail_connects = fail_connects
        self.connect_calls = 0
        self.close_calls = 0
        self.invocations: list[tuple[str, tuple]] = []
        self.ping_ok = True
        self._connection_id = connection_id
        self._queue: asyncio.Queue = asyncio.Queue()

    @property
    def connection_id(self) -> Optional[str]:
        return self._connection_id

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail_connects > 0:
            self.fail_connects -= 1
            raise ConnectionError("backend unreachable")
        self._queue = asyncio.Queue()

    async def close(self) -> None:
        self.close_calls += 1
        self._queue.put_nowait(_CLOSE)

    async def invoke(self, method: str, *args: Any) -> Any:
        self.invocations.append((method, args))
        return None

    async def ping(self) -> bool:
        return self.ping_ok

    async def events(self) -> AsyncIterator[tuple[str, list]]:
        while True:
            item = await self._queue.get()
            if item is _CLOSE:
                return
            yield item

    # Test helpers

    def emit(self, event: str, *args: Any) -> None:
        """Push one server event to the channel."""
        self._queue.put_nowait((event, list(args)))

    def drop(self) -> None:
        """End the event stream as if the server closed it."""
        self._queue.put_nowait(_CLOSE)

    def invoked(self, method: str) -> list[tuple]:
        return [args for name, args in self.invocations if name == method]


class FakeDirectoryClient:
    """Directory client that records calls instead of hitting HTTP."""

    def __init__(self, transport: FakeTransport, upload_error: Optional[Exception] = None):
        self.transport = transport
        self.upload_error = upload_error
        self.uploads: list[tuple[str, bytes, str, Optional[str]]] = []
        self.analyses: list[Any] = []
        self.imports: list[tuple[str, list]] = []
        # Scripted server reaction: (event, *args) tuples or callables
        self.analysis_events: list = []
        self.import_events: list = []

    def _play(self, events: list) -> None:
        for event in events:
            if callable(event):
                event()
            else:
                self.transport.emit(*event)

    async def upload(self, file_name, content, config_id, connection_id):
        self.uploads.append((file_name, content, config_id, connection_id))
        if self.upload_error is not None:
            raise self.upload_error
        return {"ok": True}

    async def start_analysis(self, config):
        self.analyses.append(config)
        self._play(self.analysis_events)

    async def start_import(self, config_id, actions):
        self.imports.append((config_id, list(actions)))
        self._play(self.import_events)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def fast_settings() -> Settings:
    """
    Settings with short timeouts and no throttling delays.

    Usage:
        def test_something(fast_settings):
            channel = PushChannel(fast_settings, FakeTransport())
    """
    return Settings(
        backend_url="http://directory.test",
        upload_timeout=0.2,
        analysis_timeout=0.5,
        import_timeout=0.5,
        connect_timeout=0.5,
        auto_reconnect=True,
        reconnect_max_attempts=5,
        reconnect_max_delay=0.0,
        health_check_interval=60.0,
        progress_min_interval=0.0,
        log_flush_interval=0.01,
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/mappings/presets")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
