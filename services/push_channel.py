"""
Push channel — Session with the directory backend's push hub.

`PushChannel` is an explicit session object: it receives its settings
and transport in the constructor and is driven through start()/stop().
Handlers live in the channel, not in the transport, so a reconnect
never registers anything twice.

Lifecycle events dispatched to handlers:
    __reconnecting   connection lost, reconnect loop starting
    __reconnected    connection restored
    __closed         connection lost for good (or auto_reconnect off)
"""

import asyncio
import json
from enum import Enum
from typing import Any, AsyncIterator, Callable, Optional, Protocol

import httpx
import structlog

from config.settings import Settings
from exceptions import ChannelNotConnectedError, DirectoryBackendError

logger = structlog.get_logger(__name__)

EventHandler = Callable[..., None]

RECONNECTING_EVENT = "__reconnecting"
RECONNECTED_EVENT = "__reconnected"
CLOSED_EVENT = "__closed"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


def reconnect_delay(retry_count: int, max_delay: float = 30.0) -> float:
    """
    Seconds to wait before reconnect attempt `retry_count` (0-based).

    First retry is immediate, then 2, 4, 8 ... seconds, capped.
    """
    if retry_count <= 0:
        return 0.0
    return min(float(2 ** retry_count), max_delay)


class Transport(Protocol):
    """Wire connection to the hub. One instance is reused across reconnects."""

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def invoke(self, method: str, *args: Any) -> Any: ...

    def events(self) -> AsyncIterator[tuple[str, list[Any]]]: ...

    async def ping(self) -> bool: ...

    @property
    def connection_id(self) -> Optional[str]: ...


# ===================
# SESSION
# ===================

class PushChannel:
    """Long-lived hub session with idempotent subscriptions and auto-reconnect."""

    def __init__(self, settings: Settings, transport: Transport):
        self._settings = settings
        self._transport = transport
        self.hub_name = settings.hub_name
        self.auto_reconnect = settings.auto_reconnect

        self.state = ConnectionState.DISCONNECTED
        self._handlers: dict[str, list[EventHandler]] = {}
        self._receive_task: Optional[asyncio.Task] = None
        self._health_task: Optional[asyncio.Task] = None
        self._stopping = False
        self.last_health_ok: Optional[bool] = None

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def connection_id(self) -> Optional[str]:
        return self._transport.connection_id

    # ===================
    # LIFECYCLE
    # ===================

    async def start(self) -> None:
        """
        Open the connection and spawn the receive and health-check loops.

        No-op unless disconnected.

        Raises:
            ChannelNotConnectedError: If the transport cannot connect
                within connect_timeout
        """
        if self.state != ConnectionState.DISCONNECTED:
            logger.debug("push_channel_already_started", hub=self.hub_name, state=self.state.value)
            return

        self._stopping = False
        self.state = ConnectionState.CONNECTING
        logger.info("push_channel_connecting", hub=self.hub_name)

        try:
            await asyncio.wait_for(
                self._transport.connect(),
                timeout=self._settings.connect_timeout,
            )
        except (asyncio.TimeoutError, DirectoryBackendError, httpx.HTTPError, OSError) as e:
            self.state = ConnectionState.DISCONNECTED
            logger.error("push_channel_connect_failed", hub=self.hub_name, error=str(e) or type(e).__name__)
            raise ChannelNotConnectedError(self.hub_name, self.state.value) from e

        self.state = ConnectionState.CONNECTED
        loop = asyncio.get_running_loop()
        self._receive_task = loop.create_task(self._receive_loop())
        self._health_task = loop.create_task(self._health_loop())
        logger.info("push_channel_connected", hub=self.hub_name, connection_id=self.connection_id)

    async def stop(self) -> None:
        """Close the connection and cancel the background loops. Handlers are kept."""
        self._stopping = True
        current = asyncio.current_task()
        for task in (self._receive_task, self._health_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._receive_task = None
        self._health_task = None

        if self.state != ConnectionState.DISCONNECTED:
            await self._transport.close()
            self.state = ConnectionState.DISCONNECTED
            logger.info("push_channel_stopped", hub=self.hub_name)

    # ===================
    # SUBSCRIPTIONS
    # ===================

    def on(self, event: str, handler: EventHandler) -> Callable[[], None]:
        """
        Subscribe `handler` to `event`.

        Registering the same handler twice is a no-op.

        Returns:
            A callable that removes this subscription
        """
        handlers = self._handlers.setdefault(event, [])
        if handler not in handlers:
            handlers.append(handler)

        def unsubscribe() -> None:
            self.off(event, handler)

        return unsubscribe

    def off(self, event: str, handler: Optional[EventHandler] = None) -> None:
        """Remove one handler, or every handler of `event` when none is given."""
        handlers = self._handlers.get(event)
        if handlers is None:
            return
        if handler is None:
            del self._handlers[event]
            return
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            del self._handlers[event]

    def handler_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._handlers.get(event, []))
        return sum(len(handlers) for handlers in self._handlers.values())

    def dispatch(self, event: str, *args: Any) -> None:
        """Deliver one event to its handlers, in subscription order."""
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(*args)
            except Exception as e:
                logger.error(
                    "push_handler_failed",
                    hub=self.hub_name,
                    push_event=event,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    # ===================
    # INVOCATIONS
    # ===================

    async def invoke(self, method: str, *args: Any) -> Any:
        """
        Call a hub method, starting the connection first if needed.

        Raises:
            ChannelNotConnectedError: If the channel cannot be started
            DirectoryBackendError: If the backend rejects the call
        """
        if not self.is_connected:
            logger.warning("push_invoke_while_disconnected", hub=self.hub_name, method=method)
            if self.state == ConnectionState.DISCONNECTED:
                await self.start()
            else:
                raise ChannelNotConnectedError(self.hub_name, self.state.value)

        logger.info("push_invoke", hub=self.hub_name, method=method)
        return await self._transport.invoke(method, *args)

    # ===================
    # BACKGROUND LOOPS
    # ===================

    async def _receive_loop(self) -> None:
        while not self._stopping:
            try:
                async for event, args in self._transport.events():
                    self.dispatch(event, *args)
                reason = "stream_ended"
            except asyncio.CancelledError:
                raise
            except (DirectoryBackendError, httpx.HTTPError, OSError, ValueError) as e:
                reason = str(e) or type(e).__name__

            if self._stopping:
                return

            logger.warning("push_channel_lost", hub=self.hub_name, reason=reason)
            if not self.auto_reconnect or not await self._reconnect():
                self.state = ConnectionState.DISCONNECTED
                self.dispatch(CLOSED_EVENT, reason)
                return

    async def _reconnect(self) -> bool:
        self.state = ConnectionState.RECONNECTING
        self.dispatch(RECONNECTING_EVENT, None)

        for attempt in range(self._settings.reconnect_max_attempts):
            delay = reconnect_delay(attempt, self._settings.reconnect_max_delay)
            logger.info("push_channel_reconnecting", hub=self.hub_name, attempt=attempt + 1, delay=delay)
            if delay:
                await asyncio.sleep(delay)
            if self._stopping:
                return False

            try:
                await self._transport.close()
                await asyncio.wait_for(
                    self._transport.connect(),
                    timeout=self._settings.connect_timeout,
                )
            except (asyncio.TimeoutError, DirectoryBackendError, httpx.HTTPError, OSError) as e:
                logger.warning(
                    "push_channel_reconnect_failed",
                    hub=self.hub_name,
                    attempt=attempt + 1,
                    error=str(e) or type(e).__name__,
                )
                continue

            self.state = ConnectionState.CONNECTED
            logger.info("push_channel_reconnected", hub=self.hub_name, connection_id=self.connection_id)
            self.dispatch(RECONNECTED_EVENT, self.connection_id)
            return True

        logger.error(
            "push_channel_reconnect_exhausted",
            hub=self.hub_name,
            attempts=self._settings.reconnect_max_attempts,
        )
        return False

    async def _health_loop(self) -> None:
        while not self._stopping:
            await asyncio.sleep(self._settings.health_check_interval)
            if self.state != ConnectionState.CONNECTED:
                continue
            try:
                self.last_health_ok = await self._transport.ping()
            except (DirectoryBackendError, httpx.HTTPError, OSError) as e:
                logger.warning("push_channel_health_check_error", hub=self.hub_name, error=str(e))
                self.last_health_ok = False
            if not self.last_health_ok:
                logger.warning("push_channel_unhealthy", hub=self.hub_name)


# ===================
# HTTP + SSE TRANSPORT
# ===================

class HttpSseTransport:
    """
    Hub transport over plain HTTP.

    - invocations: POST {hub_url}/{method} with a JSON array of arguments
    - events: server-sent events from GET {hub_url}/events, one JSON
      document per `data:` payload (an array is spread as arguments)
    """

    CONNECTION_ID_HEADER = "x-connection-id"

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self._settings = settings
        self._owns_client = client is None
        self._client = client
        self._response: Optional[httpx.Response] = None
        self._connection_id: Optional[str] = None

    @property
    def connection_id(self) -> Optional[str]:
        return self._connection_id

    def _headers(self) -> dict[str, str]:
        headers = {}
        if self._settings.backend_api_key:
            headers["Authorization"] = f"Bearer {self._settings.backend_api_key}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._settings.connect_timeout, read=None),
                headers=self._headers(),
            )
        return self._client

    async def connect(self) -> None:
        client = self._get_client()
        request = client.build_request(
            "GET",
            f"{self._settings.hub_url}/events",
            headers={"Accept": "text/event-stream"},
        )
        response = await client.send(request, stream=True)
        if response.status_code >= 400:
            await response.aclose()
            raise DirectoryBackendError(
                f"Hub refused the event stream ({response.status_code})",
                details={"status_code": response.status_code},
            )
        self._response = response
        self._connection_id = response.headers.get(self.CONNECTION_ID_HEADER)

    async def close(self) -> None:
        if self._response is not None:
            await self._response.aclose()
            self._response = None
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def events(self) -> AsyncIterator[tuple[str, list[Any]]]:
        if self._response is None:
            raise DirectoryBackendError("Event stream is not open")

        event_name = "message"
        data_lines: list[str] = []
        async for line in self._response.aiter_lines():
            if not line:
                if data_lines:
                    yield event_name, parse_sse_data("\n".join(data_lines))
                event_name, data_lines = "message", []
                continue
            if line.startswith(":"):
                continue
            field, _, value = line.partition(":")
            value = value[1:] if value.startswith(" ") else value
            if field == "event":
                event_name = value
            elif field == "data":
                data_lines.append(value)

    async def invoke(self, method: str, *args: Any) -> Any:
        client = self._get_client()
        headers = {}
        if self._connection_id:
            headers["X-Connection-Id"] = self._connection_id
        try:
            response = await client.post(
                f"{self._settings.hub_url}/{method}",
                json=list(args),
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DirectoryBackendError(
                f"Hub method {method} failed ({e.response.status_code})",
                details={"method": method, "status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise DirectoryBackendError(
                f"Hub method {method} failed: {e}",
                details={"method": method},
            ) from e

        if not response.content:
            return None
        return response.json()

    async def ping(self) -> bool:
        client = self._get_client()
        response = await client.get(f"{self._settings.backend_url.rstrip('/')}/health")
        return response.status_code < 400


def parse_sse_data(data: str) -> list[Any]:
    """Arguments carried by one SSE `data:` payload."""
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        return [data]
    if isinstance(payload, list):
        return payload
    return [payload]
