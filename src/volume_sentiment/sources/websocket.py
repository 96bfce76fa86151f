from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import websockets

from volume_sentiment.core.models import ConnectionPhase, ConnectionStatus, Snapshot
from volume_sentiment.core.time_utils import now_ms
from volume_sentiment.engine.store import SnapshotStore

from .payload import PayloadValidationError, parse_snapshot
from .synthetic import RandomSnapshotSource, SnapshotSource

DEFAULT_MAX_RECONNECT_ATTEMPTS = 5
DEFAULT_RECONNECT_BASE_MS = 1000
DEFAULT_MOCK_INTERVAL_MS = 1000

ConnectFactory = Callable[[str], Awaitable[Any]]

logger = logging.getLogger(__name__)


def default_connect(url: str) -> Awaitable[Any]:
    return websockets.connect(
        url,
        ping_interval=20,
        ping_timeout=20,
        close_timeout=5,
        max_size=2**22,
    )


def backoff_delay_ms(attempt: int, base_ms: int = DEFAULT_RECONNECT_BASE_MS) -> int:
    return base_ms * 2 ** (attempt - 1)


class ConnectionManager:
    """Keeps the snapshot store fed from a websocket feed.

    Lifecycle: disconnected -> connecting -> connected -> closed/errored ->
    connecting ... with exponential backoff between attempts. Whenever the feed
    drops or sends garbage, a synthetic source takes over on a fixed period
    until the next successful connect. ``disconnect()`` is terminal.

    Must be driven from a running asyncio loop; nothing here is thread-safe.
    """

    def __init__(
        self,
        *,
        url: str,
        store: SnapshotStore,
        on_snapshot: Callable[[Snapshot], None] | None = None,
        on_connected: Callable[[], None] | None = None,
        on_disconnected: Callable[[], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        reconnect_base_ms: int = DEFAULT_RECONNECT_BASE_MS,
        mock_interval_ms: int = DEFAULT_MOCK_INTERVAL_MS,
        synthetic_source: SnapshotSource | None = None,
        connect_factory: ConnectFactory | None = None,
        clock: Callable[[], int] = now_ms,
        debug: bool = False,
    ) -> None:
        self._url = url
        self._store = store
        self._on_snapshot = on_snapshot
        self._on_connected = on_connected
        self._on_disconnected = on_disconnected
        self._on_error = on_error
        self._max_reconnect_attempts = max_reconnect_attempts
        self._reconnect_base_ms = reconnect_base_ms
        self._mock_interval_seconds = mock_interval_ms / 1000
        self._synthetic = synthetic_source or RandomSnapshotSource()
        self._connect_factory = connect_factory or default_connect
        self._clock = clock
        self._debug = debug

        self._phase = ConnectionPhase.DISCONNECTED
        self._reconnect_attempts = 0
        self._websocket: Any | None = None
        self._pending_connect: Awaitable[Any] | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._mock_task: asyncio.Task[None] | None = None
        self._shut_down = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def phase(self) -> ConnectionPhase:
        return self._phase

    @property
    def status(self) -> ConnectionStatus:
        return self._phase.status

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def mock_active(self) -> bool:
        return self._mock_task is not None

    def connect(self) -> None:
        if self._shut_down:
            self._trace("Ignoring connect after disconnect")
            return
        if self._phase in (ConnectionPhase.CONNECTING, ConnectionPhase.CONNECTED):
            self._trace("Connect skipped", phase=self._phase.value)
            return
        self._cancel_reconnect()

        loop = asyncio.get_running_loop()
        self._trace("Connecting")
        try:
            pending = self._connect_factory(self._url)
        except Exception as exc:
            logger.warning("WebSocket construction failed", extra={"url": self._url, "error": repr(exc)})
            self._report_error(exc)
            self._enter_fallback()
            return

        self._pending_connect = pending
        self._set_phase(ConnectionPhase.CONNECTING)
        self._reader_task = loop.create_task(self._run_transport(pending), name="volume-sentiment-ws")

    def reconnect(self) -> None:
        if self._shut_down or self._phase is ConnectionPhase.CONNECTING:
            return
        if self._reconnect_handle is not None:
            return
        if self._reconnect_attempts >= self._max_reconnect_attempts:
            logger.warning(
                "Max reconnection attempts reached; staying on synthetic data",
                extra={"url": self._url, "attempt": self._reconnect_attempts},
            )
            return

        self._reconnect_attempts += 1
        delay_ms = backoff_delay_ms(self._reconnect_attempts, self._reconnect_base_ms)
        self._trace("Scheduling reconnect", attempt=self._reconnect_attempts, delay_ms=delay_ms)
        self._reconnect_handle = self._schedule(delay_ms / 1000, self._fire_reconnect)

    async def disconnect(self) -> None:
        """Stop every timer, then close the transport. The manager stays down afterwards."""
        self._shut_down = True
        self._cancel_reconnect()
        await self._stop_fallback()

        reader = self._reader_task
        self._reader_task = None
        if reader is not None and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        pending = self._pending_connect
        self._pending_connect = None
        if inspect.iscoroutine(pending):
            pending.close()

        websocket = self._websocket
        self._websocket = None
        if websocket is not None:
            await self._close_transport(websocket)

        self._set_phase(ConnectionPhase.DISCONNECTED)

    def _schedule(self, delay_seconds: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay_seconds, callback)

    def _fire_reconnect(self) -> None:
        self._reconnect_handle = None
        self.connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    async def _run_transport(self, pending: Awaitable[Any]) -> None:
        try:
            websocket = await pending
        except Exception as exc:
            self._pending_connect = None
            self._on_transport_error(exc)
            self._on_transport_closed()
            return

        self._pending_connect = None
        self._websocket = websocket
        self._on_open()
        try:
            async for raw in websocket:
                self._handle_message(raw)
        except Exception as exc:
            self._on_transport_error(exc)
        self._websocket = None
        await self._close_transport(websocket)
        self._on_transport_closed()

    async def _close_transport(self, websocket: Any) -> None:
        try:
            await websocket.close()
        except Exception:
            logger.debug("WebSocket close failed", extra={"url": self._url}, exc_info=True)

    def _on_open(self) -> None:
        self._set_phase(ConnectionPhase.CONNECTED)
        self._reconnect_attempts = 0
        if self._mock_task is not None:
            self._trace("Real feed is back; stopping synthetic data")
            self._cancel_fallback()
        self._invoke(self._on_connected)

    def _on_transport_error(self, exc: Exception) -> None:
        self._set_phase(ConnectionPhase.ERRORED)
        logger.warning("WebSocket transport error", extra={"url": self._url, "error": repr(exc)})
        self._report_error(exc)
        self._enter_fallback()

    def _on_transport_closed(self) -> None:
        self._set_phase(ConnectionPhase.CLOSED)
        self._invoke(self._on_disconnected)
        self._enter_fallback()
        self.reconnect()

    def _handle_message(self, raw: Any) -> None:
        try:
            snapshot = parse_snapshot(raw)
        except PayloadValidationError as exc:
            logger.warning("Dropping invalid payload", extra={"url": self._url, "error": str(exc)})
            self._report_error(exc)
            self._enter_fallback()
            return

        self._store.admit(snapshot, now=self._clock())
        self._invoke(self._on_snapshot, snapshot)

    def _enter_fallback(self) -> None:
        if self._shut_down or self._mock_task is not None:
            return
        self._trace("Falling back to synthetic data")
        self._mock_task = asyncio.get_running_loop().create_task(
            self._mock_loop(),
            name="volume-sentiment-synthetic",
        )

    def _cancel_fallback(self) -> asyncio.Task[None] | None:
        task = self._mock_task
        self._mock_task = None
        if task is not None:
            task.cancel()
        return task

    async def _stop_fallback(self) -> None:
        task = self._cancel_fallback()
        if task is None or task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _mock_loop(self) -> None:
        while True:
            await asyncio.sleep(self._mock_interval_seconds)
            try:
                payload = self._synthetic.next_payload(self._clock())
            except Exception:
                logger.exception("Synthetic source failed")
                continue
            self._handle_message(payload)

    def _set_phase(self, phase: ConnectionPhase) -> None:
        if phase is self._phase:
            return
        self._trace("Connection phase changed", phase=phase.value)
        self._phase = phase

    def _report_error(self, exc: Exception) -> None:
        self._invoke(self._on_error, exc)

    def _invoke(self, callback: Callable[..., None] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Connection observer failed", extra={"url": self._url})

    def _trace(self, message: str, **extra: Any) -> None:
        level = logging.INFO if self._debug else logging.DEBUG
        logger.log(level, message, extra={"url": self._url, **extra})
