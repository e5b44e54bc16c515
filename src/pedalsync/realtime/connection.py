"""Connection manager — one self-healing push connection per mounted view.

Learn: The manager is a small state machine driven entirely by callbacks
on the event loop. Nothing here blocks or sleeps:

    CLOSED ──open()──▶ CONNECTING ──handshake ok──▶ OPEN
       ▲                   │                          │
       │             handshake failed          transport closed
       │                   ▼                          ▼
       └──reconnect timer── CLOSED ◀──────────────────┘

On every successful open the attempt counter resets and a heartbeat
timer starts sending {"type": "ping"}. On every closure the heartbeat
stops and, unless the close was normal (1000) or the user is logged
out, exactly one reconnect is scheduled with capped exponential backoff.

Resources (socket, heartbeat timer, reconnect timer) are fields on the
instance. Each transition cancels the old handle before arming a new
one, so there is never more than one of each. close() sets a disposed
flag first; every callback checks it, so anything that fires after
teardown is a no-op.

Transport errors are only logged. The closure that follows them is the
one and only trigger for reconnect decisions.
"""

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog
import websockets
from websockets.exceptions import ConnectionClosed

from pedalsync.config import settings
from pedalsync.events.types import JOIN_DRIVER_ROOM, JOIN_ORDER_ROOM, PING
from pedalsync.realtime.backoff import ReconnectPolicy
from pedalsync.realtime.normalizer import EventFrame, normalize_frame

logger = structlog.get_logger()

# RFC 6455: no close frame received (dropped TCP, failed handshake, ...)
CLOSE_ABNORMAL = 1006

EventHandler = Callable[[EventFrame], None]
StateHandler = Callable[["ConnectionState"], None]
CredentialProvider = Callable[[], Optional[str]]
Connector = Callable[[str], Awaitable[Any]]


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Session:
    """Per-mount connection bookkeeping. Survives reconnects, not close()."""
    endpoint: str
    credential: Optional[str] = None
    reconnect_attempts: int = 0
    last_opened_at: Optional[datetime] = None


async def websocket_connector(url: str):
    """Default transport: a websockets client connection.

    Learn: ping_interval=None turns off the library's protocol-level
    pings. The backend expects application-level {"type": "ping"} frames
    and answers them with {"type": "pong"}.
    """
    return await websockets.connect(url, ping_interval=None, close_timeout=10)


def build_endpoint(base_url: str, path: str) -> str:
    return base_url.rstrip("/") + "/" + path.lstrip("/")


def _with_token(endpoint: str, token: str) -> str:
    return str(httpx.URL(endpoint).copy_merge_params({"token": token}))


class ConnectionManager:
    """Owns one logical push connection: open, heartbeat, reconnect, teardown.

    Usage:
        manager = ConnectionManager(endpoint, credentials=lambda: token)
        unsubscribe = manager.subscribe(handle_event)
        manager.open()
        ...
        await manager.aclose()
    """

    def __init__(
        self,
        endpoint: str,
        credentials: CredentialProvider,
        *,
        connector: Optional[Connector] = None,
        policy: Optional[ReconnectPolicy] = None,
        heartbeat_interval: Optional[float] = None,
        normal_close_code: Optional[int] = None,
        on_state_change: Optional[StateHandler] = None,
    ):
        self.endpoint = endpoint
        self._credentials = credentials
        self._connector = connector or websocket_connector
        self.policy = policy or ReconnectPolicy.from_settings()
        self.heartbeat_interval = (
            heartbeat_interval
            if heartbeat_interval is not None
            else settings.heartbeat_interval_seconds
        )
        self.normal_close_code = (
            normal_close_code
            if normal_close_code is not None
            else settings.normal_close_code
        )
        self._on_state_change = on_state_change

        self.state = ConnectionState.CLOSED
        self.session: Optional[Session] = None
        self.gave_up = False

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._ws: Any = None
        self._connect_task: Optional[asyncio.Task] = None
        self._heartbeat: Optional[asyncio.TimerHandle] = None
        self._reconnect: Optional[asyncio.TimerHandle] = None
        self._handlers: list[EventHandler] = []
        self._pending: set[asyncio.Task] = set()
        self._disposed = False

    # ─── Public API ──────────────────────────────────────

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def heartbeat_active(self) -> bool:
        return self._heartbeat is not None

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect is not None

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register a handler for normalized events. Returns an unsubscribe handle."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def open(self) -> None:
        """Start the connection if a user is logged in. Must run inside the event loop."""
        if self._disposed:
            raise RuntimeError("ConnectionManager is closed; create a new one to reconnect")
        if self.session is not None:
            return
        if not self._credentials():
            logger.info("ws.unauthenticated", endpoint=self.endpoint)
            return

        self._loop = asyncio.get_running_loop()
        self.session = Session(endpoint=self.endpoint)
        self._connect()

    def send(self, message: dict[str, Any]) -> bool:
        """Fire-and-forget. Dropped silently unless the connection is OPEN."""
        if self._disposed or self.state is not ConnectionState.OPEN or self._ws is None:
            return False
        self._spawn(self._send_now(self._ws, json.dumps(message)))
        return True

    def join_order_room(self, order_id: str) -> bool:
        return self.send({"type": JOIN_ORDER_ROOM, "data": {"orderId": order_id}})

    def join_driver_room(self, driver_id: str) -> bool:
        return self.send({"type": JOIN_DRIVER_ROOM, "data": {"driverId": driver_id}})

    def close(self) -> None:
        """Tear everything down. Synchronous from the caller's side.

        Timers are cancelled and the socket close is requested right away.
        A socket still mid-handshake is closed as soon as the handshake
        resolves (see _run) so nothing is left half-open.
        """
        if self._disposed:
            return
        self._disposed = True
        self._cancel_heartbeat()
        self._cancel_reconnect()
        self.session = None

        ws, self._ws = self._ws, None
        if self.state is ConnectionState.CONNECTING:
            logger.debug("ws.close_deferred", endpoint=self.endpoint)
            return
        if ws is not None:
            self._set_state(ConnectionState.CLOSING)
            self._spawn(self._close_socket(ws))
        else:
            self._set_state(ConnectionState.CLOSED)
        logger.info("ws.teardown", endpoint=self.endpoint)

    async def aclose(self) -> None:
        """close(), then wait for the socket and in-flight sends to settle."""
        self.close()
        tasks = [t for t in (self._connect_task, *self._pending) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ─── Connection lifecycle ────────────────────────────

    def _connect(self) -> None:
        if self._disposed or self.session is None:
            return
        token = self._credentials()
        if not token:
            # Logged out between attempts: stop quietly, a later open() starts over
            logger.info("ws.unauthenticated", endpoint=self.endpoint)
            self.session = None
            self._set_state(ConnectionState.CLOSED)
            return

        # Re-read on every attempt so a rotated token is picked up
        self.session.credential = token
        self._set_state(ConnectionState.CONNECTING)
        logger.info(
            "ws.connecting",
            endpoint=self.endpoint,
            attempt=self.session.reconnect_attempts,
        )
        self._connect_task = self._loop.create_task(
            self._run(_with_token(self.endpoint, token))
        )

    async def _run(self, url: str) -> None:
        """One connection attempt, from handshake to closure."""
        try:
            try:
                ws = await self._connector(url)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._on_error(e)
                self._on_close(CLOSE_ABNORMAL)
                return

            if self._disposed:
                # Torn down mid-handshake: close the socket we just got
                await self._close_socket(ws)
                return

            self._on_open(ws)
            code = await self._read(ws)
            self._on_close(code)
        finally:
            if self._disposed and self._ws is None and self.state is not ConnectionState.CLOSING:
                self._set_state(ConnectionState.CLOSED)

    async def _read(self, ws: Any) -> int:
        """Pump frames until the socket closes. Returns the close code."""
        try:
            async for raw in ws:
                if self._disposed:
                    break
                self._on_message(raw)
        except ConnectionClosed as e:
            return e.rcvd.code if e.rcvd is not None else CLOSE_ABNORMAL
        except Exception as e:
            self._on_error(e)
            return CLOSE_ABNORMAL
        code = getattr(ws, "close_code", None)
        return code if code is not None else CLOSE_ABNORMAL

    async def _close_socket(self, ws: Any) -> None:
        try:
            await ws.close()
        except Exception as e:
            logger.warning("ws.close_failed", error=str(e))
        finally:
            if self._disposed:
                self._set_state(ConnectionState.CLOSED)

    # ─── Transport callbacks ─────────────────────────────

    def _on_open(self, ws: Any) -> None:
        if self._disposed or self.session is None:
            return
        self._ws = ws
        self.session.reconnect_attempts = 0
        self.session.last_opened_at = datetime.now(timezone.utc)
        self._cancel_reconnect()
        self._set_state(ConnectionState.OPEN)
        self._start_heartbeat()
        logger.info("ws.opened", endpoint=self.endpoint)

    def _on_message(self, raw: Any) -> None:
        if self._disposed:
            return
        event = normalize_frame(raw)
        if event is None:
            return
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("ws.handler_failed", event_type=event.type)

    def _on_error(self, error: BaseException) -> None:
        if self._disposed:
            return
        logger.warning("ws.transport_error", endpoint=self.endpoint, error=str(error))

    def _on_close(self, code: int) -> None:
        if self._disposed:
            return
        self._ws = None
        self._cancel_heartbeat()
        self._set_state(ConnectionState.CLOSED)
        logger.info("ws.closed", endpoint=self.endpoint, code=code)

        if code == self.normal_close_code:
            self.session = None
            return
        if not self._credentials():
            logger.info("ws.unauthenticated", endpoint=self.endpoint)
            self.session = None
            return
        self._schedule_reconnect(code)

    # ─── Timers ──────────────────────────────────────────

    def _schedule_reconnect(self, code: int) -> None:
        attempt = self.session.reconnect_attempts
        if self.policy.exhausted(attempt):
            self.gave_up = True
            logger.error("ws.gave_up", endpoint=self.endpoint, attempts=attempt, code=code)
            return

        delay_ms = self.policy.delay_ms(attempt)
        self._cancel_reconnect()
        self._reconnect = self._loop.call_later(delay_ms / 1000, self._fire_reconnect)
        logger.info("ws.reconnect_scheduled", attempt=attempt, delay_ms=delay_ms, code=code)
        if self.policy.should_warn(attempt):
            logger.warning("ws.reconnect_failing", attempts=attempt, code=code)

    def _fire_reconnect(self) -> None:
        self._reconnect = None
        if self._disposed or self.session is None:
            return
        self.session.reconnect_attempts += 1
        self._connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect is not None:
            self._reconnect.cancel()
            self._reconnect = None

    def _start_heartbeat(self) -> None:
        self._cancel_heartbeat()
        self._heartbeat = self._loop.call_later(self.heartbeat_interval, self._beat)

    def _beat(self) -> None:
        self._heartbeat = None
        if self._disposed or self.state is not ConnectionState.OPEN:
            return
        self.send({"type": PING})
        self._heartbeat = self._loop.call_later(self.heartbeat_interval, self._beat)

    def _cancel_heartbeat(self) -> None:
        if self._heartbeat is not None:
            self._heartbeat.cancel()
            self._heartbeat = None

    # ─── Helpers ─────────────────────────────────────────

    def _set_state(self, state: ConnectionState) -> None:
        if state is self.state:
            return
        self.state = state
        if self._on_state_change is not None:
            try:
                self._on_state_change(state)
            except Exception:
                logger.exception("ws.state_handler_failed", state=state.value)

    def _spawn(self, coro: Awaitable[Any]) -> None:
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send_now(self, ws: Any, payload: str) -> None:
        try:
            await ws.send(payload)
        except Exception as e:
            logger.warning("ws.send_failed", endpoint=self.endpoint, error=str(e))
