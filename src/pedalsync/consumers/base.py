"""LiveView — mount/unmount lifecycle shared by every live consumer.

Learn: A view owns exactly one ConnectionManager while it is mounted:

    mount()     → new manager, subscribe store.handle_event, open(), load baseline
    unmount()   → unsubscribe, tear the manager down, forget it
    logout      → same teardown, triggered by the store's auth slice emptying
    new login   → teardown + a fresh manager for the new (user, token) pair

The bearer token is also read from the store on every connect attempt,
but a socket that is already open keeps the URL it was opened with.
That is why a changed login replaces the manager instead of waiting for
the next reconnect.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

import structlog

from pedalsync.api.client import PedalAPI
from pedalsync.config import settings
from pedalsync.realtime.backoff import ReconnectPolicy
from pedalsync.realtime.connection import (
    ConnectionManager,
    ConnectionState,
    Connector,
    build_endpoint,
)
from pedalsync.realtime.normalizer import EventFrame
from pedalsync.state.models import AppState, AuthSlice
from pedalsync.state.store import Store

logger = structlog.get_logger()

Identity = tuple[Optional[str], Optional[str]]


def _identity(auth: AuthSlice) -> Identity:
    return (auth.user_id, auth.token)


class LiveView(ABC):
    """Base class for live consumers. Subclasses load their baseline in refresh()."""

    name = "view"

    def __init__(
        self,
        store: Store,
        api: PedalAPI,
        *,
        endpoint: Optional[str] = None,
        connector: Optional[Connector] = None,
        policy: Optional[ReconnectPolicy] = None,
        heartbeat_interval: Optional[float] = None,
    ):
        self.store = store
        self.api = api
        self.endpoint = endpoint or build_endpoint(settings.ws_url, settings.ws_path)
        self._connector = connector
        self._policy = policy
        self._heartbeat_interval = heartbeat_interval

        self.manager: Optional[ConnectionManager] = None
        self.connection_state = ConnectionState.CLOSED
        self.loading = False
        self._identity: Identity = (None, None)
        self._unsubscribers: list[Callable[[], None]] = []
        self._store_unsubscribe: Optional[Callable[[], None]] = None
        self._retired: list[ConnectionManager] = []
        self._tasks: set[asyncio.Task] = set()

    @property
    def mounted(self) -> bool:
        return self.manager is not None

    @abstractmethod
    async def refresh(self) -> bool:
        """Reload the REST baseline. Returns False (and keeps old state) on failure."""

    def on_event(self, event: EventFrame) -> None:
        self.store.handle_event(event)

    # ─── Lifecycle ───────────────────────────────────────

    async def mount(self) -> None:
        if self.manager is not None:
            return
        self._store_unsubscribe = self.store.subscribe(self._on_store_change)
        self._connect()
        logger.info(f"{self.name}.mounted", endpoint=self.endpoint)
        await self.refresh()

    async def unmount(self) -> None:
        was_mounted = self.manager is not None
        self._teardown()
        self._drop_store_listener()
        await self._settle()
        if was_mounted:
            logger.info(f"{self.name}.unmounted")

    async def remount(self) -> None:
        """Replace the connection, e.g. after a different user logs in."""
        await self.unmount()
        await self.mount()

    # ─── Internals ───────────────────────────────────────

    def _credentials(self) -> Optional[str]:
        return self.store.state.auth.token

    def _connect(self) -> None:
        def on_state_change(state: ConnectionState) -> None:
            # A retired manager still reports its own shutdown; ignore it
            if manager is self.manager:
                self.connection_state = state

        manager = ConnectionManager(
            self.endpoint,
            self._credentials,
            connector=self._connector,
            policy=self._policy,
            heartbeat_interval=self._heartbeat_interval,
            on_state_change=on_state_change,
        )
        self.manager = manager
        self._identity = _identity(self.store.state.auth)
        self._unsubscribers = [manager.subscribe(self.on_event)]
        manager.open()

    def _teardown(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        manager, self.manager = self.manager, None
        if manager is not None:
            manager.close()
            self._retired.append(manager)
            self.connection_state = ConnectionState.CLOSED

    def _drop_store_listener(self) -> None:
        unsubscribe = self._store_unsubscribe
        if unsubscribe is not None:
            unsubscribe()
            self._store_unsubscribe = None

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _settle(self) -> None:
        """Wait for closed managers and background refreshes to finish."""
        retired, self._retired = self._retired, []
        for manager in retired:
            await manager.aclose()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_store_change(self, state: AppState) -> None:
        if self.manager is None:
            return
        if not state.auth.is_authenticated:
            logger.info(f"{self.name}.logged_out")
            self._teardown()
            self._drop_store_listener()
            return
        if _identity(state.auth) != self._identity:
            logger.info(f"{self.name}.reauthenticated", user_id=state.auth.user_id)
            self._teardown()
            self._connect()
            self._spawn(self.refresh())
