"""Dashboard view — aggregate snapshot kept current by push events.

Learn: The snapshot is fetched once on mount (and on explicit refresh).
After that, every order_update patches the bounded recent-orders feed
in the reducer, and the status counters too when the feed already holds
the order.

An update for an order the feed doesn't hold can't be counted locally:
it may be brand new, or it may have scrolled off the feed and be part
of the totals already. Those schedule one debounced re-fetch, so a burst
of new orders costs a single request.
"""

import asyncio
from typing import Optional

import httpx
import structlog

from pedalsync.api.client import PedalAPI, PedalAPIError
from pedalsync.config import settings
from pedalsync.consumers.base import LiveView
from pedalsync.realtime.normalizer import EventFrame
from pedalsync.schemas.dashboard import DashboardStats
from pedalsync.schemas.order import OrderEntity
from pedalsync.state.actions import DashboardLoaded, OrderUpdated, action_from_event
from pedalsync.state.merge import index_of
from pedalsync.state.store import Store

logger = structlog.get_logger()


class DashboardView(LiveView):
    name = "dashboard"

    def __init__(
        self,
        store: Store,
        api: PedalAPI,
        *,
        refresh_debounce: Optional[float] = None,
        **kwargs,
    ):
        super().__init__(store, api, **kwargs)
        self.refresh_debounce = (
            refresh_debounce
            if refresh_debounce is not None
            else settings.dashboard_refresh_debounce_seconds
        )
        self._refresh_timer: Optional[asyncio.TimerHandle] = None

    @property
    def stats(self) -> DashboardStats:
        return self.store.state.dashboard.stats

    @property
    def recent_orders(self) -> tuple[OrderEntity, ...]:
        return self.store.state.dashboard.recent_orders

    @property
    def status_counts(self) -> dict[str, int]:
        return self.store.state.dashboard.status_counts

    @property
    def refresh_pending(self) -> bool:
        return self._refresh_timer is not None

    async def refresh(self) -> bool:
        self.loading = True
        try:
            snapshot = await self.api.dashboard_snapshot()
        except (httpx.HTTPError, PedalAPIError) as e:
            logger.warning("dashboard.fetch_failed", error=str(e))
            return False
        finally:
            self.loading = False

        self.store.dispatch(DashboardLoaded(snapshot=snapshot))
        return True

    def on_event(self, event: EventFrame) -> None:
        action = action_from_event(event)
        if action is None:
            return
        unseen = (
            isinstance(action, OrderUpdated)
            and index_of(self.recent_orders, action.order.id) is None
        )
        self.store.dispatch(action)
        if unseen:
            self._schedule_refresh()

    # ─── Debounced re-fetch ──────────────────────────────

    def _schedule_refresh(self) -> None:
        if self._refresh_timer is not None or not self.mounted:
            return
        loop = asyncio.get_running_loop()
        self._refresh_timer = loop.call_later(self.refresh_debounce, self._fire_refresh)
        logger.debug("dashboard.refresh_scheduled", delay=self.refresh_debounce)

    def _fire_refresh(self) -> None:
        self._refresh_timer = None
        if self.mounted:
            self._spawn(self.refresh())

    def _teardown(self) -> None:
        if self._refresh_timer is not None:
            self._refresh_timer.cancel()
            self._refresh_timer = None
        super()._teardown()
