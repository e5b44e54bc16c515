"""Order list view — one REST page plus every live update, unbounded."""

from typing import Optional

import httpx
import structlog

from pedalsync.api.client import PedalAPIError
from pedalsync.consumers.base import LiveView
from pedalsync.schemas.order import OrderEntity
from pedalsync.state.actions import OrdersPageLoaded

logger = structlog.get_logger()


class OrderListView(LiveView):
    name = "orders"

    @property
    def orders(self) -> tuple[OrderEntity, ...]:
        return self.store.state.order_list.orders

    @property
    def page(self) -> int:
        return self.store.state.order_list.page

    @property
    def total_pages(self) -> int:
        return self.store.state.order_list.total_pages

    async def refresh(self, page: Optional[int] = None) -> bool:
        page = page or self.page
        page_size = self.store.state.order_list.page_size
        self.loading = True
        try:
            result = await self.api.list_orders(page=page, limit=page_size)
        except (httpx.HTTPError, PedalAPIError) as e:
            logger.warning("orders.fetch_failed", page=page, error=str(e))
            return False
        finally:
            self.loading = False

        self.store.dispatch(OrdersPageLoaded(page=page, result=result))
        return True

    async def next_page(self) -> bool:
        if self.page >= self.total_pages:
            return False
        return await self.refresh(self.page + 1)

    async def previous_page(self) -> bool:
        if self.page <= 1:
            return False
        return await self.refresh(self.page - 1)
