"""REST client for the baseline snapshots the push channel patches.

Learn: The push channel only carries deltas. Views load a baseline
here first (a page of orders, the dashboard aggregate) and then keep it
current with order_update events, instead of re-fetching on every push.

Two kinds of failure come out of this module:
- httpx.HTTPError: the request never got a usable response
- PedalAPIError: the backend answered, but with an error or a body
  we can't parse

Callers catch both at the call site and keep whatever they had.
"""

from typing import Any, Callable, Optional

import httpx
from pydantic import ValidationError

from pedalsync.config import settings
from pedalsync.schemas.dashboard import DashboardSnapshot
from pedalsync.schemas.order import OrdersPage


class PedalAPIError(Exception):
    """The backend answered with an error status or an unreadable body."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


def _detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason_phrase
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or body)
    return str(body)


class PedalAPI:
    """Async client for the admin REST endpoints.

    Usage:
        async with PedalAPI(credentials=lambda: token) as api:
            page = await api.list_orders(page=1, limit=20)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        credentials: Optional[Callable[[], Optional[str]]] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._credentials = credentials or (lambda: None)
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.api_url).rstrip("/"),
            timeout=timeout if timeout is not None else settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "PedalAPI":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        headers = {}
        token = self._credentials()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        resp = await self._client.get(path, params=params, headers=headers)
        if resp.status_code >= 400:
            raise PedalAPIError(resp.status_code, _detail(resp))
        try:
            return resp.json()
        except ValueError:
            raise PedalAPIError(resp.status_code, "response body is not JSON")

    # ─── Orders ──────────────────────────────────────────

    async def list_orders(self, page: int = 1, limit: Optional[int] = None) -> OrdersPage:
        """GET /admin/orders — one page of orders plus the overall total."""
        data = await self._get(
            "/admin/orders",
            params={"page": page, "limit": limit or settings.orders_page_size},
        )
        try:
            return OrdersPage.model_validate(data)
        except ValidationError as e:
            raise PedalAPIError(200, f"unexpected orders payload ({e.error_count()} errors)")

    # ─── Dashboard ───────────────────────────────────────

    async def dashboard_snapshot(self) -> DashboardSnapshot:
        """GET /admin/dashboard/stats — the aggregate baseline for DashboardView."""
        data = await self._get("/admin/dashboard/stats")
        try:
            return DashboardSnapshot.model_validate(data)
        except ValidationError as e:
            raise PedalAPIError(200, f"unexpected dashboard payload ({e.error_count()} errors)")
