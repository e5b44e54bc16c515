"""In-memory application state — immutable slices.

Learn: Every slice is a frozen dataclass holding tuples, never lists.
The reducer builds a new AppState for each action and reuses every
slice it didn't touch, so `new.customer is old.customer` is a cheap
"did anything change?" check for views.
"""

from dataclasses import dataclass, field
from math import ceil
from typing import Any, Iterable, Optional

from pedalsync.config import settings
from pedalsync.schemas.dashboard import DashboardStats, RevenuePoint, TopRestaurant
from pedalsync.schemas.order import OrderEntity

CartKey = tuple[str, frozenset[str]]


# ─── Cart ─────────────────────────────────────────────────


@dataclass(frozen=True)
class CartLine:
    """One cart line. Identity is (menu item, set of add-ons), not list order."""
    menu_item_id: str
    quantity: int = 1
    addon_ids: frozenset[str] = frozenset()
    instructions: str = ""
    name: str = ""
    unit_price: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "addon_ids", frozenset(self.addon_ids))
        if self.quantity < 0:
            raise ValueError("quantity must be >= 0")

    @property
    def key(self) -> CartKey:
        return cart_key(self.menu_item_id, self.addon_ids)

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity


def cart_key(menu_item_id: str, addon_ids: Iterable[str] = ()) -> CartKey:
    return (menu_item_id, frozenset(addon_ids))


# ─── Slices ───────────────────────────────────────────────


@dataclass(frozen=True)
class AuthSlice:
    user_id: Optional[str] = None
    role: Optional[str] = None  # customer | driver | admin
    token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)


@dataclass(frozen=True)
class CustomerSlice:
    cart: tuple[CartLine, ...] = ()
    orders: tuple[OrderEntity, ...] = ()


@dataclass(frozen=True)
class DriverSlice:
    is_online: bool = False
    current_order: Optional[OrderEntity] = None
    available_orders: tuple[OrderEntity, ...] = ()
    last_location: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class DashboardSlice:
    stats: DashboardStats = field(default_factory=DashboardStats)
    recent_orders: tuple[OrderEntity, ...] = ()
    top_restaurants: tuple[TopRestaurant, ...] = ()
    status_counts: dict[str, int] = field(default_factory=dict)
    revenue_over_time: tuple[RevenuePoint, ...] = ()
    limit: int = field(default_factory=lambda: settings.recent_orders_limit)


@dataclass(frozen=True)
class OrderListSlice:
    orders: tuple[OrderEntity, ...] = ()
    page: int = 1
    page_size: int = field(default_factory=lambda: settings.orders_page_size)
    total: int = 0

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return ceil(self.total / self.page_size)


@dataclass(frozen=True)
class AppState:
    auth: AuthSlice = field(default_factory=AuthSlice)
    customer: CustomerSlice = field(default_factory=CustomerSlice)
    driver: DriverSlice = field(default_factory=DriverSlice)
    dashboard: DashboardSlice = field(default_factory=DashboardSlice)
    order_list: OrderListSlice = field(default_factory=OrderListSlice)
