"""Store actions — what can happen to AppState.

Learn: Actions are plain frozen value objects. Views and the push
channel both produce them; only the reducer interprets them.
action_from_event() is the bridge from normalized push frames to
actions. One event becomes at most one action, and the reducer fans
that action out to every slice it touches.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

import structlog
from pydantic import ValidationError

from pedalsync.events.types import (
    DRIVER_ASSIGNED,
    DRIVER_LOCATION_UPDATE,
    ORDER_UPDATE,
)
from pedalsync.realtime.normalizer import EventFrame
from pedalsync.schemas.dashboard import DashboardSnapshot
from pedalsync.schemas.order import OrderEntity, OrdersPage
from pedalsync.state.models import CartLine

logger = structlog.get_logger()


# ─── Auth ─────────────────────────────────────────────────


@dataclass(frozen=True)
class LoggedIn:
    user_id: str
    role: str
    token: str


@dataclass(frozen=True)
class LoggedOut:
    pass


# ─── Orders ───────────────────────────────────────────────


@dataclass(frozen=True)
class OrderUpdated:
    """A full order entity from the push channel. Fanned out to every slice."""
    order: OrderEntity


@dataclass(frozen=True)
class OrderPlaced:
    order: OrderEntity


@dataclass(frozen=True)
class CustomerOrdersLoaded:
    orders: tuple[OrderEntity, ...]


@dataclass(frozen=True)
class AvailableOrdersLoaded:
    orders: tuple[OrderEntity, ...]


@dataclass(frozen=True)
class CurrentOrderSet:
    order: Optional[OrderEntity]


@dataclass(frozen=True)
class DriverOnlineSet:
    is_online: bool


@dataclass(frozen=True)
class DriverLocationUpdated:
    order_id: Optional[str]
    location: dict[str, Any]


# ─── Cart ─────────────────────────────────────────────────


@dataclass(frozen=True)
class AddToCart:
    line: CartLine


@dataclass(frozen=True)
class SetCartQuantity:
    menu_item_id: str
    quantity: int
    addon_ids: frozenset[str] = frozenset()


@dataclass(frozen=True)
class RemoveFromCart:
    menu_item_id: str
    addon_ids: frozenset[str] = frozenset()


@dataclass(frozen=True)
class ClearCart:
    pass


# ─── Baselines ────────────────────────────────────────────


@dataclass(frozen=True)
class DashboardLoaded:
    snapshot: DashboardSnapshot


@dataclass(frozen=True)
class OrdersPageLoaded:
    page: int
    result: OrdersPage


Action = Union[
    LoggedIn,
    LoggedOut,
    OrderUpdated,
    OrderPlaced,
    CustomerOrdersLoaded,
    AvailableOrdersLoaded,
    CurrentOrderSet,
    DriverOnlineSet,
    DriverLocationUpdated,
    AddToCart,
    SetCartQuantity,
    RemoveFromCart,
    ClearCart,
    DashboardLoaded,
    OrdersPageLoaded,
]


def remove_from_cart(menu_item_id: str, addon_ids: Iterable[str] = ()) -> RemoveFromCart:
    return RemoveFromCart(menu_item_id=menu_item_id, addon_ids=frozenset(addon_ids))


def set_cart_quantity(
    menu_item_id: str, quantity: int, addon_ids: Iterable[str] = ()
) -> SetCartQuantity:
    return SetCartQuantity(
        menu_item_id=menu_item_id, quantity=quantity, addon_ids=frozenset(addon_ids)
    )


def action_from_event(event: EventFrame) -> Optional[Action]:
    """Translate a normalized push event into a store action, if it is one we handle."""
    if event.type in (ORDER_UPDATE, DRIVER_ASSIGNED):
        try:
            return OrderUpdated(order=OrderEntity.model_validate(event.data))
        except ValidationError as e:
            logger.warning(
                "sync.event_rejected",
                event_type=event.type,
                errors=e.error_count(),
            )
            return None

    if event.type == DRIVER_LOCATION_UPDATE:
        location = event.data.get("location")
        if not isinstance(location, dict):
            return None
        order_id = event.data.get("orderId") or event.data.get("order_id")
        return DriverLocationUpdated(order_id=order_id, location=location)

    return None
