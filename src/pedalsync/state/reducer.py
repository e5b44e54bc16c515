"""State reducer — the single entry point that folds an action into AppState.

Learn: reduce(state, action) is pure: same inputs, same output, no I/O.
Handlers are registered per action type (like the adapter registry),
and an unknown action returns the state untouched.

The interesting case is OrderUpdated. One push event may concern
several slices at once: the customer's order history, the driver's
current order and available list, the dashboard feed and the full
order list. _order_updated applies the same identity rule to each of
them, so callers dispatch one action and never enumerate slices.
"""

from dataclasses import replace
from typing import Any, Callable

from pedalsync.schemas.order import OrderEntity, OrderStatus
from pedalsync.state import actions as a
from pedalsync.state import merge
from pedalsync.state.models import (
    AppState,
    AuthSlice,
    DashboardSlice,
    OrderListSlice,
)

Handler = Callable[[AppState, Any], AppState]

_HANDLERS: dict[type, Handler] = {}


def handles(action_type: type) -> Callable[[Handler], Handler]:
    def register(fn: Handler) -> Handler:
        _HANDLERS[action_type] = fn
        return fn
    return register


def reduce(state: AppState, action: Any) -> AppState:
    """Return the state after `action`. Unknown actions are a no-op."""
    handler = _HANDLERS.get(type(action))
    if handler is None:
        return state
    return handler(state, action)


# ═══════════════════════════════════════════════════════════
# Orders: fan-out
# ═══════════════════════════════════════════════════════════


@handles(a.OrderUpdated)
def _order_updated(state: AppState, action: a.OrderUpdated) -> AppState:
    order = action.order
    return replace(
        state,
        customer=_customer_orders(state, order),
        driver=_driver_orders(state, order),
        dashboard=_dashboard_feed(state.dashboard, order),
        order_list=replace(
            state.order_list,
            orders=merge.upsert_order(state.order_list.orders, order),
        ),
    )


def _customer_orders(state: AppState, order: OrderEntity):
    customer = state.customer
    # A customer's own new order joins their history; anyone else's only
    # refreshes an entry they already hold.
    own = (
        state.auth.role == "customer"
        and state.auth.user_id is not None
        and order.customer_id == state.auth.user_id
    )
    if own:
        orders = merge.upsert_order(customer.orders, order)
    else:
        orders = merge.replace_order(customer.orders, order)
    if orders is customer.orders:
        return customer
    return replace(customer, orders=orders)


def _driver_orders(state: AppState, order: OrderEntity):
    driver = state.driver
    current = driver.current_order
    if current is not None and current.id == order.id:
        current = order
    available = merge.replace_order(driver.available_orders, order)
    if current is driver.current_order and available is driver.available_orders:
        return driver
    return replace(driver, current_order=current, available_orders=available)


def _dashboard_feed(dashboard: DashboardSlice, order: OrderEntity) -> DashboardSlice:
    """Upsert into the bounded feed and patch the aggregate counters.

    Counters only move when the feed holds the previous version of the
    order. An order outside the feed may be new or may have scrolled off
    it, so the aggregates are left for the next snapshot to settle.
    Revenue counts delivered orders only.
    """
    recent = merge.upsert_order(dashboard.recent_orders, order, limit=dashboard.limit)
    i = merge.index_of(dashboard.recent_orders, order.id)
    if i is None:
        return replace(dashboard, recent_orders=recent)

    previous: OrderEntity = dashboard.recent_orders[i]
    counts = dict(dashboard.status_counts)
    old_status, new_status = previous.status.value, order.status.value
    if old_status != new_status:
        counts[old_status] = max(counts.get(old_status, 0) - 1, 0)
        counts[new_status] = counts.get(new_status, 0) + 1

    revenue = dashboard.stats.total_revenue
    if previous.status is OrderStatus.DELIVERED:
        revenue -= previous.total_amount
    if order.status is OrderStatus.DELIVERED:
        revenue += order.total_amount
    stats = dashboard.stats
    if revenue != stats.total_revenue:
        stats = stats.model_copy(update={"total_revenue": max(revenue, 0.0)})

    return replace(dashboard, recent_orders=recent, status_counts=counts, stats=stats)


@handles(a.OrderPlaced)
def _order_placed(state: AppState, action: a.OrderPlaced) -> AppState:
    customer = state.customer
    return replace(
        state,
        customer=replace(customer, orders=merge.upsert_order(customer.orders, action.order)),
    )


@handles(a.CustomerOrdersLoaded)
def _customer_orders_loaded(state: AppState, action: a.CustomerOrdersLoaded) -> AppState:
    return replace(
        state,
        customer=replace(state.customer, orders=merge.dedupe_orders(action.orders)),
    )


# ─── Driver ──────────────────────────────────────────────


@handles(a.AvailableOrdersLoaded)
def _available_orders_loaded(state: AppState, action: a.AvailableOrdersLoaded) -> AppState:
    return replace(
        state,
        driver=replace(state.driver, available_orders=merge.dedupe_orders(action.orders)),
    )


@handles(a.CurrentOrderSet)
def _current_order_set(state: AppState, action: a.CurrentOrderSet) -> AppState:
    driver = replace(state.driver, current_order=action.order)
    if action.order is None:
        driver = replace(driver, last_location=None)
    return replace(state, driver=driver)


@handles(a.DriverOnlineSet)
def _driver_online_set(state: AppState, action: a.DriverOnlineSet) -> AppState:
    return replace(state, driver=replace(state.driver, is_online=action.is_online))


@handles(a.DriverLocationUpdated)
def _driver_location_updated(state: AppState, action: a.DriverLocationUpdated) -> AppState:
    current = state.driver.current_order
    if current is None:
        return state
    if action.order_id is not None and action.order_id != current.id:
        return state
    return replace(state, driver=replace(state.driver, last_location=action.location))


# ═══════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════


@handles(a.AddToCart)
def _add_to_cart(state: AppState, action: a.AddToCart) -> AppState:
    cart = merge.add_line(state.customer.cart, action.line)
    return replace(state, customer=replace(state.customer, cart=cart))


@handles(a.SetCartQuantity)
def _set_cart_quantity(state: AppState, action: a.SetCartQuantity) -> AppState:
    cart = merge.set_line_quantity(
        state.customer.cart, action.menu_item_id, action.quantity, action.addon_ids
    )
    return replace(state, customer=replace(state.customer, cart=cart))


@handles(a.RemoveFromCart)
def _remove_from_cart(state: AppState, action: a.RemoveFromCart) -> AppState:
    cart = merge.remove_line(state.customer.cart, action.menu_item_id, action.addon_ids)
    return replace(state, customer=replace(state.customer, cart=cart))


@handles(a.ClearCart)
def _clear_cart(state: AppState, action: a.ClearCart) -> AppState:
    return replace(state, customer=replace(state.customer, cart=()))


# ═══════════════════════════════════════════════════════════
# Auth + baselines
# ═══════════════════════════════════════════════════════════


@handles(a.LoggedIn)
def _logged_in(state: AppState, action: a.LoggedIn) -> AppState:
    return replace(
        state,
        auth=AuthSlice(user_id=action.user_id, role=action.role, token=action.token),
    )


@handles(a.LoggedOut)
def _logged_out(state: AppState, action: a.LoggedOut) -> AppState:
    # Nothing survives a logout, the cart included
    return AppState(
        dashboard=DashboardSlice(limit=state.dashboard.limit),
        order_list=OrderListSlice(page_size=state.order_list.page_size),
    )


@handles(a.DashboardLoaded)
def _dashboard_loaded(state: AppState, action: a.DashboardLoaded) -> AppState:
    snap = action.snapshot
    limit = state.dashboard.limit
    return replace(
        state,
        dashboard=DashboardSlice(
            stats=snap.stats,
            recent_orders=merge.dedupe_orders(snap.recent_orders, limit=limit),
            top_restaurants=tuple(snap.top_restaurants),
            status_counts=dict(snap.status_counts),
            revenue_over_time=tuple(snap.revenue_over_time),
            limit=limit,
        ),
    )


@handles(a.OrdersPageLoaded)
def _orders_page_loaded(state: AppState, action: a.OrdersPageLoaded) -> AppState:
    return replace(
        state,
        order_list=replace(
            state.order_list,
            orders=merge.dedupe_orders(action.result.orders),
            page=action.page,
            total=action.result.pagination.total,
        ),
    )
