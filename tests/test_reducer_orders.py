"""Reducer tests — order upsert, bounded feeds, and multi-slice fan-out.

Learn: Every test drives the reducer the same way the push channel
does: a JSON frame → normalize_frame → action_from_event → reduce.
"""

import json
import random

import pytest

from pedalsync.realtime.normalizer import normalize_frame
from pedalsync.schemas.dashboard import DashboardSnapshot
from pedalsync.schemas.order import OrderEntity, OrderStatus, OrdersPage
from pedalsync.state.actions import (
    AddToCart,
    AvailableOrdersLoaded,
    CurrentOrderSet,
    CustomerOrdersLoaded,
    DashboardLoaded,
    LoggedIn,
    LoggedOut,
    OrderPlaced,
    OrdersPageLoaded,
    OrderUpdated,
    action_from_event,
)
from pedalsync.state.models import AppState, CartLine, DashboardSlice
from pedalsync.state.reducer import reduce

from conftest import order_payload


def _entity(order_id, status="pending", **extra):
    return OrderEntity.model_validate(order_payload(order_id, status, **extra))


def _push(state, event_type, data):
    event = normalize_frame(json.dumps({"type": event_type, "data": data}))
    action = action_from_event(event)
    return reduce(state, action) if action is not None else state


def _ids(orders):
    return [(o.id, o.status.value) for o in orders]


# ═══════════════════════════════════════════════════════════
# Upsert
# ═══════════════════════════════════════════════════════════


def test_feed_replaces_in_place_then_prepends():
    state = AppState(dashboard=DashboardSlice(limit=10))

    state = _push(state, "order_update", order_payload("A", "pending"))
    assert _ids(state.dashboard.recent_orders) == [("A", "pending")]

    state = _push(state, "order_update", order_payload("A", "delivered"))
    assert _ids(state.dashboard.recent_orders) == [("A", "delivered")]

    state = _push(state, "order_update", order_payload("B", "pending"))
    assert _ids(state.dashboard.recent_orders) == [("B", "pending"), ("A", "delivered")]


def test_replacement_keeps_position():
    state = AppState()
    for oid in ("A", "B", "C"):
        state = _push(state, "order_update", order_payload(oid))
    state = _push(state, "order_update", order_payload("B", "ready"))

    assert _ids(state.order_list.orders) == [("C", "pending"), ("B", "ready"), ("A", "pending")]


def test_bounded_feed_drops_oldest():
    state = AppState(dashboard=DashboardSlice(limit=10))
    for n in range(12):
        state = _push(state, "order_update", order_payload(f"o{n}"))

    feed = [o.id for o in state.dashboard.recent_orders]
    assert len(feed) == 10
    assert feed[0] == "o11"
    assert "o0" not in feed and "o1" not in feed
    # The unbounded list keeps everything
    assert len(state.order_list.orders) == 12


def test_random_event_streams_never_duplicate_ids():
    rng = random.Random(1234)
    statuses = [s.value for s in OrderStatus]
    state = AppState(dashboard=DashboardSlice(limit=5))

    for _ in range(300):
        oid = f"o{rng.randrange(15)}"
        state = _push(state, "order_update", order_payload(oid, rng.choice(statuses)))

    for orders in (state.dashboard.recent_orders, state.order_list.orders):
        ids = [o.id for o in orders]
        assert len(ids) == len(set(ids))
    assert len(state.dashboard.recent_orders) <= 5


def test_replay_is_deterministic():
    rng = random.Random(99)
    frames = [order_payload(f"o{rng.randrange(6)}", "ready") for _ in range(40)]

    first = second = AppState()
    for data in frames:
        first = _push(first, "order_update", data)
    for data in frames:
        second = _push(second, "order_update", data)

    assert first == second


def test_last_write_wins_with_whole_entity():
    state = _push(AppState(), "order_update", order_payload("A", driver_id="d1", note="ring"))
    state = _push(state, "order_update", order_payload("A", "accepted"))

    order = state.order_list.orders[0]
    assert order.status is OrderStatus.ACCEPTED
    assert order.driver_id is None
    assert "note" not in (order.model_extra or {})


def test_mongo_style_ids_and_nested_totals():
    data = order_payload("A")
    data["_id"] = data.pop("id")
    data["total_amount"] = {"subtotal": 10.0, "delivery_fee": 2.5, "total": 12.5}
    state = _push(AppState(), "order_update", data)

    assert state.order_list.orders[0].id == "A"
    assert state.order_list.orders[0].total_amount == 12.5


# ═══════════════════════════════════════════════════════════
# Fan-out
# ═══════════════════════════════════════════════════════════


def _customer_and_driver_state(order_id="C"):
    state = reduce(AppState(), LoggedIn(user_id="cust-1", role="customer", token="t"))
    state = reduce(state, CustomerOrdersLoaded(orders=(_entity(order_id, "on_the_way"),)))
    return reduce(state, CurrentOrderSet(order=_entity(order_id, "on_the_way")))


def test_one_event_updates_customer_list_and_driver_pointer():
    state = _customer_and_driver_state("C")

    state = _push(state, "order_update", order_payload("C", "delivered"))

    assert _ids(state.customer.orders) == [("C", "delivered")]
    assert state.driver.current_order.status is OrderStatus.DELIVERED
    assert _ids(state.dashboard.recent_orders) == [("C", "delivered")]


def test_driver_assigned_is_an_order_update():
    state = _customer_and_driver_state("C")
    state = _push(state, "driver:assigned", order_payload("C", "accepted", driver_id="d9"))

    assert state.customer.orders[0].driver_id == "d9"
    assert state.driver.current_order.driver_id == "d9"


def test_customer_history_only_grows_with_own_orders():
    state = reduce(AppState(), LoggedIn(user_id="cust-1", role="customer", token="t"))

    state = _push(state, "order_update", order_payload("X", customer_id="someone-else"))
    assert state.customer.orders == ()

    state = _push(state, "order_update", order_payload("Y", customer_id="cust-1"))
    assert _ids(state.customer.orders) == [("Y", "pending")]


def test_unrelated_slices_are_reused():
    state = _customer_and_driver_state("C")
    after = _push(state, "order_update", order_payload("Z", customer_id="other"))

    assert after.customer is state.customer
    assert after.driver is state.driver
    assert after.auth is state.auth


def test_available_orders_are_refreshed_not_grown():
    state = reduce(AppState(), AvailableOrdersLoaded(orders=(_entity("A"), _entity("B"))))

    state = _push(state, "order_update", order_payload("B", "accepted"))
    state = _push(state, "order_update", order_payload("N"))

    assert _ids(state.driver.available_orders) == [("A", "pending"), ("B", "accepted")]


def test_order_placed_prepends_to_history():
    state = reduce(AppState(), CustomerOrdersLoaded(orders=(_entity("A"), _entity("A"), _entity("B"))))
    assert [o.id for o in state.customer.orders] == ["A", "B"]

    state = reduce(state, OrderPlaced(order=_entity("N")))
    assert [o.id for o in state.customer.orders] == ["N", "A", "B"]


# ═══════════════════════════════════════════════════════════
# Dashboard counters
# ═══════════════════════════════════════════════════════════


def _dashboard_state():
    snapshot = DashboardSnapshot.model_validate({
        "stats": {"totalOrders": 1, "totalRevenue": 0, "avgDeliveryTime": 30, "activeDrivers": 2},
        "recentOrders": [order_payload("A", "pending", total_amount=20.0)],
        "topRestaurants": None,
        "statusCounts": {"pending": 1},
        "revenueOverTime": [{"_id": "2026-10-01", "revenue": 20.0, "orders": 1}],
    })
    return reduce(AppState(), DashboardLoaded(snapshot=snapshot))


def test_baseline_loads_snapshot():
    dash = _dashboard_state().dashboard
    assert dash.stats.total_orders == 1
    assert dash.stats.active_drivers == 2
    assert dash.top_restaurants == ()
    assert dash.revenue_over_time[0].date == "2026-10-01"


def test_status_change_moves_the_count():
    state = _push(_dashboard_state(), "order_update", order_payload("A", "preparing", total_amount=20.0))
    dash = state.dashboard

    assert dash.status_counts == {"pending": 0, "preparing": 1}
    assert dash.stats.total_orders == 1
    assert dash.stats.total_revenue == 0.0


def test_revenue_counts_delivered_orders_only():
    state = _push(_dashboard_state(), "order_update", order_payload("A", "on_the_way", total_amount=20.0))
    assert state.dashboard.stats.total_revenue == 0.0

    state = _push(state, "order_update", order_payload("A", "delivered", total_amount=20.0))
    assert state.dashboard.stats.total_revenue == pytest.approx(20.0)

    # A repeat of the delivered event must not count twice
    state = _push(state, "order_update", order_payload("A", "delivered", total_amount=20.0))
    assert state.dashboard.stats.total_revenue == pytest.approx(20.0)
    assert state.dashboard.status_counts == {"pending": 0, "on_the_way": 0, "delivered": 1}


def test_order_outside_the_feed_leaves_aggregates_alone():
    snapshot = DashboardSnapshot.model_validate({
        "stats": {"totalOrders": 11, "totalRevenue": 0},
        "recentOrders": [order_payload(f"o{n}") for n in range(10)],
        "statusCounts": {"pending": 11},
    })
    state = reduce(AppState(dashboard=DashboardSlice(limit=10)), DashboardLoaded(snapshot=snapshot))

    # o10 is in the totals already; it just scrolled off the feed
    state = _push(state, "order_update", order_payload("o10", "accepted"))
    dash = state.dashboard

    assert dash.recent_orders[0].id == "o10"
    assert len(dash.recent_orders) == 10
    assert dash.stats.total_orders == 11
    assert dash.stats.total_revenue == 0.0
    assert dash.status_counts == {"pending": 11}


def test_same_status_repeat_changes_nothing_but_entity():
    state = _push(_dashboard_state(), "order_update", order_payload("A", "pending", total_amount=20.0))
    assert state.dashboard.status_counts == {"pending": 1}
    assert state.dashboard.stats.total_orders == 1


def test_orders_page_loaded_sets_paging():
    page = OrdersPage.model_validate({
        "orders": [order_payload("A"), order_payload("B")],
        "pagination": {"total": 45, "page": 2, "limit": 20},
    })
    state = reduce(AppState(), OrdersPageLoaded(page=2, result=page))

    assert state.order_list.page == 2
    assert state.order_list.total == 45
    assert state.order_list.total_pages == 3


# ═══════════════════════════════════════════════════════════
# Location, auth, edge cases
# ═══════════════════════════════════════════════════════════


def test_location_updates_apply_to_current_order_only():
    state = reduce(AppState(), CurrentOrderSet(order=_entity("C")))

    state = _push(state, "driver_location", {"orderId": "other", "location": {"lat": 1, "lng": 2}})
    assert state.driver.last_location is None

    state = _push(state, "driver:location_update", {"orderId": "C", "location": {"lat": 3, "lng": 4}})
    assert state.driver.last_location == {"lat": 3, "lng": 4}

    state = reduce(state, CurrentOrderSet(order=None))
    assert state.driver.last_location is None


def test_location_without_current_order_is_ignored():
    state = AppState()
    assert _push(state, "driver:location_update", {"location": {"lat": 1}}) is state


def test_invalid_order_payload_is_ignored():
    state = AppState()
    assert _push(state, "order_update", {"id": "A", "status": "teleported"}) is state
    assert _push(state, "order_update", {"status": "pending"}) is state


def test_unknown_actions_and_events_are_no_ops():
    state = AppState()
    assert reduce(state, object()) is state
    assert _push(state, "menu_changed", {"id": "m"}) is state


def test_logout_resets_everything_but_view_sizing():
    state = reduce(AppState(dashboard=DashboardSlice(limit=3)), LoggedIn("u", "customer", "t"))
    state = reduce(state, AddToCart(line=CartLine(menu_item_id="burger")))
    state = reduce(state, OrderUpdated(order=_entity("A", customer_id="u")))

    state = reduce(state, LoggedOut())

    assert not state.auth.is_authenticated
    assert state.customer.cart == ()
    assert state.customer.orders == ()
    assert state.order_list.orders == ()
    assert state.dashboard.limit == 3
