"""Merge algorithms — order upsert and cart line arithmetic.

Learn: Two identity rules drive everything here:

- Orders are identified by `id`. An incoming order replaces the entry
  with the same id *in place* (last write wins, whole entity), or is
  prepended if absent. Bounded feeds are then trimmed from the tail.
- Cart lines are identified by (menu item id, *set* of add-on ids).
  Burger+{cheese, bacon} and Burger+{bacon, cheese} are the same line;
  Burger+{cheese} is a different one.

All functions take and return tuples and never mutate their inputs.
"""

from dataclasses import replace
from typing import Iterable, Optional

from pedalsync.schemas.order import OrderEntity
from pedalsync.state.models import CartKey, CartLine, cart_key

Orders = tuple[OrderEntity, ...]
Cart = tuple[CartLine, ...]


# ═══════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════


def index_of(orders: Orders, order_id: str) -> Optional[int]:
    for i, existing in enumerate(orders):
        if existing.id == order_id:
            return i
    return None


def upsert_order(orders: Orders, order: OrderEntity, limit: Optional[int] = None) -> Orders:
    """Replace in place if present, else prepend; then trim to `limit`."""
    i = index_of(orders, order.id)
    if i is not None:
        return orders[:i] + (order,) + orders[i + 1:]
    merged = (order,) + orders
    if limit is not None and len(merged) > limit:
        merged = merged[:limit]
    return merged


def replace_order(orders: Orders, order: OrderEntity) -> Orders:
    """Replace in place if present; otherwise return `orders` unchanged."""
    i = index_of(orders, order.id)
    if i is None:
        return orders
    return orders[:i] + (order,) + orders[i + 1:]


def dedupe_orders(orders: Iterable[OrderEntity], limit: Optional[int] = None) -> Orders:
    """First occurrence of each id wins. Used when a REST baseline replaces a list."""
    seen: set[str] = set()
    result = []
    for order in orders:
        if order.id in seen:
            continue
        seen.add(order.id)
        result.append(order)
    if limit is not None:
        result = result[:limit]
    return tuple(result)


# ═══════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════


def _find_line(cart: Cart, key: CartKey) -> Optional[int]:
    for i, line in enumerate(cart):
        if line.key == key:
            return i
    return None


def add_line(cart: Cart, line: CartLine) -> Cart:
    """Sum into the matching line, or append a new one."""
    if line.quantity <= 0:
        return cart
    i = _find_line(cart, line.key)
    if i is None:
        return cart + (line,)
    existing = cart[i]
    merged = replace(
        existing,
        quantity=existing.quantity + line.quantity,
        instructions=existing.instructions or line.instructions,
    )
    return cart[:i] + (merged,) + cart[i + 1:]


def set_line_quantity(
    cart: Cart, menu_item_id: str, quantity: int, addon_ids: Iterable[str] = ()
) -> Cart:
    """Set the matching line's quantity; <= 0 removes the line."""
    key = cart_key(menu_item_id, addon_ids)
    i = _find_line(cart, key)
    if i is None:
        return cart
    if quantity <= 0:
        return cart[:i] + cart[i + 1:]
    return cart[:i] + (replace(cart[i], quantity=quantity),) + cart[i + 1:]


def remove_line(cart: Cart, menu_item_id: str, addon_ids: Iterable[str] = ()) -> Cart:
    key = cart_key(menu_item_id, addon_ids)
    return tuple(line for line in cart if line.key != key)


def cart_total(cart: Cart) -> float:
    return sum(line.subtotal for line in cart)
