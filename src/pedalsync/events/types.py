"""Push channel frame types.

Learn: Centralizing frame types as constants prevents typos and
makes it easy to discover every message the channel carries.
"""

# ─── Keepalive ───────────────────────────────────────────

PING = "ping"
PONG = "pong"

# ─── Orders ──────────────────────────────────────────────

ORDER_UPDATE = "order_update"

# ─── Drivers ─────────────────────────────────────────────

DRIVER_ASSIGNED = "driver:assigned"
DRIVER_LOCATION_UPDATE = "driver:location_update"

# ─── Rooms (client → server) ─────────────────────────────

JOIN_ORDER_ROOM = "join:order_room"
JOIN_DRIVER_ROOM = "join:driver_room"

# Older mobile builds emit these names; they carry the same payloads.
ALIASES: dict[str, str] = {
    "order:status_update": ORDER_UPDATE,
    "driver_location": DRIVER_LOCATION_UPDATE,
}
