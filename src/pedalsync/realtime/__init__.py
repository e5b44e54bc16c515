"""Real-time infrastructure — push connection + frame normalization.

Learn: Frames flow through two stages before they touch state:
1. ConnectionManager — owns the socket, heartbeat and reconnect timers
2. normalize_frame — drops noise (pongs, garbage) and canonicalizes names

Subscribers then turn events into store actions. Nothing in this
package knows about AppState.
"""
