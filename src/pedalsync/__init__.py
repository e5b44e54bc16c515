"""Pedal Sync — real-time order synchronization client for Pedal delivery.

The client-side layer the Pedal dashboard and ordering apps share:
a self-healing push connection, frame normalization, and a pure
reducer that folds order events into in-memory state.
"""

__version__ = "0.1.0"
