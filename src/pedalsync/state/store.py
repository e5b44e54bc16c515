"""Store — holds the current AppState and notifies listeners on change."""

from typing import Any, Callable, Optional

import structlog

from pedalsync.realtime.normalizer import EventFrame
from pedalsync.state.actions import action_from_event
from pedalsync.state.models import AppState
from pedalsync.state.reducer import reduce

logger = structlog.get_logger()

Listener = Callable[[AppState], None]


class Store:
    def __init__(self, state: Optional[AppState] = None):
        self._state = state or AppState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> AppState:
        return self._state

    def dispatch(self, action: Any) -> AppState:
        new_state = reduce(self._state, action)
        if new_state is self._state:
            return new_state
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("store.listener_failed", action=type(action).__name__)
        return new_state

    def handle_event(self, event: EventFrame) -> None:
        """Push channel entry point: event → action → dispatch (or nothing)."""
        action = action_from_event(event)
        if action is not None:
            self.dispatch(action)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
