"""
In-process change notifications

Lets independent consumers (a cart badge, an admin header counter) react to
state changes without holding a reference to the object that changed.

Listener failures are logged and never fail the mutation that emitted the
event: the mutation has already been persisted at that point.

Usage:
    events = EventEmitter()
    unsubscribe = events.on(CART_CHANGED, lambda cart: print(cart.item_count))
    ...
    unsubscribe()
"""
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

CART_CHANGED = "cart.changed"
CHECKOUT_STATE_CHANGED = "checkout.state_changed"
NOTIFICATIONS_CHANGED = "notifications.changed"

Listener = Callable[[Any], None]


class EventEmitter:
    """Synchronous event emitter owned by a session"""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that removes it."""
        self._listeners[event].append(listener)

        def unsubscribe():
            if listener in self._listeners.get(event, []):
                self._listeners[event].remove(listener)

        return unsubscribe

    def emit(self, event: str, payload: Any = None) -> int:
        """Call every listener for event. Returns how many were called."""
        listeners = list(self._listeners.get(event, []))
        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                logger.exception(f"Listener for '{event}' failed")
        return len(listeners)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def clear(self):
        """Drop every listener (session teardown)"""
        self._listeners.clear()
