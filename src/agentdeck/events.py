"""
Session lifecycle events.

A small publish/subscribe registry owned by the session manager. The
presentation layer subscribes; the manager never subscribes to itself.
"""

import logging
import threading
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

SESSION_CREATED = "session_created"
SESSION_DESTROYED = "session_destroyed"
SESSION_EXIT = "session_exit"
SESSION_DATA = "session_data"
SESSION_STATE_CHANGED = "session_state_changed"
SESSION_RESTORE = "session_restore"

ALL_EVENTS = (
    SESSION_CREATED,
    SESSION_DESTROYED,
    SESSION_EXIT,
    SESSION_DATA,
    SESSION_STATE_CHANGED,
    SESSION_RESTORE,
)


class EventEmitter:
    """Register callbacks per event name and call them in order.

    A subscriber that raises is logged and skipped; the remaining
    subscribers still run and the error never reaches the emitter.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Callable]] = {}
        self._lock = threading.Lock()

    def on(self, event: str, callback: Callable) -> None:
        with self._lock:
            self._listeners.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Callable) -> None:
        with self._lock:
            listeners = self._listeners.get(event, [])
            if callback in listeners:
                listeners.remove(callback)

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._listeners.get(event, []))

    def remove_all_listeners(self) -> None:
        with self._lock:
            self._listeners.clear()

    def emit(self, event: str, *args) -> None:
        with self._lock:
            listeners = list(self._listeners.get(event, []))
        for callback in listeners:
            try:
                callback(*args)
            except Exception:
                logger.exception("Listener for %s failed", event)
