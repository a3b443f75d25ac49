"""
Named-event dispatch.

Components that need to notify listeners own an EventDispatcher instead of
inheriting from an emitter base class.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Registry of listeners keyed by event name.

    Listeners are called synchronously, in registration order. A listener
    registered with once() is removed before it is called.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = defaultdict(list)
        self._once: Dict[str, List[Callable]] = defaultdict(list)

    def on(self, event: str, listener: Callable) -> Callable:
        """Subscribe to an event. Returns the listener for later off()."""
        self._listeners[event].append(listener)
        return listener

    def once(self, event: str, listener: Callable) -> Callable:
        """Subscribe to the next occurrence of an event only."""
        self._listeners[event].append(listener)
        self._once[event].append(listener)
        return listener

    def off(self, event: str, listener: Callable) -> bool:
        """
        Unsubscribe a listener.

        Returns:
            True if the listener was registered
        """
        listeners = self._listeners.get(event, [])
        if listener not in listeners:
            return False

        listeners.remove(listener)
        if listener in self._once.get(event, []):
            self._once[event].remove(listener)
        return True

    def emit(self, event: str, *args) -> bool:
        """
        Call every listener of an event.

        Returns:
            True if the event had listeners
        """
        listeners = list(self._listeners.get(event, []))
        if not listeners:
            return False

        for listener in listeners:
            if listener in self._once.get(event, []):
                self.off(event, listener)
            listener(*args)

        return True

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def clear(self, event: str = None):
        """Drop listeners for one event, or for all events."""
        if event is None:
            self._listeners.clear()
            self._once.clear()
        else:
            self._listeners.pop(event, None)
            self._once.pop(event, None)
