"""
Courier Assist Event Fan-out

Observer list shared by the core components: a mapping from event name to
an ordered list of callbacks. Each callback is invoked in isolation, so a
failing listener never prevents the others from running.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

# Listeners registered on this channel receive every event
ANY_EVENT = "*"

EventCallback = Callable[[str, Any], None]


class EventEmitter:
    """
    Ordered per-event callback registry.

    Example:
        events = EventEmitter()
        events.on("context_updated", lambda event, data: print(data["action"]))
        events.emit("context_updated", {"action": "context_preserved"})
    """

    def __init__(self, owner: str = "") -> None:
        self._owner = owner
        self._callbacks: Dict[str, List[EventCallback]] = {}

    def on(self, event: str, callback: EventCallback) -> None:
        """Registers a callback for an event (or ANY_EVENT)."""
        if event not in self._callbacks:
            self._callbacks[event] = []
        self._callbacks[event].append(callback)

    def off(self, event: str, callback: EventCallback) -> bool:
        """Removes a callback."""
        if event in self._callbacks:
            try:
                self._callbacks[event].remove(callback)
                return True
            except ValueError:
                pass
        return False

    def emit(self, event: str, data: Any = None) -> None:
        """Calls all callbacks for an event, then the wildcard listeners."""
        listeners = list(self._callbacks.get(event, []))
        if event != ANY_EVENT:
            listeners.extend(self._callbacks.get(ANY_EVENT, []))

        for callback in listeners:
            try:
                callback(event, data)
            except Exception as e:
                logger.error(f"{self._owner or 'Event'} callback error for event '{event}': {e}")

    def listener_count(self, event: str) -> int:
        return len(self._callbacks.get(event, []))

    def clear(self) -> None:
        self._callbacks.clear()
