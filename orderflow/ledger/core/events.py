"""
Event system for ledger lifecycle events.

Events are buffered per transaction and only published once it commits,
so subscribers never observe state that was rolled back.
"""
from typing import Dict, List, Callable, Any
import logging

logger = logging.getLogger(__name__)

ALL_EVENTS = "*"


class EventBus:
    """
    Simple synchronous pub/sub.

    Subscribe to ALL_EVENTS to receive every event; such callbacks also get
    the event name as the `event_type` keyword.
    """

    def __init__(self):
        self.listeners: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str, callback: Callable) -> None:
        self.listeners.setdefault(event_type, []).append(callback)
        logger.debug(f"Subscribed to event: {event_type}")

    def unsubscribe(self, event_type: str, callback: Callable) -> None:
        if event_type in self.listeners:
            try:
                self.listeners[event_type].remove(callback)
            except ValueError:
                logger.warning(f"Callback not found for event: {event_type}")

    def emit(self, event_type: str, **data: Any) -> None:
        """
        Deliver an event to its subscribers, then to wildcard subscribers.

        A failing callback is logged and does not stop delivery to the rest.
        """
        targets = [(cb, data) for cb in self.listeners.get(event_type, [])]
        targets += [(cb, dict(data, event_type=event_type)) for cb in self.listeners.get(ALL_EVENTS, [])]

        if not targets:
            logger.debug(f"No listeners for event: {event_type}")
            return

        for callback, payload in targets:
            try:
                callback(**payload)
            except Exception as e:
                logger.error(f"Error in event callback for {event_type}: {e}", exc_info=True)

    def clear(self, event_type: str = None) -> None:
        if event_type:
            self.listeners.pop(event_type, None)
        else:
            self.listeners.clear()
