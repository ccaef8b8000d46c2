"""
Event sink abstraction for high-level runtime events.

Public API (publish) remains stable while the sink implementation
can be swapped (logging, in-memory capture, external analytics).
"""
from typing import Any, Dict, List, Protocol, Tuple
from loguru import logger


class EventSink(Protocol):
    """Receives notifications such as screen.changed or record.created"""

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        ...


class LoggingEventSink:
    """Default sink: writes every event to the log."""

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        logger.bind(event=event, data=payload).info(f"📣 {event}")


class MemoryEventSink:
    """
    Keeps published events in order.

    Handy for tests and for surfacing recent events over the API.
    """

    def __init__(self, limit: int = 500):
        self.limit = limit
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, dict(payload)))
        if len(self.events) > self.limit:
            del self.events[: len(self.events) - self.limit]

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def of_type(self, event: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]

    def clear(self) -> None:
        self.events.clear()
