"""
Notification bus for external observers.

Notifications are fire-and-forget: a failing subscriber is logged and
never fails the operation that produced the notification.
"""

import logging
from collections import deque
from typing import Callable, Optional

from .schema import LedgerEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[LedgerEvent], None]


class EventBus:
    """Broadcasts ledger notifications and keeps a bounded history."""

    def __init__(self, history_size: int = 1000):
        self._subscribers: list[Subscriber] = []
        self._history: deque[LedgerEvent] = deque(maxlen=history_size)
        self._sequence = 0

    def subscribe(self, callback: Subscriber) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def publish(self, event: LedgerEvent) -> LedgerEvent:
        """Stamp `event` with the next sequence number, record it and fan it out."""
        self._sequence += 1
        event = event.model_copy(update={"sequence": self._sequence})
        self._history.append(event)

        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Subscriber {callback!r} failed on {event.name}: {e}")

        return event

    def history(self, name: Optional[str] = None, limit: Optional[int] = None) -> list[LedgerEvent]:
        """
        Recorded notifications, oldest first.

        Args:
            name: Only notifications of this type (e.g. "PolicyIssued")
            limit: Only the most recent `limit` matches
        """
        events = [e for e in self._history if name is None or e.name == name]
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    @property
    def published_count(self) -> int:
        return self._sequence
