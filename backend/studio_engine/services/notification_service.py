# backend/studio_engine/services/notification_service.py
"""
Notification collaborator for the studio booking engine.

The engine does not deliver notifications. After a transaction commits it
hands the finished domain object to a ``NotificationDispatcher`` with an
event name. Delivery failures are logged and never undo the booking.
"""

from dataclasses import dataclass
import logging
from typing import Any, Iterable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

PendingNotification = Tuple[str, Any]


class NotificationDispatcher(Protocol):
    """Interface for notification delivery - fire and forget."""

    def dispatch(self, event: str, record: Any) -> None:
        """Deliver one event about a committed domain object."""
        ...


class LoggingNotificationDispatcher:
    """Default dispatcher: writes each event to the log."""

    def dispatch(self, event: str, record: Any) -> None:
        logger.info(f"Notification {event}: {record!r}", extra={"event": event})


@dataclass(frozen=True)
class DispatchedEvent:
    event: str
    record: Any


class RecordingNotificationDispatcher:
    """Keeps events in memory, for tests and dry runs."""

    def __init__(self) -> None:
        self.events: List[DispatchedEvent] = []

    def dispatch(self, event: str, record: Any) -> None:
        self.events.append(DispatchedEvent(event, record))

    def names(self) -> List[str]:
        return [e.event for e in self.events]

    def of_type(self, event: str) -> List[Any]:
        return [e.record for e in self.events if e.event == event]

    def clear(self) -> None:
        self.events.clear()


class NotificationService:
    """Sends post-commit events through a dispatcher, isolating its failures."""

    def __init__(self, dispatcher: Optional[NotificationDispatcher] = None):
        self.dispatcher: NotificationDispatcher = dispatcher or LoggingNotificationDispatcher()

    def notify(self, event: str, record: Any) -> bool:
        """
        Dispatch one event.

        Returns:
            True when the dispatcher accepted the event
        """
        try:
            self.dispatcher.dispatch(event, record)
            return True
        except Exception as e:
            logger.error(
                f"Notification {event} failed: {type(e).__name__}: {str(e)}",
                extra={"event": event},
                exc_info=True,
            )
            return False

    def notify_all(self, pending: Iterable[PendingNotification]) -> int:
        """Dispatch events in order; returns how many were accepted."""
        return sum(1 for event, record in pending if self.notify(event, record))
