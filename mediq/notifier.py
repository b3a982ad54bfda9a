"""Change notifier: fan out booking and status events to subscribers.

Delivery is best-effort. Subscribers must treat events as hints and
re-query the store for authoritative state; a subscriber that raises is
logged and skipped, never propagated back into the booking or transition
that published the event.
"""
import asyncio
import threading
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Callable, Dict, List, Union

from mediq.logging_config import get_logger
from mediq.slots import SlotKey
from mediq.state import AppointmentStatus

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class AppointmentCreated:
    id: str
    slot_key: SlotKey
    queue_number: int
    occurred_at: datetime = field(default_factory=_now)

    event_type = "appointment_created"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.event_type,
            "id": self.id,
            "slotDate": self.slot_key.date.isoformat(),
            "slotName": self.slot_key.name,
            "queueNumber": self.queue_number,
            "occurredAt": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class StatusChanged:
    id: str
    old_status: AppointmentStatus
    new_status: AppointmentStatus
    occurred_at: datetime = field(default_factory=_now)

    event_type = "status_changed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.event_type,
            "id": self.id,
            "oldStatus": self.old_status.value,
            "newStatus": self.new_status.value,
            "occurredAt": self.occurred_at.isoformat(),
        }


Event = Union[AppointmentCreated, StatusChanged]
Subscriber = Callable[[Event], None]


class ChangeNotifier:
    """
    In-process publish/subscribe hub.

    Events are delivered synchronously in publish order, so events about
    one appointment reach each subscriber in the order the state machine
    committed them.
    """

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Subscriber:
        with self._lock:
            self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Subscriber):
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: Event):
        """Deliver event to every subscriber; never raises."""
        with self._lock:
            subscribers = list(self._subscribers)

        logger.debug("event_published", event_type=event.event_type, appointment_id=event.id)

        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "subscriber_failed",
                    event_type=event.event_type,
                    appointment_id=event.id,
                    subscriber=getattr(callback, "__name__", repr(callback)),
                )


class EventStream:
    """
    Subscriber that forwards events onto an asyncio queue.

    Lets a push transport (Server-Sent Events) consume notifier events that
    are published from worker threads.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, max_pending: int = 1000):
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self.dropped = 0

    def __call__(self, event: Event):
        self.loop.call_soon_threadsafe(self._put, event)

    def _put(self, event: Event):
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            # Slow consumer; it will re-query on the next event it sees
            self.dropped += 1

    async def get(self) -> Event:
        return await self.queue.get()
