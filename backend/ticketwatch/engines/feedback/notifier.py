"""Live notification of newly discovered tickets."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional, Protocol

import structlog

from ticketwatch.db.models import Ticket

logger = structlog.get_logger()


class NotificationSink(Protocol):
    """Receives fresh tickets. Delivery is fire-and-forget."""

    def publish(self, ticket: Ticket) -> None: ...


def ticket_event(ticket: Ticket) -> dict:
    """Serializable payload sent to subscribers."""
    return {
        "ticketId": ticket.ticket_id,
        "licensePlateNumber": ticket.license_plate_number,
        "licensePlateState": ticket.license_plate_state,
        "lat": ticket.lat,
        "lng": ticket.lng,
        "streetLocation": ticket.street_location,
        "timestamp": ticket.timestamp.isoformat() if ticket.timestamp else None,
    }


class LogNotifier:
    """Sink for the standalone worker: just logs the ticket."""

    def publish(self, ticket: Ticket) -> None:
        logger.info("New ticket", **ticket_event(ticket))


class TicketBroadcaster:
    """
    In-process fan-out of ticket events to stream subscribers.

    Each subscriber gets a bounded queue; when a slow subscriber's queue is
    full the event is dropped for that subscriber only.
    """

    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self._subscribers: set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, ticket: Ticket) -> None:
        event = ticket_event(ticket)
        delivered = 0
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Dropping ticket event for slow subscriber", ticket_id=ticket.ticket_id)

        logger.info(
            "Broadcast ticket",
            ticket_id=ticket.ticket_id,
            subscribers=delivered,
        )

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue]:
        """Register a subscriber queue for the duration of the block."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers.add(queue)
        try:
            yield queue
        finally:
            self._subscribers.discard(queue)


# Global broadcaster shared by the API and the co-hosted watcher
_broadcaster: Optional[TicketBroadcaster] = None


def get_broadcaster() -> TicketBroadcaster:
    """Get the global ticket broadcaster."""
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = TicketBroadcaster()
    return _broadcaster
