import asyncio
from datetime import datetime, timezone

from ticketwatch.db.models import Ticket
from ticketwatch.engines.feedback.notifier import LogNotifier, TicketBroadcaster, ticket_event


def make_ticket(ticket_id: str = "cab001") -> Ticket:
    return Ticket(
        ticket_id=ticket_id,
        license_plate_number="KXM4821",
        license_plate_state="NY",
        lat=42.444,
        lng=-76.5019,
        street_location="100 W STATE ST",
        timestamp=datetime(2025, 12, 15, 15, 38, tzinfo=timezone.utc),
    )


def test_ticket_event_payload():
    assert ticket_event(make_ticket()) == {
        "ticketId": "cab001",
        "licensePlateNumber": "KXM4821",
        "licensePlateState": "NY",
        "lat": 42.444,
        "lng": -76.5019,
        "streetLocation": "100 W STATE ST",
        "timestamp": "2025-12-15T15:38:00+00:00",
    }


async def test_broadcast_reaches_every_subscriber():
    broadcaster = TicketBroadcaster()

    async with broadcaster.subscribe() as first, broadcaster.subscribe() as second:
        assert broadcaster.subscriber_count == 2
        broadcaster.publish(make_ticket())

        assert first.get_nowait()["ticketId"] == "cab001"
        assert second.get_nowait()["ticketId"] == "cab001"

    assert broadcaster.subscriber_count == 0


async def test_full_subscriber_drops_events():
    broadcaster = TicketBroadcaster(max_queue_size=1)

    async with broadcaster.subscribe() as queue:
        broadcaster.publish(make_ticket("cab001"))
        broadcaster.publish(make_ticket("cab002"))

        assert queue.qsize() == 1
        assert queue.get_nowait()["ticketId"] == "cab001"


async def test_publish_without_subscribers():
    TicketBroadcaster().publish(make_ticket())


def test_log_notifier_does_not_raise():
    LogNotifier().publish(make_ticket())


async def test_subscriber_removed_on_error():
    broadcaster = TicketBroadcaster()
    try:
        async with broadcaster.subscribe():
            raise asyncio.CancelledError
    except asyncio.CancelledError:
        pass
    assert broadcaster.subscriber_count == 0
