from datetime import datetime, timezone

from sqlalchemy import func, select

from ticketwatch.db.models import ScraperState, Ticket
from ticketwatch.engines.watch.store import resume_ticket_id


def make_ticket(ticket_id: str, **fields) -> Ticket:
    fields.setdefault("timestamp", datetime(2025, 12, 15, 15, 38, tzinfo=timezone.utc))
    return Ticket(ticket_id=ticket_id, **fields)


async def test_get_state_creates_cursor_once(store, session_factory):
    first = await store.get_state("cab001")
    second = await store.get_state("zzz999")

    assert first.last_checked_id == "cab001"
    assert first.status == "initialized"
    assert first.committed_at is None
    assert second.last_checked_id == "cab001"

    async with session_factory() as db:
        count = await db.scalar(select(func.count()).select_from(ScraperState))
    assert count == 1


async def test_fresh_cursor_resumes_at_start_id(store):
    state = await store.get_state("cab001")
    assert resume_ticket_id(state) == "cab001"


async def test_committed_cursor_resumes_after_last_id(store):
    await store.get_state("cab001")
    await store.commit_cursor("cab150", status="resolved cab150 closed")

    state = await store.get_state("cab001")

    assert state.last_checked_id == "cab150"
    assert state.status == "resolved cab150 closed"
    assert state.committed_at is not None
    assert resume_ticket_id(state) == "cab151"


async def test_set_status_leaves_cursor_alone(store):
    await store.get_state("cab001")
    await store.set_status("searching cab001")

    state = await store.get_state("cab001")

    assert state.status == "searching cab001"
    assert state.last_checked_id == "cab001"
    assert state.committed_at is None


async def test_set_status_without_cursor_is_ignored(store, session_factory):
    await store.set_status("searching cab001")

    async with session_factory() as db:
        assert await db.get(ScraperState, 1) is None


async def test_create_ticket(store):
    ticket, created = await store.create_ticket(
        make_ticket("cab001", license_plate_number="KXM4821", lat=42.444, lng=-76.5019)
    )

    assert created is True
    stored = await store.find_ticket("cab001")
    assert stored.license_plate_number == "KXM4821"
    assert stored.lat == 42.444
    assert stored.created_at is not None


async def test_duplicate_ticket_is_not_overwritten(store, session_factory):
    await store.create_ticket(make_ticket("cab001", license_plate_number="FIRST"))

    ticket, created = await store.create_ticket(make_ticket("cab001", license_plate_number="SECOND"))

    assert created is False
    assert ticket.license_plate_number == "FIRST"
    async with session_factory() as db:
        count = await db.scalar(select(func.count()).select_from(Ticket))
    assert count == 1


async def test_find_missing_ticket(store):
    assert await store.find_ticket("nope") is None
