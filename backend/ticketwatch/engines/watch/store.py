"""Persistence of tickets and the watcher cursor."""

from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketwatch.db.models import ScraperState, Ticket
from ticketwatch.engines.watch.sequence import next_ticket_id

logger = structlog.get_logger()

STATE_ID = 1
INITIAL_STATUS = "initialized"


def resume_ticket_id(state: ScraperState) -> str:
    """
    The first ticket id to probe for a given cursor.

    A cursor that never committed still points at the configured start id,
    which has not been checked yet. Otherwise probing resumes right after
    the last committed id.
    """
    if state.committed_at is None:
        return state.last_checked_id
    return next_ticket_id(state.last_checked_id)


class TicketStore:
    """Ticket and cursor storage backed by an async session factory."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        if session_factory is None:
            from ticketwatch.db import async_session_factory

            session_factory = async_session_factory
        self._session_factory = session_factory

    async def get_state(self, start_ticket_id: str) -> ScraperState:
        """Load the cursor, creating it at ``start_ticket_id`` on first run."""
        async with self._session_factory() as db:
            state = await db.get(ScraperState, STATE_ID)
            if state is not None:
                return state

            state = ScraperState(
                id=STATE_ID,
                last_checked_id=start_ticket_id,
                status=INITIAL_STATUS,
            )
            db.add(state)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                state = await db.get(ScraperState, STATE_ID)
            else:
                logger.info("Initialized scraper state", start_ticket_id=start_ticket_id)
            return state

    async def set_status(self, status: str) -> None:
        """Record the watcher phase without moving the cursor."""
        async with self._session_factory() as db:
            state = await db.get(ScraperState, STATE_ID)
            if state is None:
                logger.warning("Scraper state missing, status not recorded", status=status)
                return
            state.status = status[:255]
            await db.commit()

    async def commit_cursor(self, ticket_id: str, status: str = "ok") -> None:
        """Mark ``ticket_id`` as resolved."""
        async with self._session_factory() as db:
            state = await db.get(ScraperState, STATE_ID)
            if state is None:
                state = ScraperState(id=STATE_ID, last_checked_id=ticket_id, status=status)
                db.add(state)
            state.last_checked_id = ticket_id
            state.status = status[:255]
            state.committed_at = datetime.now(timezone.utc)
            await db.commit()

    async def find_ticket(self, ticket_id: str) -> Optional[Ticket]:
        async with self._session_factory() as db:
            result = await db.execute(select(Ticket).where(Ticket.ticket_id == ticket_id))
            return result.scalar_one_or_none()

    async def create_ticket(self, ticket: Ticket) -> tuple[Ticket, bool]:
        """
        Insert ``ticket`` unless one with the same id exists.

        Returns the stored ticket and whether it was newly created.
        """
        existing = await self.find_ticket(ticket.ticket_id)
        if existing is not None:
            logger.info("Ticket already exists, skipping creation", ticket_id=ticket.ticket_id)
            return existing, False

        async with self._session_factory() as db:
            db.add(ticket)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.info("Ticket inserted concurrently, skipping", ticket_id=ticket.ticket_id)
            else:
                logger.info("Saved ticket", ticket_id=ticket.ticket_id)
                return ticket, True

        existing = await self.find_ticket(ticket.ticket_id)
        return existing, False
