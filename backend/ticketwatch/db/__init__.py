"""Database module."""

from ticketwatch.db.session import get_db, init_db, engine, async_session_factory
from ticketwatch.db.models import Base, Ticket, ScraperState

__all__ = [
    "get_db",
    "init_db",
    "engine",
    "async_session_factory",
    "Base",
    "Ticket",
    "ScraperState",
]
