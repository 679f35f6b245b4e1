"""Ticket watcher: sequencing, backoff, storage and the discovery loop."""

from ticketwatch.engines.watch.backoff import BackoffSchedule
from ticketwatch.engines.watch.orchestrator import (
    CycleResult,
    TicketWatcher,
    WatcherState,
    is_fresh,
)
from ticketwatch.engines.watch.sequence import next_ticket_id
from ticketwatch.engines.watch.store import TicketStore, resume_ticket_id

__all__ = [
    "BackoffSchedule",
    "CycleResult",
    "TicketWatcher",
    "WatcherState",
    "is_fresh",
    "next_ticket_id",
    "TicketStore",
    "resume_ticket_id",
]
