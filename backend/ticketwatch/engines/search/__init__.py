"""Ticket search: page classification and challenge handling."""

from ticketwatch.engines.search.classifier import (
    PageSnapshot,
    SearchOutcome,
    SearchResult,
    TicketCandidate,
    TicketMessage,
    classify,
    parse_ticket_card,
)
from ticketwatch.engines.search.challenge import ChallengeResolver
from ticketwatch.engines.search.solver import CaptchaSolver, CaptchaSolverError

__all__ = [
    "PageSnapshot",
    "SearchOutcome",
    "SearchResult",
    "TicketCandidate",
    "TicketMessage",
    "classify",
    "parse_ticket_card",
    "ChallengeResolver",
    "CaptchaSolver",
    "CaptchaSolverError",
]
