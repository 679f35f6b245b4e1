"""Classify what the ticket portal shows after a search.

The portal answers a ticket search with one of a handful of page states:
a result card, a "no results" alert, a closed/remittance notice, an
interactive challenge, or a failed-challenge alert. ``classify`` maps a
``PageSnapshot`` to a ``SearchOutcome``. Checks run in a fixed order and
stop at the first match; the challenge check comes before the text markers
because challenge pages can contain the same phrases.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

import structlog
from bs4 import BeautifulSoup, Tag

logger = structlog.get_logger()


class SearchResult(str, Enum):
    ACCESSIBLE = "accessible"
    CAPTCHA = "captcha"
    FAILED_CHALLENGE = "failed_challenge"
    CLOSED = "closed"
    NO_RESULTS = "no_results"


class TicketMessage(str, Enum):
    """Marker phrases the portal prints in its search message area."""

    REMITTANCE = "that are able to be remitted today"
    CLOSED = "The ticket number you are searching is in a Closed"
    FAILED_CHALLENGE = "Failed Challenge. Please Try Again."
    NO_RESULTS = "No results found that match your search"


CHALLENGE_RESULTS = frozenset({SearchResult.CAPTCHA, SearchResult.FAILED_CHALLENGE})

CAPTCHA_SELECTOR = "#ticket-search-captcha"
TIMESTAMP_FORMAT = "%m/%d/%Y %I:%M %p"  # e.g. "12/15/2025 10:38 AM"


def card_selector(ticket_id: str) -> str:
    """CSS selector of the result card for ``ticket_id``."""
    return f"div.card.ticket-card[data-citationnumber='{ticket_id}']"


@dataclass
class TicketCandidate:
    """Fields read from a result card, before OCR."""

    ticket_id: str
    timestamp: datetime
    license_plate_number: Optional[str] = None
    license_plate_state: Optional[str] = None
    street_location: Optional[str] = None
    evidence_url: Optional[str] = None


@dataclass
class SearchOutcome:
    """Classification of one search; only ACCESSIBLE carries a ticket."""

    result: SearchResult
    ticket: Optional[TicketCandidate] = None

    def __post_init__(self):
        if (self.result is SearchResult.ACCESSIBLE) != (self.ticket is not None):
            raise ValueError("A ticket is required for ACCESSIBLE outcomes and only for them")

    @property
    def is_challenge(self) -> bool:
        return self.result in CHALLENGE_RESULTS


@dataclass
class PageSnapshot:
    """What the browser observed after submitting a search."""

    text: Optional[str]
    html: str = ""
    challenge_visible: bool = False
    url: Optional[str] = None


def classify(
    snapshot: PageSnapshot,
    expected_id: str,
    portal_timezone: str = "America/New_York",
    observed_at: Optional[datetime] = None,
) -> SearchOutcome:
    """Map a page snapshot to a search outcome."""
    text = snapshot.text
    if not text or not text.strip():
        return SearchOutcome(SearchResult.NO_RESULTS)

    if snapshot.challenge_visible:
        logger.info("Challenge visible", ticket_id=expected_id)
        return SearchOutcome(SearchResult.CAPTCHA)

    if TicketMessage.FAILED_CHALLENGE.value in text:
        logger.info("Challenge failed", ticket_id=expected_id)
        return SearchOutcome(SearchResult.FAILED_CHALLENGE)

    if TicketMessage.REMITTANCE.value in text or TicketMessage.CLOSED.value in text:
        logger.info("Ticket closed", ticket_id=expected_id)
        return SearchOutcome(SearchResult.CLOSED)

    if TicketMessage.NO_RESULTS.value in text:
        return SearchOutcome(SearchResult.NO_RESULTS)

    ticket = parse_ticket_card(
        snapshot.html,
        expected_id,
        portal_timezone=portal_timezone,
        observed_at=observed_at,
    )
    if ticket is None:
        return SearchOutcome(SearchResult.NO_RESULTS)

    return SearchOutcome(SearchResult.ACCESSIBLE, ticket)


def parse_ticket_card(
    html: str,
    ticket_id: str,
    portal_timezone: str = "America/New_York",
    observed_at: Optional[datetime] = None,
) -> Optional[TicketCandidate]:
    """Parse the result card for ``ticket_id``; None if it isn't there."""
    if not html:
        return None

    soup = BeautifulSoup(html, "lxml")
    card = soup.select_one(card_selector(ticket_id))
    if card is None:
        return None

    header = card.select_one("div.card-header button")
    if header is None:
        logger.warning("Ticket card has no header", ticket_id=ticket_id)
        return None

    timestamp_text = _text(header.select_one(":scope > span:nth-child(3)"))
    timestamp = parse_portal_timestamp(timestamp_text, portal_timezone)
    if timestamp is None:
        logger.warning(
            "Unparseable ticket timestamp, using observation time",
            ticket_id=ticket_id,
            timestamp=timestamp_text,
        )
        timestamp = observed_at or datetime.now(timezone.utc)

    info = card.select_one("div.ticket-card-info") or card
    evidence = card.select_one("div.carousel-inner > div:first-child > img")

    return TicketCandidate(
        ticket_id=ticket_id,
        timestamp=timestamp,
        license_plate_number=_text(info.select_one("span#LicenseNoState")),
        license_plate_state=_text(info.select_one("span#LicenseState")),
        street_location=_text(card.select_one("span#ViolationLocation")),
        evidence_url=evidence.get("src") if evidence is not None else None,
    )


def parse_portal_timestamp(value: Optional[str], portal_timezone: str) -> Optional[datetime]:
    """Parse "12/15/2025 10:38 AM" in the portal's timezone into UTC."""
    if not value:
        return None
    try:
        local = datetime.strptime(" ".join(value.split()), TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return local.replace(tzinfo=ZoneInfo(portal_timezone)).astimezone(timezone.utc)


def _text(element: Optional[Tag]) -> Optional[str]:
    if element is None:
        return None
    value = element.get_text(strip=True)
    return value or None
