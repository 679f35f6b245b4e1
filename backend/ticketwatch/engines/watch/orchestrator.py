"""Ticket Watcher - probes the portal for new tickets, one id at a time.

The watcher:
1. Resumes from the persisted cursor
2. Searches the portal for the current ticket id
3. Gets past captcha / failed-challenge pages
4. Waits with a backoff schedule while the id has not been issued yet
5. Stores accessible tickets (with GPS read from the evidence photo)
6. Commits the cursor and moves on to the next id

Unexpected errors never advance the cursor: the same id is retried after a
cool-down.
"""

import asyncio
import contextlib
from collections.abc import Awaitable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Protocol, TypeVar

import structlog
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ticketwatch.config import Settings, get_settings
from ticketwatch.db.models import Ticket
from ticketwatch.engines.feedback.notifier import NotificationSink
from ticketwatch.engines.ocr.extractor import GpsExtractionError, GpsExtractor
from ticketwatch.engines.search.challenge import ChallengePage, ChallengeResolver
from ticketwatch.engines.search.classifier import (
    PageSnapshot,
    SearchOutcome,
    SearchResult,
    TicketCandidate,
    classify,
)
from ticketwatch.engines.watch.backoff import BackoffSchedule
from ticketwatch.engines.watch.sequence import next_ticket_id
from ticketwatch.engines.watch.store import TicketStore, resume_ticket_id

logger = structlog.get_logger()

T = TypeVar("T")


class WatcherState(str, Enum):
    INITIALIZING = "initializing"
    SEARCHING = "searching"
    AWAITING_APPEARANCE = "awaiting_appearance"
    RESOLVING_CHALLENGE = "resolving_challenge"
    RESOLVED = "resolved"
    ADVANCING = "advancing"
    FAULTED = "error"
    STOPPED = "stopped"


class TicketPortal(ChallengePage, Protocol):
    """Page automation the watcher needs from the portal session."""

    async def open(self) -> None: ...

    async def search(self, ticket_id: str) -> PageSnapshot: ...


@dataclass
class CycleResult:
    """What happened to one ticket id."""

    ticket_id: str
    result: SearchResult
    ticket: Optional[Ticket] = None
    created: bool = False
    notified: bool = False
    waits: int = 0


def is_fresh(timestamp: datetime, now: datetime, window: timedelta) -> bool:
    """True if ``timestamp`` is no older than ``window`` at ``now``."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp >= now - window


class TicketWatcher:
    """Sequential ticket discovery loop with a durable cursor."""

    def __init__(
        self,
        portal: TicketPortal,
        store: TicketStore,
        extractor: GpsExtractor,
        notifier: NotificationSink,
        resolver: Optional[ChallengeResolver] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.portal = portal
        self.store = store
        self.extractor = extractor
        self.notifier = notifier
        self.resolver = resolver or ChallengeResolver(
            portal,
            max_attempts=self.settings.challenge_max_attempts,
        )
        self.freshness_window = timedelta(minutes=self.settings.notify_freshness_minutes)
        self.current_ticket_id: Optional[str] = None
        self._stop = asyncio.Event()
        self._portal_open = False

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Ask the loop to finish; the in-flight cycle is abandoned uncommitted."""
        if not self._stop.is_set():
            logger.info("Stopping ticket watcher", ticket_id=self.current_ticket_id)
        self._stop.set()

    async def starting_ticket_id(self) -> str:
        """Ticket id the loop resumes at, creating the cursor if needed."""
        state = await self.store.get_state(self.settings.start_ticket_id)
        return resume_ticket_id(state)

    async def run(self) -> None:
        """Probe ticket ids until ``stop()`` is called."""
        ticket_id = await self.starting_ticket_id()
        await self._record_status(WatcherState.INITIALIZING.value)
        logger.info("Ticket watcher starting", ticket_id=ticket_id)

        while not self.stopping:
            self.current_ticket_id = ticket_id
            try:
                cycle = await self._until_stopped(self._probe(ticket_id))
            except PlaywrightTimeoutError as e:
                logger.warning("Portal operation timed out", ticket_id=ticket_id, error=str(e))
                await self._fault(ticket_id)
                continue
            except Exception as e:
                logger.error(
                    "Error in ticket watcher loop",
                    ticket_id=ticket_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await self._fault(ticket_id)
                continue

            if cycle is None:
                break

            ticket_id = next_ticket_id(ticket_id)
            logger.info("Next ticket", ticket_id=ticket_id)
            await self._set_status(WatcherState.ADVANCING, ticket_id)
            await self._sleep(self.settings.advance_delay_seconds)

        await self._record_status(WatcherState.STOPPED.value)
        logger.info("Ticket watcher stopped", ticket_id=self.current_ticket_id)

    async def _probe(self, ticket_id: str) -> CycleResult:
        if self._portal_open:
            await self.portal.reload()
        else:
            await self.portal.open()
            self._portal_open = True
        return await self.run_cycle(ticket_id)

    async def run_cycle(self, ticket_id: str) -> CycleResult:
        """Resolve one ticket id and commit the cursor."""
        logger.info("Checking ticket", ticket_id=ticket_id)
        await self._set_status(WatcherState.SEARCHING, ticket_id)

        outcome = await self.search(ticket_id)

        backoff = BackoffSchedule(self.settings.backoff_seconds)
        waits = 0
        while outcome.result is SearchResult.NO_RESULTS:
            delay = backoff.current()
            await self._set_status(WatcherState.AWAITING_APPEARANCE, ticket_id)
            logger.info("Ticket not issued yet, waiting", ticket_id=ticket_id, delay=delay)
            await self._sleep(delay)
            waits += 1

            outcome = await self.search(ticket_id)
            backoff.advance()

        cycle = CycleResult(ticket_id=ticket_id, result=outcome.result, waits=waits)

        if outcome.result is SearchResult.ACCESSIBLE:
            ticket = await self.build_ticket(outcome.ticket)
            cycle.ticket, cycle.created = await self.store.create_ticket(ticket)
        elif outcome.is_challenge:
            logger.warning("Giving up on ticket after unresolved challenge", ticket_id=ticket_id)
        else:
            logger.info("Ticket closed, not storing", ticket_id=ticket_id)

        await self.store.commit_cursor(
            ticket_id,
            status=f"{WatcherState.RESOLVED.value} {ticket_id} {outcome.result.value}",
        )

        if cycle.created:
            cycle.notified = self._notify(cycle.ticket)

        return cycle

    async def search(self, ticket_id: str) -> SearchOutcome:
        """Search once, retrying through challenges."""
        outcome = await self._search_once(ticket_id)
        if outcome.is_challenge:
            await self._set_status(WatcherState.RESOLVING_CHALLENGE, ticket_id)
            outcome = await self.resolver.resolve(
                outcome,
                lambda: self._search_once(ticket_id),
            )
        return outcome

    async def _search_once(self, ticket_id: str) -> SearchOutcome:
        snapshot = await self.portal.search(ticket_id)
        outcome = classify(
            snapshot,
            ticket_id,
            portal_timezone=self.settings.portal_timezone,
        )
        logger.debug("Search result", ticket_id=ticket_id, result=outcome.result.value)
        return outcome

    async def build_ticket(self, candidate: TicketCandidate) -> Ticket:
        """Turn a parsed card into a Ticket, reading GPS from the evidence photo."""
        ticket = Ticket(
            ticket_id=candidate.ticket_id,
            license_plate_number=candidate.license_plate_number,
            license_plate_state=candidate.license_plate_state,
            street_location=candidate.street_location,
            timestamp=candidate.timestamp,
        )

        try:
            gps = await self.extractor.extract(candidate.evidence_url)
        except GpsExtractionError as e:
            logger.warning(
                "GPS extraction failed, storing without coordinates",
                ticket_id=candidate.ticket_id,
                error=str(e),
            )
            return ticket

        if gps is None:
            logger.info("No GPS overlay on evidence image", ticket_id=candidate.ticket_id)
            return ticket

        ticket.lat = gps.lat
        ticket.lng = gps.lng
        ticket.ocr_text = gps.raw_text
        return ticket

    def _notify(self, ticket: Ticket) -> bool:
        now = datetime.now(timezone.utc)
        if not is_fresh(ticket.timestamp, now, self.freshness_window):
            logger.info(
                "Ticket older than freshness window, not broadcasting",
                ticket_id=ticket.ticket_id,
                timestamp=ticket.timestamp.isoformat(),
            )
            return False

        try:
            self.notifier.publish(ticket)
        except Exception as e:
            logger.warning("Ticket notification failed", ticket_id=ticket.ticket_id, error=str(e))
            return False
        return True

    async def _fault(self, ticket_id: str) -> None:
        # Navigate afresh next time; the page may be in any state
        self._portal_open = False
        await self._record_status(WatcherState.FAULTED.value)
        logger.info(
            "Retrying same ticket after cool-down",
            ticket_id=ticket_id,
            cooldown=self.settings.error_cooldown_seconds,
        )
        await self._sleep(self.settings.error_cooldown_seconds)

    async def _set_status(self, state: WatcherState, ticket_id: str) -> None:
        await self._record_status(f"{state.value} {ticket_id}")

    async def _record_status(self, status: str) -> None:
        """Status is informational; a failed write must not stop the loop."""
        try:
            await self.store.set_status(status)
        except Exception as e:
            logger.warning("Could not record watcher status", status=status, error=str(e))

    async def _sleep(self, seconds: float) -> None:
        """Sleep, waking early if the watcher is stopped."""
        if seconds <= 0 or self.stopping:
            return
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)

    async def _until_stopped(self, work: Awaitable[T]) -> Optional[T]:
        """Run ``work`` unless stop() is called first; None if abandoned."""
        task = asyncio.ensure_future(work)
        stopper = asyncio.ensure_future(self._stop.wait())
        try:
            await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
                logger.info("Abandoned in-flight cycle", ticket_id=self.current_ticket_id)

        if task.cancelled():
            return None
        return task.result()
