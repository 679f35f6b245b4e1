#!/usr/bin/env python3
"""
Open the ticket portal in a visible browser and search the current cursor id.

Handy for checking selectors after the portal changes its markup. Prints
how the page classifies, then keeps the browser open until Ctrl+C.

Usage:
    python -m scripts.open_browser
    python -m scripts.open_browser --ticket-id 100000057480
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from ticketwatch.config import get_settings
from ticketwatch.db import init_db
from ticketwatch.engines.render.browser import PortalSession
from ticketwatch.engines.search import classify
from ticketwatch.engines.watch import TicketStore, resume_ticket_id

settings = get_settings()
logger = structlog.get_logger()


async def open_browser(ticket_id: Optional[str]) -> None:
    if ticket_id is None:
        await init_db()
        state = await TicketStore().get_state(settings.start_ticket_id)
        ticket_id = resume_ticket_id(state)

    portal = PortalSession(
        settings.portal_url,
        browser_type=settings.browser_type,
        headless=False,
        timeout_ms=settings.page_timeout_ms,
        results_timeout_ms=settings.results_timeout_ms,
    )
    try:
        await portal.open()
        logger.info("Searching", ticket_id=ticket_id)
        snapshot = await portal.search(ticket_id)
        outcome = classify(snapshot, ticket_id, portal_timezone=settings.portal_timezone)
        logger.info(
            "Search completed",
            ticket_id=ticket_id,
            result=outcome.result.value,
            ticket=outcome.ticket,
        )
        logger.info("Browser stays open, press Ctrl+C to exit")
        await asyncio.Event().wait()
    finally:
        await portal.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Open the ticket portal for manual inspection")
    parser.add_argument("--ticket-id", help="Ticket id to search (defaults to the cursor)")
    args = parser.parse_args()
    try:
        asyncio.run(open_browser(args.ticket_id))
    except KeyboardInterrupt:
        logger.info("Closed by keyboard interrupt")


if __name__ == "__main__":
    main()
