#!/usr/bin/env python3
"""
Create the database tables and initialize the watcher cursor.

Usage:
    python -m scripts.seed_state
    python -m scripts.seed_state --start-id 100000057470
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from ticketwatch.config import get_settings
from ticketwatch.db import init_db
from ticketwatch.engines.watch import TicketStore, resume_ticket_id

logger = structlog.get_logger()


async def seed(start_id: str) -> None:
    await init_db()
    state = await TicketStore().get_state(start_id)
    logger.info(
        "Scraper state ready",
        last_checked_id=state.last_checked_id,
        status=state.status,
        resumes_at=resume_ticket_id(state),
    )


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument(
        "--start-id",
        default=get_settings().start_ticket_id,
        help="Ticket id to start from when no cursor exists yet",
    )
    args = parser.parse_args()
    asyncio.run(seed(args.start_id))


if __name__ == "__main__":
    main()
