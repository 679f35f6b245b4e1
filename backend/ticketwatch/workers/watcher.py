"""Ticket watcher process wiring.

Builds the watcher with its browser session, OCR engine, HTTP client and
optional captcha solver, and releases all of them on the way out. Runs
inside the API process (see ``ticketwatch.main``) or standalone:

    python -m ticketwatch.workers.watcher
"""

import asyncio
import signal
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

import sentry_sdk
import structlog

from ticketwatch.config import Settings, get_settings
from ticketwatch.db import init_db
from ticketwatch.engines.feedback.notifier import LogNotifier, NotificationSink
from ticketwatch.engines.http_client import ManagedHttpClient
from ticketwatch.engines.ocr import GpsExtractor, OcrEngine
from ticketwatch.engines.render.browser import PortalSession
from ticketwatch.engines.search import CaptchaSolver, ChallengeResolver
from ticketwatch.engines.watch import TicketStore, TicketWatcher

logger = structlog.get_logger()


@asynccontextmanager
async def create_watcher(
    notifier: NotificationSink,
    settings: Optional[Settings] = None,
) -> AsyncIterator[TicketWatcher]:
    """Yield a fully wired watcher; close its resources afterwards."""
    settings = settings or get_settings()

    portal = PortalSession(
        settings.portal_url,
        browser_type=settings.browser_type,
        headless=settings.browser_headless,
        timeout_ms=settings.page_timeout_ms,
        results_timeout_ms=settings.results_timeout_ms,
    )
    ocr = OcrEngine(language=settings.ocr_language)
    http = ManagedHttpClient()
    solver = None
    if settings.captcha_api_key:
        solver = CaptchaSolver(
            settings.captcha_api_key,
            base_url=settings.captcha_api_url,
            method=settings.captcha_method,
            poll_interval=settings.captcha_poll_interval_seconds,
            timeout=settings.captcha_timeout_seconds,
        )
    else:
        logger.info("No captcha solver configured, challenges will be retried by reloading")

    watcher = TicketWatcher(
        portal=portal,
        store=TicketStore(),
        extractor=GpsExtractor(
            ocr,
            http=http,
            band_height=settings.ocr_band_height,
            threshold=settings.ocr_threshold,
        ),
        notifier=notifier,
        resolver=ChallengeResolver(
            portal,
            solver=solver,
            max_attempts=settings.challenge_max_attempts,
        ),
        settings=settings,
    )

    try:
        yield watcher
    finally:
        await portal.close()
        await ocr.close()
        await http.close()
        if solver:
            await solver.close()


async def run_watcher(notifier: Optional[NotificationSink] = None) -> None:
    """Run the watcher until SIGINT/SIGTERM."""
    await init_db()

    async with create_watcher(notifier or LogNotifier()) as watcher:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, watcher.stop)

        await watcher.run()


def main() -> None:
    """Standalone worker entry point."""
    settings = get_settings()
    if settings.sentry_dsn:
        sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.environment)

    try:
        asyncio.run(run_watcher())
    except KeyboardInterrupt:
        logger.info("Watcher shutdown by keyboard interrupt")


if __name__ == "__main__":
    main()
