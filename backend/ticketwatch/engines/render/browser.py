"""Playwright session driving the ticket portal search form."""

import asyncio
from typing import Optional

import structlog
from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from ticketwatch.engines.search.classifier import (
    CAPTCHA_SELECTOR,
    PageSnapshot,
    card_selector,
)

logger = structlog.get_logger()

SEARCH_INPUT_SELECTOR = "#ticket-number-search"
SEARCH_BUTTON_SELECTOR = (
    'button[type="submit"], button:has-text("Search"), button:has-text("Lookup")'
)
LOADING_SPINNER_SELECTOR = "div.loading-spinner-text"
SEARCH_MESSAGES_SELECTOR = "div#ticket-search-messages > div.alert"

# Hidden response fields the common challenge widgets read on submit
CHALLENGE_RESPONSE_SCRIPT = """
(token) => {
    const names = ['g-recaptcha-response', 'h-captcha-response', 'cf-turnstile-response'];
    for (const name of names) {
        const fields = document.querySelectorAll(`textarea[name="${name}"], input[name="${name}"]`);
        for (const field of fields) {
            field.value = token;
            field.innerHTML = token;
        }
    }
}
"""


class PortalSession:
    """One browser page parked on the portal's ticket search form."""

    def __init__(
        self,
        portal_url: str,
        browser_type: str = "firefox",
        headless: bool = False,
        timeout_ms: int = 5000,
        results_timeout_ms: int = 10000,
        typing_delay_ms: int = 50,
    ):
        self.portal_url = portal_url
        self.browser_type = browser_type
        self.headless = headless
        self.timeout_ms = timeout_ms
        self.results_timeout_ms = results_timeout_ms
        self.typing_delay_ms = typing_delay_ms
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    @property
    def started(self) -> bool:
        return self._page is not None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Portal session not started")
        return self._page

    @property
    def url(self) -> str:
        return self._page.url if self._page is not None else self.portal_url

    async def start(self) -> None:
        """Launch the browser and open a page."""
        if self.started:
            return

        logger.info("Starting portal browser", browser=self.browser_type, headless=self.headless)
        self._playwright = await async_playwright().start()
        launcher = getattr(self._playwright, self.browser_type)
        self._browser = await launcher.launch(headless=self.headless)
        self._context = await self._browser.new_context()
        self._page = await self._context.new_page()
        self._page.set_default_timeout(self.timeout_ms)

    async def close(self) -> None:
        """Close the page, browser and Playwright driver."""
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        logger.info("Portal browser stopped")

    async def open(self) -> None:
        """Navigate to the portal search page."""
        await self.start()
        logger.info("Navigating to ticket portal", url=self.portal_url)
        await self.page.goto(
            self.portal_url,
            wait_until="domcontentloaded",
            timeout=self.timeout_ms,
        )
        # Let the search widget finish initializing
        await asyncio.sleep(3)

    async def reload(self) -> None:
        await self.page.reload(wait_until="domcontentloaded", timeout=self.timeout_ms)
        await asyncio.sleep(0.5)

    async def search(self, ticket_id: str) -> PageSnapshot:
        """Submit a search for ``ticket_id`` and capture the resulting page."""
        await self._submit_search(ticket_id)
        return await self.snapshot()

    async def snapshot(self) -> PageSnapshot:
        page = self.page
        return PageSnapshot(
            text=await page.text_content("body"),
            html=await page.content(),
            challenge_visible=await page.is_visible(CAPTCHA_SELECTOR),
            url=page.url,
        )

    async def challenge_site_key(self) -> Optional[str]:
        """Site key of the visible challenge widget, if any."""
        page = self.page
        for selector in (f"{CAPTCHA_SELECTOR} [data-sitekey]", "[data-sitekey]"):
            element = await page.query_selector(selector)
            if element is not None:
                return await element.get_attribute("data-sitekey")
        return None

    async def inject_challenge_token(self, token: str) -> None:
        await self.page.evaluate(CHALLENGE_RESPONSE_SCRIPT, token)

    async def _submit_search(self, ticket_id: str) -> None:
        page = self.page

        await page.wait_for_selector(
            SEARCH_INPUT_SELECTOR,
            state="visible",
            timeout=self.timeout_ms,
        )
        await page.click(SEARCH_INPUT_SELECTOR)
        await page.fill(SEARCH_INPUT_SELECTOR, "")
        await page.type(SEARCH_INPUT_SELECTOR, ticket_id, delay=self.typing_delay_ms)

        # Give the input handlers a moment before submitting
        await asyncio.sleep(0.5)
        await page.click(SEARCH_BUTTON_SELECTOR)

        try:
            await page.wait_for_selector(
                LOADING_SPINNER_SELECTOR,
                state="hidden",
                timeout=self.results_timeout_ms,
            )
            # Any of captcha, message alert or the ticket card ends the wait
            await page.wait_for_selector(
                ", ".join(
                    [CAPTCHA_SELECTOR, SEARCH_MESSAGES_SELECTOR, card_selector(ticket_id)]
                ),
                timeout=self.results_timeout_ms,
            )
        except PlaywrightTimeoutError:
            logger.warning("Timed out waiting for search results", ticket_id=ticket_id)

        # Final render buffer
        await asyncio.sleep(0.5)
