"""Retry policy for searches that hit an anti-automation challenge."""

from collections.abc import Awaitable, Callable
from typing import Optional, Protocol

import structlog

from ticketwatch.engines.search.classifier import SearchOutcome, SearchResult
from ticketwatch.engines.search.solver import CaptchaSolver

logger = structlog.get_logger()

DEFAULT_MAX_ATTEMPTS = 5


class ChallengePage(Protocol):
    """The parts of the portal session the resolver drives."""

    @property
    def url(self) -> str: ...

    async def reload(self) -> None: ...

    async def challenge_site_key(self) -> Optional[str]: ...

    async def inject_challenge_token(self, token: str) -> None: ...


class ChallengeResolver:
    """
    Re-run a search until it gets past captcha / failed-challenge pages.

    A failed challenge is a transient validation error: reload and search
    again. A visible captcha is sent to the solver when one is configured;
    the token is injected into the page before searching again. Without a
    solver, or when solving fails, the page is reloaded instead. After
    ``max_attempts`` the last outcome is returned as-is.
    """

    def __init__(
        self,
        page: ChallengePage,
        solver: Optional[CaptchaSolver] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.page = page
        self.solver = solver
        self.max_attempts = max_attempts

    async def resolve(
        self,
        outcome: SearchOutcome,
        search_again: Callable[[], Awaitable[SearchOutcome]],
    ) -> SearchOutcome:
        """Retry ``search_again`` while ``outcome`` is a challenge."""
        attempts = 0

        while outcome.is_challenge and attempts < self.max_attempts:
            attempts += 1
            logger.info(
                "Resolving challenge",
                result=outcome.result.value,
                attempt=attempts,
                max_attempts=self.max_attempts,
            )

            solved = outcome.result is SearchResult.CAPTCHA and await self._solve()
            if not solved:
                await self.page.reload()

            outcome = await search_again()

        if outcome.is_challenge:
            logger.warning(
                "Challenge unresolved",
                result=outcome.result.value,
                attempts=attempts,
            )
        elif attempts:
            logger.info("Challenge cleared", result=outcome.result.value, attempts=attempts)

        return outcome

    async def _solve(self) -> bool:
        """Try to solve the visible captcha; True if a token was injected."""
        if self.solver is None:
            return False

        site_key = await self.page.challenge_site_key()
        if not site_key:
            logger.warning("Captcha has no site key")
            return False

        token = await self.solver.solve(site_key, self.page.url)
        if not token:
            return False

        await self.page.inject_challenge_token(token)
        return True
