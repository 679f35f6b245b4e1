"""Client for a 2Captcha-compatible solving service."""

import asyncio
import time
from typing import Optional

import httpx
import structlog

from ticketwatch.engines.http_client import ManagedHttpClient

logger = structlog.get_logger()

# Site key parameter name per solving method
SITE_KEY_PARAMS = {
    "userrecaptcha": "googlekey",
    "hcaptcha": "sitekey",
    "turnstile": "sitekey",
}


class CaptchaSolverError(Exception):
    """The solving service rejected the task or returned garbage."""


class CaptchaSolver:
    """
    Submit a challenge to the solver API and poll for the token.

    Uses the ``in.php`` / ``res.php`` protocol. ``solve`` never raises for
    service-side problems; it logs them and returns None so the caller can
    fall back to reloading the page.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://2captcha.com",
        method: str = "userrecaptcha",
        poll_interval: float = 5.0,
        timeout: float = 120.0,
        http: Optional[ManagedHttpClient] = None,
    ):
        if not api_key:
            raise ValueError("CaptchaSolver requires an API key")
        if method not in SITE_KEY_PARAMS:
            raise ValueError(f"Unsupported captcha method: {method}")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.method = method
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._http = http or ManagedHttpClient(json_accept=True)

    async def close(self) -> None:
        await self._http.close()

    async def solve(self, site_key: str, page_url: str) -> Optional[str]:
        """Return a solution token for the challenge, or None."""
        try:
            task_id = await self._submit(site_key, page_url)
            logger.info("Captcha submitted", task_id=task_id, method=self.method)
            token = await self._poll(task_id)
        except (httpx.HTTPError, CaptchaSolverError, ValueError) as e:
            logger.warning("Captcha solve failed", error=str(e))
            return None

        if token:
            logger.info("Captcha solved", task_id=task_id)
        return token

    async def _submit(self, site_key: str, page_url: str) -> str:
        client = await self._http.get_client()
        response = await client.post(
            f"{self.base_url}/in.php",
            data={
                "key": self.api_key,
                "method": self.method,
                SITE_KEY_PARAMS[self.method]: site_key,
                "pageurl": page_url,
                "json": 1,
            },
        )
        response.raise_for_status()
        payload = response.json()

        if payload.get("status") != 1:
            raise CaptchaSolverError(f"Submit rejected: {payload.get('request')}")
        return str(payload["request"])

    async def _poll(self, task_id: str) -> Optional[str]:
        client = await self._http.get_client()
        deadline = time.monotonic() + self.timeout

        while time.monotonic() < deadline:
            await asyncio.sleep(self.poll_interval)

            response = await client.get(
                f"{self.base_url}/res.php",
                params={"key": self.api_key, "action": "get", "id": task_id, "json": 1},
            )
            response.raise_for_status()
            payload = response.json()

            if payload.get("status") == 1:
                return str(payload["request"])
            if payload.get("request") != "CAPCHA_NOT_READY":
                raise CaptchaSolverError(f"Solve failed: {payload.get('request')}")

        logger.warning("Captcha solve timed out", task_id=task_id, timeout=self.timeout)
        return None
