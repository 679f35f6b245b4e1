"""Shared HTTP client factory for the evidence image fetcher and the captcha solver.

Usage:
    from ticketwatch.engines.http_client import ManagedHttpClient

    http = ManagedHttpClient()
    client = await http.get_client()
    response = await client.get("https://example.com/photo.jpg")
    ...
    await http.close()
"""

from typing import Optional

import httpx

from ticketwatch.config import get_settings

settings = get_settings()


def get_default_headers(
    user_agent: Optional[str] = None,
    accept: str = "image/avif,image/webp,image/png,image/jpeg,*/*;q=0.8",
    json_accept: bool = False,
) -> dict[str, str]:
    """
    Get default headers for HTTP requests.

    Args:
        user_agent: Custom user agent string. Defaults to settings.http_user_agent.
        accept: Accept header value. Defaults to image types.
        json_accept: If True, sets Accept header for JSON responses.
    """
    if json_accept:
        accept = "application/json, text/plain"

    return {
        "User-Agent": user_agent or settings.http_user_agent,
        "Accept": accept,
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
    }


def create_http_client(
    timeout: Optional[float] = None,
    follow_redirects: bool = True,
    user_agent: Optional[str] = None,
    json_accept: bool = False,
    headers: Optional[dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create a configured httpx.AsyncClient with consistent defaults.

    Args:
        timeout: Request timeout in seconds. Defaults to settings.http_timeout_seconds.
        follow_redirects: Whether to follow HTTP redirects. Default True.
        user_agent: Custom user agent string.
        json_accept: If True, sets Accept header for JSON responses.
        headers: Additional headers to merge with defaults.
        transport: Optional transport override (used by tests).
    """
    default_timeout = timeout if timeout is not None else float(settings.http_timeout_seconds)
    default_headers = get_default_headers(
        user_agent=user_agent,
        json_accept=json_accept,
    )

    if headers:
        default_headers.update(headers)

    return httpx.AsyncClient(
        timeout=default_timeout,
        follow_redirects=follow_redirects,
        headers=default_headers,
        transport=transport,
    )


class ManagedHttpClient:
    """
    A lazily created HTTP client shared across calls of one service.

    Close it once at shutdown.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        json_accept: bool = False,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout
        self._json_accept = json_accept
        self._user_agent = user_agent
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = create_http_client(
                timeout=self._timeout,
                json_accept=self._json_accept,
                user_agent=self._user_agent,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if it exists."""
        if self._client:
            await self._client.aclose()
            self._client = None
