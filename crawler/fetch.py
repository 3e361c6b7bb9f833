"""
Fetch layer: lightweight HTTP GET and full browser rendering.

``fetch_light`` goes through httpx (fast, no JavaScript);
``fetch_rendered`` goes through the shared Playwright browser (slow,
executes JavaScript, needed for client-rendered pages).
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

import browser_client
from .config import CrawlerConfig, DEFAULT_HEADERS
from .errors import HttpError, NetworkError

logger = logging.getLogger(__name__)


class Fetcher:
    """
    Performs single GET requests.

    The httpx client is created lazily and closed by ``aclose`` unless it
    was supplied by the caller. The browser pool is never owned here.
    """

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        browser: Optional[browser_client.BrowserPool] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or CrawlerConfig()
        self._browser = browser
        self._client = client
        self._owns_client = client is None

    @property
    def browser(self) -> Optional[browser_client.BrowserPool]:
        return self._browser

    @property
    def rendered_available(self) -> bool:
        """True when a rendered fetch can be attempted."""
        return self._browser is not None and self._browser.enabled

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
        return self._client

    async def fetch_light(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> str:
        """
        Plain HTTP GET with browser-like headers.

        Raises:
            NetworkError: No response (DNS, connection, timeout)
            HttpError: Non-2xx response
        """
        merged = {**DEFAULT_HEADERS, **(headers or {})}
        timeout = (timeout_ms or self.config.timeout_ms) / 1000

        try:
            resp = await self._get_client().get(url, headers=merged, timeout=timeout)
        except httpx.TimeoutException as e:
            logger.error("Request timed out after %.0fs: %s", timeout, url)
            raise NetworkError(url, f"timeout: {e}") from e
        except httpx.TransportError as e:
            logger.error("No response from %s: %s", url, e)
            raise NetworkError(url, str(e)) from e

        if not resp.is_success:
            err = HttpError(url, resp.status_code, resp.reason_phrase)
            if err.hint():
                logger.error("HTTP %d from %s: %s", resp.status_code, url, err.hint())
            else:
                logger.error("HTTP %d from %s", resp.status_code, url)
            raise err

        return resp.text

    async def fetch_rendered(
        self,
        url: str,
        wait_for_selector: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: Optional[int] = None,
        selector_optional: bool = False,
    ) -> str:
        """
        Render the page in the shared browser and return its HTML.

        Falls back to ``fetch_light`` when no browser is configured. With
        ``selector_optional`` a missing ``wait_for_selector`` only logs a
        warning and the page is returned as loaded.

        Raises:
            BrowserInitError: Browser could not be launched
            NetworkError: Navigation or selector wait failed
        """
        if not self.rendered_available:
            logger.warning("Browser rendering unavailable, using plain HTTP for %s", url)
            return await self.fetch_light(url, headers=headers, timeout_ms=timeout_ms)

        page = await browser_client.fetch_rendered(
            self._browser,
            url,
            wait_for=wait_for_selector,
            headers=headers,
            timeout_ms=timeout_ms or self.config.timeout_ms,
            selector_optional=selector_optional,
        )
        logger.info(
            "Rendered %s (HTTP %d, %d bytes, %.0fms)",
            page.url, page.status_code, len(page.content), page.load_time_ms,
        )
        return page.content

    async def aclose(self):
        """Close the HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
