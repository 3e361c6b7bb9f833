"""
Browser Client: Playwright-based rendering for JS-driven pages.

Provides:
  - A single shared browser, lazily launched and explicitly shut down
  - Request-scoped pages with guaranteed release
  - Anti-detection init script (hides automation flags)
  - Resource blocking (images, fonts, media)
  - Navigation observation for redirect wrappers

Usage:
    pool = BrowserPool(BrowserConfig.from_env())
    try:
        page = await fetch_rendered(pool, "https://example.com/search?q=ai")
        final_url = await observe_navigation(pool, "https://www.baidu.com/link?url=...")
    finally:
        await pool.shutdown()
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, List, Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
    Request,
    Route,
    Error as PlaywrightError,
)

from crawler.config import USER_AGENT
from crawler.errors import BrowserInitError, NetworkError

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Configuration
# ------------------------------------------------------------------

@dataclass
class BrowserConfig:
    """Browser client configuration."""

    enabled: bool = True
    browser_type: str = "chromium"  # chromium | firefox | webkit
    headless: bool = True
    max_concurrent_pages: int = 3
    timeout_ms: int = 30000
    navigation_timeout_ms: int = 30000
    settle_ms: int = 2000  # fixed wait after navigation
    selector_timeout_ms: int = 10000
    user_agent: str = USER_AGENT
    locale: str = "zh-CN"
    launch_args: List[str] = field(default_factory=lambda: [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
        "--disable-blink-features=AutomationControlled",
        "--disable-extensions",
        "--disable-background-timer-throttling",
        "--disable-backgrounding-occluded-windows",
        "--disable-renderer-backgrounding",
    ])

    # Resource blocking
    block_images: bool = True
    block_fonts: bool = True
    block_media: bool = True

    @classmethod
    def from_env(cls) -> BrowserConfig:
        """Load configuration from environment variables."""
        return cls(
            enabled=os.getenv("PLAYWRIGHT_ENABLED", "true").lower() == "true",
            browser_type=os.getenv("PLAYWRIGHT_BROWSER", "chromium"),
            headless=os.getenv("PLAYWRIGHT_HEADLESS", "true").lower() == "true",
            max_concurrent_pages=int(os.getenv("PLAYWRIGHT_MAX_PAGES", "3")),
            timeout_ms=int(os.getenv("PLAYWRIGHT_TIMEOUT", "30000")),
        )


# ------------------------------------------------------------------
# Data models
# ------------------------------------------------------------------

@dataclass
class RenderedPage:
    """Result of fetching a rendered page."""

    url: str  # final URL after navigation
    content: str  # HTML content
    status_code: int  # 0 when the browser saw no main response
    load_time_ms: float


# ------------------------------------------------------------------
# Anti-detection
# ------------------------------------------------------------------

ANTI_DETECTION_SCRIPT = """
Object.defineProperty(window.navigator, 'webdriver', {
  get: () => undefined,
});
window.chrome = { runtime: {} };
if (window.navigator.permissions && window.navigator.permissions.query) {
  const originalQuery = window.navigator.permissions.query;
  window.navigator.permissions.query = function (parameters) {
    if (parameters && parameters.name === 'notifications') {
      return Promise.resolve({ state: window.Notification.permission });
    }
    return originalQuery.call(this, parameters);
  };
}
"""

RENDER_HEADERS: Dict[str, str] = {
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


# ------------------------------------------------------------------
# Browser Pool: explicitly owned shared instance
# ------------------------------------------------------------------

class BrowserPool:
    """
    Owns one shared browser process.

    The browser is launched on the first ``acquire`` and stays up until
    ``shutdown``; the owner (application root) must call ``shutdown`` so no
    orphaned browser processes survive the process. Pages are
    request-scoped: ``open_page`` always closes the page and its context.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig.from_env()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._contexts: List[BrowserContext] = []
        self._launch_lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_pages)

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    async def acquire(self) -> Browser:
        """Return the shared browser, launching it on first use."""
        if not self.config.enabled:
            raise BrowserInitError("browser rendering is disabled (PLAYWRIGHT_ENABLED=false)")

        async with self._launch_lock:
            if self._browser is not None:
                return self._browser
            try:
                self._playwright = await async_playwright().start()

                if self.config.browser_type == "firefox":
                    browser_type = self._playwright.firefox
                elif self.config.browser_type == "webkit":
                    browser_type = self._playwright.webkit
                else:
                    browser_type = self._playwright.chromium

                self._browser = await browser_type.launch(
                    headless=self.config.headless,
                    args=self.config.launch_args,
                )
            except Exception as e:
                await self._stop_playwright()
                raise BrowserInitError(str(e)) from e

            logger.info("Launched shared %s browser", self.config.browser_type)
            return self._browser

    async def release(self, page: Page, context: BrowserContext):
        """Close a request-scoped page and its context."""
        try:
            await page.close()
        finally:
            await context.close()
            if context in self._contexts:
                self._contexts.remove(context)

    @asynccontextmanager
    async def open_page(
        self,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> AsyncIterator[Page]:
        """Open a fresh page; it is released on success and on failure."""
        browser = await self.acquire()

        async with self._semaphore:
            context = await browser.new_context(
                user_agent=self.config.user_agent,
                locale=self.config.locale,
                viewport={"width": 1920, "height": 1080},
                extra_http_headers={**RENDER_HEADERS, **(extra_headers or {})},
            )
            context.set_default_timeout(self.config.timeout_ms)
            context.set_default_navigation_timeout(self.config.navigation_timeout_ms)
            await context.add_init_script(ANTI_DETECTION_SCRIPT)

            self._contexts.append(context)
            page = await context.new_page()

            try:
                yield page
            finally:
                await self.release(page, context)

    async def shutdown(self):
        """Close every context, the browser and Playwright."""
        for ctx in list(self._contexts):
            try:
                await ctx.close()
            except PlaywrightError as e:
                logger.debug("Context close failed during shutdown: %s", e)
        self._contexts.clear()

        if self._browser:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logger.warning("Browser close failed: %s", e)
            self._browser = None
            logger.info("Shared browser shut down")
        await self._stop_playwright()

    async def _stop_playwright(self):
        if self._playwright:
            try:
                await self._playwright.stop()
            except PlaywrightError as e:
                logger.debug("Playwright stop failed: %s", e)
            self._playwright = None


# ------------------------------------------------------------------
# Resource blocking
# ------------------------------------------------------------------

async def _block_resources(route: Route, request: Request, config: BrowserConfig):
    """Route handler to block unwanted resources."""
    resource_type = request.resource_type

    if config.block_images and resource_type == "image":
        await route.abort()
        return
    if config.block_fonts and resource_type == "font":
        await route.abort()
        return
    if config.block_media and resource_type == "media":
        await route.abort()
        return

    await route.continue_()


# ------------------------------------------------------------------
# Main API functions
# ------------------------------------------------------------------

async def fetch_rendered(
    pool: BrowserPool,
    url: str,
    *,
    wait_for: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout_ms: Optional[int] = None,
    selector_optional: bool = False,
) -> RenderedPage:
    """
    Fetch a page with browser rendering.

    Args:
        pool: Shared browser handle (launched lazily)
        url: URL to fetch
        wait_for: CSS selector to wait for (bounded by selector_timeout_ms)
        headers: Extra request headers
        timeout_ms: Override navigation timeout
        selector_optional: Keep the page when ``wait_for`` never appears

    Returns:
        RenderedPage with the fully rendered HTML

    Raises:
        BrowserInitError: If the browser cannot be launched
        NetworkError: If navigation fails, or the selector wait fails and
            ``selector_optional`` is not set
    """
    cfg = pool.config
    start_time = time.time()

    async with pool.open_page(extra_headers=headers) as page:
        await page.route("**/*", lambda route, request: _block_resources(route, request, cfg))

        try:
            response = await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=timeout_ms or cfg.navigation_timeout_ms,
            )
        except PlaywrightError as e:
            raise NetworkError(url, str(e)) from e

        # Network mostly idle (best effort, don't fail if timeout)
        try:
            await page.wait_for_load_state("networkidle", timeout=5000)
        except PlaywrightError:
            logger.debug("networkidle not reached for %s", url)

        await page.wait_for_timeout(cfg.settle_ms)

        if wait_for:
            try:
                await page.wait_for_selector(wait_for, timeout=cfg.selector_timeout_ms)
            except PlaywrightError as e:
                if not selector_optional:
                    raise NetworkError(url, f"selector {wait_for!r} never appeared: {e}") from e
                logger.warning("Selector %r never appeared on %s, keeping page as loaded", wait_for, url)

        content = await page.content()
        status_code = response.status if response else 0

        return RenderedPage(
            url=page.url,
            content=content,
            status_code=status_code,
            load_time_ms=(time.time() - start_time) * 1000,
        )


async def observe_navigation(
    pool: BrowserPool,
    url: str,
    *,
    timeout_ms: int = 10000,
    is_intermediate: Optional[Callable[[str], bool]] = None,
) -> str:
    """
    Load ``url`` and report where the browser ends up.

    Watches every request the page issues and the final page URL; the last
    http(s) URL that differs from ``url`` and is not ``is_intermediate``
    wins. Returns ``url`` itself when nothing better was observed.
    """
    is_intermediate = is_intermediate or (lambda candidate: False)
    observed: List[str] = []

    def on_request(request: Request):
        if request.is_navigation_request():
            observed.append(request.url)

    async with pool.open_page() as page:
        page.on("request", on_request)
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except PlaywrightError as e:
            # Navigation may time out after the redirect already happened
            logger.debug("Navigation to %s did not complete: %s", url, e)
        observed.append(page.url)

    for candidate in reversed(observed):
        if candidate != url and candidate.startswith("http") and not is_intermediate(candidate):
            return candidate
    return url
