"""
Content search service: the inbound API of the crawling core.

Builds every component once, exposes the four public operations and owns
the shared resources it created (browser, HTTP client).

Usage:
    async with ContentSearchService() as service:
        page = await service.search_content("人工智能", ["web", "zhihu"], page=1, limit=10)
        print(page.to_dict())
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

import browser_client
from crawler.config import CrawlerConfig, CrawlOptions
from crawler.fetch import Fetcher
from crawler.page_crawler import PageCrawler
from crawler.redirect import RedirectResolver
from crawler.rules import RuleRegistry
from models.enums import Platform
from models.schema import CrawlResponse, SearchResponse

from .engines import SearchEngineAdapter
from .fanout import PlatformFanout
from .orchestrator import WebSearchOptions, WebSearchOrchestrator
from .platforms import PlatformSearcher, get_platform_searcher

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ContentSearchService:
    """
    Application root for search and crawl requests.

    Resources passed in (``browser``, ``client``) stay owned by the
    caller; resources created here are closed by ``aclose``.
    """

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        browser_config: Optional[browser_client.BrowserConfig] = None,
        browser: Optional[browser_client.BrowserPool] = None,
        client: Optional[httpx.AsyncClient] = None,
        registry: Optional[RuleRegistry] = None,
        searcher_factory: Callable[[str], PlatformSearcher] = get_platform_searcher,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self.config = config or CrawlerConfig.from_env()

        self._owns_browser = browser is None
        self.browser = browser or browser_client.BrowserPool(browser_config)

        self.registry = registry or RuleRegistry.with_defaults()
        self.fetcher = Fetcher(self.config, browser=self.browser, client=client)
        self.crawler = PageCrawler(
            self.fetcher,
            self.registry,
            resolver=RedirectResolver(self.browser, timeout_ms=self.config.redirect_timeout_ms),
            config=self.config,
            sleep=sleep,
        )
        self.adapter = SearchEngineAdapter(self.fetcher)
        self.orchestrator = WebSearchOrchestrator(
            self.adapter,
            self.crawler,
            request_delay=self.config.request_delay,
            sleep=sleep,
        )
        self.fanout = PlatformFanout(
            self.orchestrator,
            web_options=WebSearchOptions(engines=list(self.config.default_engines)),
            searcher_factory=searcher_factory,
        )

    async def __aenter__(self) -> ContentSearchService:
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        """Release the HTTP client and shut down the browser if owned."""
        await self.fetcher.aclose()
        if self._owns_browser:
            await self.browser.shutdown()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def search_web(
        self, keyword: str, options: Optional[WebSearchOptions] = None
    ) -> List[Dict[str, Any]]:
        if options is None:
            options = WebSearchOptions(engines=list(self.config.default_engines))
        results = await self.orchestrator.search_web(keyword, options)
        return [r.to_dict() for r in results]

    async def crawl_url(self, url: str, options: Optional[CrawlOptions] = None) -> CrawlResponse:
        """Crawl one URL; failures are reported in the envelope."""
        try:
            result = await self.crawler.crawl(url, options)
        except Exception as e:
            logger.error("Crawl request failed for %s: %s", url, e)
            return CrawlResponse(success=False, url=url, error=str(e), timestamp=_timestamp())

        if result is None:
            return CrawlResponse(
                success=False,
                url=url,
                error="All crawl attempts failed",
                timestamp=_timestamp(),
            )
        return CrawlResponse(success=True, data=result, url=url, timestamp=_timestamp())

    async def batch_crawl(
        self, urls: List[str], options: Optional[CrawlOptions] = None
    ) -> List[CrawlResponse]:
        """Envelopes for the URLs that crawled successfully, in input order."""
        results = await self.crawler.batch_crawl(urls, options)
        return [
            CrawlResponse(success=True, data=r, url=r.url, timestamp=_timestamp())
            for r in results
        ]

    async def search_content(
        self,
        keyword: str,
        platforms: Optional[Sequence[str]] = None,
        page: int = 1,
        limit: int = 10,
    ) -> SearchResponse:
        """
        One page of results across platforms.

        Raises:
            ValueError: If ``page`` or ``limit`` is below 1
        """
        if page < 1 or limit < 1:
            raise ValueError(f"page and limit must be >= 1 (got page={page}, limit={limit})")

        sources = list(platforms or [Platform.WEB.value])
        skip = (page - 1) * limit
        started = time.time()

        results = await self.fanout.search_content(keyword, sources, limit=limit, skip=skip)

        logger.info(
            "search_content %r page %d: %d results in %.1fs",
            keyword, page, len(results), time.time() - started,
        )
        return SearchResponse(
            query=keyword,
            results=results,
            total=skip + len(results),
            sources=sources,
            search_time=int(time.time() * 1000),
        )
