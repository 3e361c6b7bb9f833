"""
Web Search Orchestrator.

Ties together SearchEngineAdapter, PageCrawler and ResultRanker into a
single workflow that:

  1. Queries every requested engine (sequentially, failures isolated)
  2. Optionally crawls each hit, falling back to the search snippet
  3. Collapses duplicate URLs
  4. Ranks by title relevance and truncates
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, List, Optional

from crawler.config import CrawlOptions
from crawler.page_crawler import PageCrawler
from models.enums import FetchMethod, Platform, SiteType
from models.schema import CrawlResult

from .engines import SearchEngineAdapter, SearchResult
from .ranking import ResultRanker

logger = logging.getLogger(__name__)


@dataclass
class WebSearchOptions:
    """Options for one multi-engine web search."""

    max_results: int = 20
    engines: List[str] = field(default_factory=lambda: ["bing"])
    crawl_results: bool = True
    use_rendered_fetch: bool = False
    crawl_options: CrawlOptions = field(default_factory=CrawlOptions)


def result_from_hit(hit: SearchResult) -> CrawlResult:
    """Minimal CrawlResult built from a search hit alone."""
    return CrawlResult.for_url(
        hit.url,
        title=hit.title,
        content=hit.snippet,
        platform=Platform.WEB.value,
        site_type=SiteType.NEWS,
        images=[],
        metadata={"fetchMethod": FetchMethod.SEARCH.value, "engine": hit.engine},
    )


class WebSearchOrchestrator:
    """
    Main orchestrator for keyword web search.

    Usage:
        orchestrator = WebSearchOrchestrator(adapter, crawler)
        results = await orchestrator.search_web(
            "人工智能", WebSearchOptions(engines=["bing", "baidu"], max_results=10)
        )
    """

    def __init__(
        self,
        adapter: SearchEngineAdapter,
        crawler: PageCrawler,
        ranker: Optional[ResultRanker] = None,
        request_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._adapter = adapter
        self._crawler = crawler
        self._ranker = ranker or ResultRanker()
        self._request_delay = request_delay
        self._sleep = sleep

    async def search_web(
        self,
        keyword: str,
        options: Optional[WebSearchOptions] = None,
        on_status: Optional[Callable[[str], None]] = None,  # progress callback
    ) -> List[CrawlResult]:
        """
        Search the web for ``keyword``.

        Returns at most ``options.max_results`` results, best first. Engine
        and crawl failures reduce the result count; they never raise.

        Raises:
            ValueError: If ``keyword`` is empty
        """
        if not keyword or not keyword.strip():
            raise ValueError("Search keyword must not be empty")
        options = options or WebSearchOptions()
        engines = options.engines or ["bing"]
        per_engine = math.ceil(options.max_results / len(engines))

        logger.info(
            "Web search %r: engines=%s, per engine=%d, crawl=%s",
            keyword, engines, per_engine, options.crawl_results,
        )

        collected: List[CrawlResult] = []
        for engine in engines:
            if on_status:
                on_status(f"Searching {engine}…")
            try:
                hits = await self._adapter.search(
                    keyword, engine, per_engine, use_rendered_fetch=options.use_rendered_fetch
                )
            except Exception as e:
                logger.error("Engine %s failed for %r: %s", engine, keyword, e)
                continue

            logger.info("Engine %s returned %d hits", engine, len(hits))
            if not options.crawl_results:
                collected.extend(result_from_hit(hit) for hit in hits)
                continue

            for hit in hits:
                if on_status:
                    on_status(f"Crawling: {hit.title[:50]}…")
                collected.append(await self._crawl_hit(hit, options))

        unique = self._ranker.dedupe(collected)
        ranked = self._ranker.rank(unique, keyword)[: options.max_results]
        logger.info("Web search %r finished with %d results", keyword, len(ranked))
        return ranked

    async def _crawl_hit(self, hit: SearchResult, options: WebSearchOptions) -> CrawlResult:
        """Crawl one hit; the hit itself stands in when crawling fails."""
        await self._sleep(self._request_delay)

        crawl_options = options.crawl_options
        if options.use_rendered_fetch and not crawl_options.use_rendered_fetch:
            crawl_options = replace(crawl_options, use_rendered_fetch=True)

        try:
            crawled = await self._crawler.crawl(hit.url, crawl_options)
        except Exception as e:
            logger.warning("Crawl failed for %s, keeping search hit: %s", hit.url, e)
            return result_from_hit(hit)

        if crawled is None:
            logger.warning("No crawl result for %s, keeping search hit", hit.url)
            return result_from_hit(hit)

        return crawled.model_copy(
            update={
                "title": crawled.title or hit.title,
                "content": crawled.content or hit.snippet,
            }
        )
