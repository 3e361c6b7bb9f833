"""
Platform Fan-out: one keyword across the web and social platforms.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence

from models.enums import Platform
from models.schema import CrawlResult

from .orchestrator import WebSearchOptions, WebSearchOrchestrator
from .platforms import PlatformSearcher, get_platform_searcher

logger = logging.getLogger(__name__)


class PlatformFanout:
    """
    Merge results from the web search and per-platform searchers.

    Web results come first, then each platform in request order. The
    caller's page window is applied once, to the concatenated list.
    """

    def __init__(
        self,
        orchestrator: WebSearchOrchestrator,
        web_options: Optional[WebSearchOptions] = None,
        searcher_factory: Callable[[str], PlatformSearcher] = get_platform_searcher,
    ):
        self._orchestrator = orchestrator
        self._web_options = web_options or WebSearchOptions()
        self._searcher_factory = searcher_factory
        self._searchers: Dict[str, PlatformSearcher] = {}

    def _searcher(self, platform: str) -> PlatformSearcher:
        if platform not in self._searchers:
            self._searchers[platform] = self._searcher_factory(platform)
        return self._searchers[platform]

    async def search_content(
        self,
        keyword: str,
        platforms: Optional[Sequence[str]] = None,
        limit: int = 10,
        skip: int = 0,
    ) -> List[CrawlResult]:
        """
        Search ``keyword`` on every requested platform.

        Args:
            keyword: Query text
            platforms: Platform names; ``"web"`` means the multi-engine web search
            limit: Page size
            skip: Number of leading results to drop

        Returns:
            At most ``limit`` results: the ``[skip, skip + limit)`` window of
            the concatenated per-platform results
        """
        platforms = list(platforms or [Platform.WEB.value])
        window = limit + skip
        results: List[CrawlResult] = []

        if Platform.WEB.value in platforms:
            options = replace(self._web_options, max_results=window)
            try:
                web_results = await self._orchestrator.search_web(keyword, options)
            except Exception as e:
                logger.error("Web search failed for %r: %s", keyword, e)
                web_results = []
            logger.info("Web search returned %d results for %r", len(web_results), keyword)
            results.extend(web_results)

            if len(platforms) == 1:
                return results[skip:skip + limit]

        others = [p for p in platforms if p != Platform.WEB.value]
        if not others:
            return results[skip:skip + limit]

        limit_per_platform = math.ceil(window / len(others))
        for platform in others:
            try:
                searcher = self._searcher(platform)
                platform_results = await searcher.search(keyword, limit_per_platform)
            except Exception as e:
                logger.warning("Platform %s failed for %r: %s", platform, keyword, e)
                continue
            results.extend(platform_results)

        page = results[skip:skip + limit]
        logger.info(
            "Fan-out for %r: %d results collected, returning %d", keyword, len(results), len(page)
        )
        return page
