"""
Search engine adapters: query a public result page and parse the hits.

Supports:
  - Bing (default)
  - Baidu
  - DuckDuckGo (HTML endpoint)

No API keys: the adapter loads the same result page a browser would and
parses it with engine-specific selectors, falling back to a secondary
selector when the primary one matches nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urlencode, urljoin

from bs4 import BeautifulSoup

from crawler.config import SEARCH_PAGE_HEADERS
from crawler.fetch import Fetcher
from crawler.redirect import decode_destination, is_absolute_http

logger = logging.getLogger(__name__)


# Result pages shorter than this are usually a captcha or consent wall
MIN_RESULT_PAGE_LENGTH = 1000


# ------------------------------------------------------------------
# Data classes
# ------------------------------------------------------------------

@dataclass
class SearchResult:
    """Single search hit."""

    title: str
    url: str
    snippet: str
    engine: str


@dataclass
class EngineConfig:
    """Where an engine lives and how to read its result page."""

    name: str
    search_url: str
    query_param: str
    count_param: Optional[str]
    result_selector: str
    title_selector: str
    link_selector: str
    snippet_selector: str
    fallback_selector: Optional[str] = None
    extra_params: Dict[str, str] = field(default_factory=dict)
    # Inline click-tracking wrappers: host fragment -> path prefixes
    tracking_paths: Dict[str, List[str]] = field(default_factory=dict)


class UnknownEngineError(ValueError):
    """Requested engine name is not configured."""

    def __init__(self, engine: str):
        super().__init__(f"Unsupported search engine: {engine!r} (known: {', '.join(ENGINES)})")
        self.engine = engine


ENGINES: Dict[str, EngineConfig] = {
    "bing": EngineConfig(
        name="Bing",
        search_url="https://www.bing.com/search",
        query_param="q",
        count_param="count",
        result_selector=".b_algo",
        title_selector="h2 a",
        link_selector="h2 a",
        snippet_selector=".b_caption p",
        fallback_selector=".b_result",
        extra_params={"setlang": "zh-CN"},
        tracking_paths={"bing.com": ["/ck/a", "/a/clck"]},
    ),
    "baidu": EngineConfig(
        name="Baidu",
        search_url="https://www.baidu.com/s",
        query_param="wd",
        count_param="rn",
        result_selector="#content_left .c-container",
        title_selector="h3 a",
        link_selector="h3 a",
        snippet_selector=".c-abstract",
        fallback_selector="#content_left .result",
    ),
    "duckduckgo": EngineConfig(
        name="DuckDuckGo",
        search_url="https://html.duckduckgo.com/html/",
        query_param="q",
        count_param=None,
        result_selector=".result",
        title_selector="a.result__a",
        link_selector="a.result__a",
        snippet_selector=".result__snippet",
        fallback_selector=".web-result",
        tracking_paths={"duckduckgo.com": ["/l/"]},
    ),
}

# Generic selectors used inside fallback result items
FALLBACK_LINK_SELECTOR = "h2 a, h3 a, a"
FALLBACK_SNIPPET_SELECTOR = "p, .snippet, .c-abstract"


def get_engine_config(engine: str) -> EngineConfig:
    """
    Raises:
        UnknownEngineError: If the engine is not configured
    """
    config = ENGINES.get(engine.lower())
    if config is None:
        raise UnknownEngineError(engine)
    return config


# ------------------------------------------------------------------
# Adapter
# ------------------------------------------------------------------

class SearchEngineAdapter:
    """Runs keyword searches against the configured public engines."""

    def __init__(self, fetcher: Fetcher, engines: Optional[Dict[str, EngineConfig]] = None):
        self.fetcher = fetcher
        self._engines = engines or ENGINES

    def _config(self, engine: str) -> EngineConfig:
        config = self._engines.get(engine.lower())
        if config is None:
            raise UnknownEngineError(engine)
        return config

    def build_url(self, keyword: str, engine: str, max_results: int = 10) -> str:
        config = self._config(engine)
        params = {config.query_param: keyword}
        if config.count_param:
            params[config.count_param] = str(max_results)
        params.update(config.extra_params)
        return f"{config.search_url}?{urlencode(params)}"

    async def search(
        self,
        keyword: str,
        engine: str = "bing",
        max_results: int = 10,
        use_rendered_fetch: bool = False,
    ) -> List[SearchResult]:
        """
        Search one engine.

        Args:
            keyword: Query text
            engine: Engine name (bing | baidu | duckduckgo)
            max_results: Upper bound on returned hits
            use_rendered_fetch: Load the result page in the browser

        Returns:
            Parsed hits; empty when the page could not be fetched or had
            no recognisable results

        Raises:
            UnknownEngineError: If ``engine`` is not configured
        """
        config = self._config(engine)
        search_url = self.build_url(keyword, engine, max_results)
        logger.info("Searching %s: %s (rendered: %s)", config.name, search_url, use_rendered_fetch)

        try:
            if use_rendered_fetch:
                # A missing primary selector still leaves the fallback selector to try
                html = await self.fetcher.fetch_rendered(
                    search_url,
                    wait_for_selector=config.result_selector,
                    selector_optional=True,
                )
            else:
                html = await self.fetcher.fetch_light(search_url, headers=SEARCH_PAGE_HEADERS)
        except Exception as e:
            logger.warning("%s search failed for %r: %s", config.name, keyword, e)
            return []

        if len(html) < MIN_RESULT_PAGE_LENGTH:
            logger.warning(
                "%s returned a suspiciously short page (%d bytes), possibly a captcha",
                config.name, len(html),
            )

        results = self.parse_results(html, config, search_url, max_results)
        logger.info("%s returned %d results for %r", config.name, len(results), keyword)
        return results

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse_results(
        self,
        html: str,
        config: EngineConfig,
        page_url: str,
        max_results: int,
    ) -> List[SearchResult]:
        soup = BeautifulSoup(html, "html.parser")

        items = soup.select(config.result_selector)
        link_selector, title_selector = config.link_selector, config.title_selector
        snippet_selector = config.snippet_selector

        if not items and config.fallback_selector:
            logger.warning(
                "%s: no matches for %r, trying fallback %r",
                config.name, config.result_selector, config.fallback_selector,
            )
            items = soup.select(config.fallback_selector)
            link_selector = title_selector = FALLBACK_LINK_SELECTOR
            snippet_selector = FALLBACK_SNIPPET_SELECTOR

        results: List[SearchResult] = []
        for item in items:
            if len(results) >= max_results:
                break

            title_el = item.select_one(title_selector)
            link_el = item.select_one(link_selector)
            snippet_el = item.select_one(snippet_selector)

            title = title_el.get_text(" ", strip=True) if title_el else ""
            href = (link_el.get("href") or "").strip() if link_el else ""
            snippet = snippet_el.get_text(" ", strip=True) if snippet_el else ""

            url = self._clean_url(href, page_url, config)
            if not url or not title:
                continue

            results.append(SearchResult(title=title, url=url, snippet=snippet, engine=config.name))

        return results

    def _clean_url(self, href: str, page_url: str, config: EngineConfig) -> Optional[str]:
        """Absolute http(s) URL with inline tracking wrappers decoded."""
        if not href:
            return None
        url = urljoin(page_url, href)
        if not is_absolute_http(url):
            return None

        for host, paths in config.tracking_paths.items():
            if host in url and any(p in url for p in paths):
                decoded = decode_destination(url)
                if decoded:
                    return decoded
                logger.debug("Could not decode tracking URL %s", url)
        return url
