"""
Page Crawler: fetch one URL and turn it into a CrawlResult.

Pipeline per URL:
  validate -> resolve redirect wrapper -> classify -> pick rule
  -> fetch (light or rendered) -> extract
with a bounded retry loop around fetch + extract. A URL that keeps failing
yields None; only malformed input raises.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, List, Optional

from models.enums import FetchMethod, Platform
from models.schema import CrawlResult
from .config import CrawlerConfig, CrawlOptions
from .errors import HttpError, InvalidUrlError
from .extractor import RuleExtractor
from .fetch import Fetcher
from .redirect import RedirectResolver, is_absolute_http
from .rules import ExtractionRule, RuleRegistry
from .site_classifier import SiteClassifier

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class RetryPolicy:
    """Attempt budget and delay schedule."""

    max_attempts: int = 3
    delay: float = 2.0
    backoff: float = 1.0

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after failed ``attempt`` (1-based)."""
        return self.delay * (self.backoff ** (attempt - 1))


class PageCrawler:
    """
    Crawls single pages with rule-based extraction.

    All collaborators are injected; ``sleep`` exists so tests can run the
    retry loop without waiting.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        registry: RuleRegistry,
        resolver: Optional[RedirectResolver] = None,
        classifier: Optional[SiteClassifier] = None,
        extractor: Optional[RuleExtractor] = None,
        config: Optional[CrawlerConfig] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.fetcher = fetcher
        self.registry = registry
        self.config = config or fetcher.config
        self.resolver = resolver or RedirectResolver(
            browser=fetcher.browser, timeout_ms=self.config.redirect_timeout_ms
        )
        self.classifier = classifier or SiteClassifier()
        self.extractor = extractor or RuleExtractor()
        self._sleep = sleep

    def _retry_policy(self, options: CrawlOptions, rule: ExtractionRule) -> RetryPolicy:
        attempts = options.max_retries or rule.options.retries or self.config.max_retries
        return RetryPolicy(
            max_attempts=max(1, attempts),
            delay=self.config.retry_delay,
            backoff=self.config.retry_backoff,
        )

    @staticmethod
    def _merge_options(options: CrawlOptions, rule: ExtractionRule) -> CrawlOptions:
        """Rule options fill in what the caller left unset."""
        return replace(
            options,
            use_rendered_fetch=options.use_rendered_fetch or rule.options.use_rendered_fetch,
            wait_for_selector=options.wait_for_selector or rule.options.wait_for_selector,
            headers={**rule.options.headers, **options.headers},
        )

    async def crawl(self, url: str, options: Optional[CrawlOptions] = None) -> Optional[CrawlResult]:
        """
        Crawl one URL.

        Args:
            url: Absolute http(s) URL (search-engine wrappers allowed)
            options: Per-call crawl options

        Returns:
            CrawlResult, or None once every attempt failed

        Raises:
            InvalidUrlError: If ``url`` is not an absolute http(s) URL
        """
        if not is_absolute_http(url):
            raise InvalidUrlError(url)
        options = options or CrawlOptions()

        resolved_url = await self.resolver.resolve(url)
        site_type = self.classifier.classify(resolved_url)
        rule = self.registry.match_url(resolved_url) or self.registry.rule_for(site_type)
        effective = self._merge_options(options, rule)
        policy = self._retry_policy(options, rule)

        logger.info(
            "Crawling %s (site type: %s, rule: %s, rendered: %s)",
            resolved_url, site_type.value, rule.name, effective.use_rendered_fetch,
        )

        for attempt in range(1, policy.max_attempts + 1):
            try:
                if rule.options.delay_ms:
                    await self._sleep(rule.options.delay_ms / 1000)

                if effective.use_rendered_fetch:
                    html = await self.fetcher.fetch_rendered(
                        resolved_url,
                        wait_for_selector=effective.wait_for_selector,
                        headers=effective.headers,
                        timeout_ms=effective.timeout_ms,
                    )
                    method = FetchMethod.PLAYWRIGHT if self.fetcher.rendered_available else FetchMethod.HTTP
                else:
                    html = await self.fetcher.fetch_light(
                        resolved_url, headers=effective.headers, timeout_ms=effective.timeout_ms
                    )
                    method = FetchMethod.HTTP

                fields = self.extractor.extract(
                    html, resolved_url, rule, exclude_selectors=effective.exclude_selectors
                )
            except Exception as e:
                if isinstance(e, HttpError) and e.hint():
                    logger.warning(
                        "Crawl attempt %d/%d failed for %s: %s (%s)",
                        attempt, policy.max_attempts, resolved_url, e, e.hint(),
                    )
                else:
                    logger.warning(
                        "Crawl attempt %d/%d failed for %s: %s",
                        attempt, policy.max_attempts, resolved_url, e,
                    )
                if attempt < policy.max_attempts:
                    await self._sleep(policy.delay_after(attempt))
                continue

            if not fields.content:
                logger.warning("No content extracted from %s", resolved_url)

            metadata = dict(fields.extra)
            metadata["fetchMethod"] = method.value
            metadata["rule"] = rule.name
            if resolved_url != url:
                metadata["originalUrl"] = url

            logger.info("Crawled %s", resolved_url)
            return CrawlResult.for_url(
                resolved_url,
                title=fields.title,
                content=fields.content,
                author=fields.author,
                publish_time=fields.publish_time,
                platform=Platform.WEB.value,
                site_type=site_type,
                metrics=fields.metrics,
                images=fields.images,
                metadata=metadata,
            )

        logger.error("Giving up on %s after %d attempts", resolved_url, policy.max_attempts)
        return None

    async def batch_crawl(
        self, urls: List[str], options: Optional[CrawlOptions] = None
    ) -> List[CrawlResult]:
        """Crawl URLs one after another; failed URLs are skipped."""
        results: List[CrawlResult] = []
        for i, url in enumerate(urls):
            if i > 0:
                await self._sleep(self.config.request_delay)
            try:
                result = await self.crawl(url, options)
            except Exception as e:
                logger.error("Skipping %s: %s", url, e)
                continue
            if result is not None:
                results.append(result)

        logger.info("Batch crawl finished: %d/%d succeeded", len(results), len(urls))
        return results
