"""
Crawler configuration and per-call options.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional


# ------------------------------------------------------------------
# Request headers
# ------------------------------------------------------------------

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_HEADERS: Dict[str, str] = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    "Accept-Encoding": "gzip, deflate",
    "DNT": "1",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}

# Extra headers sent when loading a search engine result page
SEARCH_PAGE_HEADERS: Dict[str, str] = {
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
}


# ------------------------------------------------------------------
# Process-wide configuration
# ------------------------------------------------------------------

@dataclass
class CrawlerConfig:
    """Crawler defaults shared by every request."""

    timeout_ms: int = 30000
    max_retries: int = 3
    retry_delay: float = 2.0  # seconds between attempts
    retry_backoff: float = 1.0  # multiplier per attempt, 1.0 = fixed delay
    request_delay: float = 1.0  # seconds between sequential requests
    redirect_timeout_ms: int = 10000
    default_engines: List[str] = field(default_factory=lambda: ["bing"])

    @classmethod
    def from_env(cls) -> CrawlerConfig:
        """Load configuration from environment variables."""
        engines = os.getenv("CRAWLER_ENGINES", "bing")
        return cls(
            timeout_ms=int(os.getenv("CRAWLER_TIMEOUT_MS", "30000")),
            max_retries=int(os.getenv("CRAWLER_MAX_RETRIES", "3")),
            retry_delay=float(os.getenv("CRAWLER_RETRY_DELAY", "2.0")),
            retry_backoff=float(os.getenv("CRAWLER_RETRY_BACKOFF", "1.0")),
            request_delay=float(os.getenv("CRAWLER_REQUEST_DELAY", "1.0")),
            redirect_timeout_ms=int(os.getenv("CRAWLER_REDIRECT_TIMEOUT_MS", "10000")),
            default_engines=[e.strip() for e in engines.split(",") if e.strip()],
        )


# ------------------------------------------------------------------
# Per-call options
# ------------------------------------------------------------------

@dataclass
class CrawlOptions:
    """Options for crawling a single URL."""

    use_rendered_fetch: bool = False
    wait_for_selector: Optional[str] = None
    exclude_selectors: List[str] = field(default_factory=list)
    headers: Dict[str, str] = field(default_factory=dict)
    timeout_ms: Optional[int] = None  # falls back to CrawlerConfig.timeout_ms
    max_retries: Optional[int] = None  # falls back to CrawlerConfig.max_retries
