"""
Exception hierarchy for the fetch and crawl layers.

Only fetch-level problems are raised. Empty extractions and unresolved
redirect wrappers are degraded results, not errors.
"""

from typing import Optional


class CrawlerError(Exception):
    """Base class for crawler failures."""

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url


class InvalidUrlError(CrawlerError, ValueError):
    """URL is not an absolute http(s) URL. Raised before any network activity."""

    def __init__(self, url: str):
        super().__init__(url, f"Invalid URL: {url!r}")


class NetworkError(CrawlerError):
    """No response received (DNS, refused/reset connection, timeout)."""

    def __init__(self, url: str, reason: str):
        super().__init__(url, f"No response from {url}: {reason}")
        self.reason = reason


class HttpError(CrawlerError):
    """Response received with a non-2xx status."""

    def __init__(self, url: str, status: int, reason: Optional[str] = None):
        message = f"HTTP {status} from {url}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(url, message)
        self.status = status

    @property
    def likely_blocked(self) -> bool:
        return self.status == 403

    @property
    def rate_limited(self) -> bool:
        return self.status == 429

    def hint(self) -> str:
        """Diagnostic hint for logs."""
        if self.likely_blocked:
            return "access denied, likely blocked by anti-bot protection"
        if self.rate_limited:
            return "too many requests, likely rate-limited"
        return ""


class BrowserInitError(CrawlerError):
    """Shared headless browser failed to launch."""

    def __init__(self, reason: str):
        super().__init__("", f"Browser failed to launch: {reason}")
        self.reason = reason
