"""
Redirect resolver for search-engine click wrappers.

Search engines hand out their own tracking URLs (``baidu.com/link?url=``,
``bing.com/ck/a?u=``, ``duckduckgo.com/l/?uddg=``). The real destination is
either embedded in a query parameter or only reachable by following the
redirect in a browser.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Iterable, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlparse

import browser_client

logger = logging.getLogger(__name__)


# Path prefixes used by click-redirect endpoints
WRAPPER_PATHS: Tuple[str, ...] = (
    "/link",
    "/url",
    "/ck/a",
    "/a/clck",
    "/l/",
    "/redirect",
    "/jump",
)

# Hosts whose opaque wrappers are worth following in the browser
ENGINE_HOSTS: Tuple[str, ...] = (
    "baidu.com",
    "bing.com",
    "duckduckgo.com",
    "google.com",
    "so.com",
    "sogou.com",
)

# Query parameters that may carry the destination, in priority order
DESTINATION_PARAMS: Tuple[str, ...] = ("url", "u", "uddg", "target", "to", "q")


def is_absolute_http(url: Optional[str]) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _decode_bing_param(value: str) -> Optional[str]:
    """Bing's ``u`` parameter is ``a1`` + unpadded urlsafe base64."""
    if not value.startswith("a1"):
        return None
    payload = value[2:]
    payload += "=" * (-len(payload) % 4)
    try:
        decoded = base64.urlsafe_b64decode(payload).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    return decoded if is_absolute_http(decoded) else None


def decode_destination(url: str, params: Iterable[str] = DESTINATION_PARAMS) -> Optional[str]:
    """
    Extract an absolute destination URL from a wrapper's query string.

    Returns None when no parameter decodes to an absolute http(s) URL.
    """
    query = parse_qs(urlparse(url).query)
    for name in params:
        for value in query.get(name, []):
            candidate = value
            # Values are sometimes encoded twice
            for _ in range(2):
                if is_absolute_http(candidate):
                    return candidate
                bing = _decode_bing_param(candidate)
                if bing:
                    return bing
                candidate = unquote(candidate)
    return None


class RedirectResolver:
    """
    Resolve wrapper URLs to their true destination.

    Strategy:
      1. Decode a destination query parameter (no network)
      2. Follow the redirect in the shared browser (bounded wait), only
         for search engine hosts
      3. Give up and return the input unchanged

    ``resolve`` never raises.
    """

    def __init__(
        self,
        browser: Optional[browser_client.BrowserPool] = None,
        timeout_ms: int = 10000,
        wrapper_paths: Tuple[str, ...] = WRAPPER_PATHS,
        engine_hosts: Tuple[str, ...] = ENGINE_HOSTS,
    ):
        self._browser = browser
        self._timeout_ms = timeout_ms
        self._wrapper_paths = wrapper_paths
        self._engine_hosts = engine_hosts

    def is_wrapper(self, url: str) -> bool:
        """True for click-redirect URLs that carry a query string."""
        parsed = urlparse(url)
        if not parsed.query:
            return False
        path = parsed.path.lower().rstrip("/")
        for prefix in self._wrapper_paths:
            prefix = prefix.rstrip("/")
            if path == prefix or path.startswith(prefix + "/"):
                return True
        return False

    def is_engine_host(self, url: str) -> bool:
        host = (urlparse(url).hostname or "").lower()
        return any(host == h or host.endswith("." + h) for h in self._engine_hosts)

    async def resolve(self, url: str) -> str:
        if not self.is_wrapper(url):
            return url

        decoded = decode_destination(url)
        if decoded:
            logger.info("Resolved redirect from parameter: %s -> %s", url, decoded)
            return decoded

        if not self.is_engine_host(url):
            logger.debug("Not following opaque wrapper on a non-engine host: %s", url)
            return url

        if self._browser is None or not self._browser.enabled:
            logger.debug("No browser available to follow redirect %s", url)
            return url

        try:
            final_url = await browser_client.observe_navigation(
                self._browser,
                url,
                timeout_ms=self._timeout_ms,
                is_intermediate=self.is_wrapper,
            )
        except Exception as e:
            logger.warning("Could not follow redirect %s: %s", url, e)
            return url

        if final_url != url and not self.is_wrapper(final_url):
            logger.info("Resolved redirect via browser: %s -> %s", url, final_url)
            return final_url

        logger.info("Redirect left unresolved: %s", url)
        return url
