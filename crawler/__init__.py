"""
Crawler package: fetch, resolve, classify and extract single pages.
"""

from .config import CrawlerConfig, CrawlOptions
from .errors import (
    CrawlerError,
    InvalidUrlError,
    NetworkError,
    HttpError,
    BrowserInitError,
)
from .fetch import Fetcher
from .redirect import RedirectResolver
from .site_classifier import SiteClassifier
from .rules import ExtractionRule, RuleOptions, RuleRegistry
from .extractor import RuleExtractor
from .page_crawler import PageCrawler, RetryPolicy

__all__ = [
    "CrawlerConfig",
    "CrawlOptions",
    "CrawlerError",
    "InvalidUrlError",
    "NetworkError",
    "HttpError",
    "BrowserInitError",
    "Fetcher",
    "RedirectResolver",
    "SiteClassifier",
    "ExtractionRule",
    "RuleOptions",
    "RuleRegistry",
    "RuleExtractor",
    "PageCrawler",
    "RetryPolicy",
]
