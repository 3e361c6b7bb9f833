"""
Models package initialization.
"""

from .enums import SiteType, Platform, FetchMethod
from .schema import (
    Metrics,
    CrawlResult,
    CrawlResponse,
    SearchResponse,
    make_result_id,
)

__all__ = [
    "SiteType",
    "Platform",
    "FetchMethod",
    "Metrics",
    "CrawlResult",
    "CrawlResponse",
    "SearchResponse",
    "make_result_id",
]
