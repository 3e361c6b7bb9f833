"""
Search Module: multi-engine web search, platform fan-out and the
service facade that wires them to the crawler.
"""

from .engines import SearchEngineAdapter, SearchResult, UnknownEngineError
from .ranking import ResultRanker
from .orchestrator import WebSearchOrchestrator, WebSearchOptions
from .platforms import PlatformSearcher, get_platform_searcher
from .fanout import PlatformFanout
from .service import ContentSearchService

__all__ = [
    "SearchEngineAdapter",
    "SearchResult",
    "UnknownEngineError",
    "ResultRanker",
    "WebSearchOrchestrator",
    "WebSearchOptions",
    "PlatformSearcher",
    "get_platform_searcher",
    "PlatformFanout",
    "ContentSearchService",
]
