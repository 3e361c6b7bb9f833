"""
PlatformSearcher ABC and per-platform implementations.

Supports:
  - Weibo (m.weibo.cn container API)
  - Douyin (aweme search API)
  - Xiaohongshu (burdock notes API)
  - Zhihu (search_v3 API)

These are unofficial endpoints and fail often. Any failure is logged at
WARNING and replaced by deterministic mock items for the same platform
and keyword, so callers always get records of the same shape.
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Type

import httpx
from dateutil import parser as date_parser

from models.enums import Platform, SiteType
from models.schema import CrawlResult, Metrics

logger = logging.getLogger(__name__)


PLATFORM_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso_time(value: Any) -> str:
    """
    Normalise a platform timestamp to ISO 8601.

    Accepts epoch seconds, epoch milliseconds or any string dateutil can
    parse. Returns "" for missing or unparseable values.
    """
    if value is None or value == "":
        return ""
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e12 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()
        except (OverflowError, OSError, ValueError):
            return ""
    try:
        return date_parser.parse(str(value)).isoformat()
    except (ValueError, OverflowError):
        return ""


# ------------------------------------------------------------------
# Abstract searcher
# ------------------------------------------------------------------

class PlatformSearcher(ABC):
    """Abstract platform search interface."""

    base_url: str = ""
    referer: str = ""

    # Mock item templates, formatted with keyword and index
    mock_title: str = ""
    mock_content: str = ""
    mock_author: str = ""
    mock_url: str = ""
    mock_interval_hours: float = 1.0
    mock_max_metrics: Dict[str, int] = {}

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        now: Callable[[], datetime] = _utcnow,
    ):
        self._client = client
        self._timeout = timeout
        self._now = now

    @property
    @abstractmethod
    def platform(self) -> Platform:
        ...

    @property
    def headers(self) -> Dict[str, str]:
        return {"User-Agent": PLATFORM_USER_AGENT, "Referer": self.referer}

    @property
    def site_type(self) -> SiteType:
        return SiteType.SOCIAL

    @abstractmethod
    async def _do_search(self, keyword: str, limit: int, offset: int) -> List[CrawlResult]:
        """Platform-specific live search."""
        ...

    async def search(self, keyword: str, limit: int = 10, offset: int = 0) -> List[CrawlResult]:
        """
        Public search entry point.

        Returns live results when the platform answers, otherwise mock
        results. Never raises for upstream failures.
        """
        try:
            results = await self._do_search(keyword, limit, offset)
        except Exception as e:
            # Includes payloads of an unexpected shape (list instead of dict, ...)
            logger.warning(
                "%s search failed for %r, serving mock data: %s",
                self.platform.value, keyword, e,
            )
            return self.mock_results(keyword, limit, offset)

        logger.info("%s returned %d results for %r", self.platform.value, len(results), keyword)
        return results[:limit]

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        if self._client is not None:
            resp = await self._client.get(url, params=params, headers=self.headers, timeout=self._timeout)
            resp.raise_for_status()
            return resp.json()

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(url, params=params, headers=self.headers)
            resp.raise_for_status()
            return resp.json()

    def _result(self, url: str, native_id: Any, **fields: Any) -> CrawlResult:
        return CrawlResult.for_url(
            url,
            platform=self.platform.value,
            site_type=self.site_type,
            metadata={"platformId": str(native_id)},
            **fields,
        )

    # ------------------------------------------------------------------
    # Mock data
    # ------------------------------------------------------------------

    def mock_results(self, keyword: str, limit: int, offset: int = 0) -> List[CrawlResult]:
        """
        Deterministic stand-in items ``offset + 1`` .. ``offset + limit``.

        Metric values are seeded from platform, keyword and index, so the
        same request always yields the same records.
        """
        now = self._now()
        results: List[CrawlResult] = []
        for i in range(offset + 1, offset + limit + 1):
            rng = random.Random(f"{self.platform.value}:{keyword}:{i}")
            metrics = Metrics(**{
                name: rng.randint(0, upper) for name, upper in self.mock_max_metrics.items()
            })
            url = self.mock_url.format(i=i)
            results.append(
                CrawlResult.for_url(
                    url,
                    title=self.mock_title.format(keyword=keyword, i=i),
                    content=self.mock_content.format(keyword=keyword, i=i),
                    author=self.mock_author.format(i=i),
                    publish_time=(now - timedelta(hours=i * self.mock_interval_hours)).isoformat(),
                    platform=self.platform.value,
                    site_type=self.site_type,
                    metrics=metrics,
                )
            )
        return results


# ------------------------------------------------------------------
# Weibo
# ------------------------------------------------------------------

class WeiboSearcher(PlatformSearcher):
    """Search Weibo posts."""

    base_url = "https://m.weibo.cn/api"
    referer = "https://m.weibo.cn/"

    mock_title = "关于{keyword}的微博{i}"
    mock_content = "这是一条关于{keyword}的微博内容，第{i}条。"
    mock_author = "微博用户{i}"
    mock_url = "https://weibo.com/mock/weibo_{i}"
    mock_max_metrics = {"likes": 1000, "comments": 500, "shares": 200}

    @property
    def platform(self) -> Platform:
        return Platform.WEIBO

    async def _do_search(self, keyword: str, limit: int, offset: int) -> List[CrawlResult]:
        data = await self._get_json(
            "/container/getIndex",
            {
                "containerid": f"100103type=1&q={keyword}",
                "count": limit,
                "page": offset // max(limit, 1) + 1,
            },
        )
        cards = (data.get("data") or {}).get("cards") or []

        results = []
        for card in cards:
            mblog = card.get("mblog")
            if not mblog:
                continue
            text = mblog.get("text") or ""
            user = mblog.get("user") or {}
            results.append(
                self._result(
                    f"https://weibo.com/{user.get('id', '')}/{mblog.get('bid', '')}",
                    mblog.get("id", ""),
                    title=f"{text[:50]}..." if text else "",
                    content=text,
                    author=user.get("screen_name", ""),
                    publish_time=to_iso_time(mblog.get("created_at")),
                    metrics=Metrics(
                        likes=mblog.get("attitudes_count") or 0,
                        comments=mblog.get("comments_count") or 0,
                        shares=mblog.get("reposts_count") or 0,
                    ),
                )
            )
        return results


# ------------------------------------------------------------------
# Douyin
# ------------------------------------------------------------------

class DouyinSearcher(PlatformSearcher):
    """Search Douyin videos."""

    base_url = "https://www.douyin.com/aweme/v1"
    referer = "https://www.douyin.com/"

    mock_title = "关于{keyword}的抖音视频{i}"
    mock_content = "这是一个关于{keyword}的抖音视频描述，第{i}条。"
    mock_author = "抖音用户{i}"
    mock_url = "https://www.douyin.com/video/douyin_mock_{i}"
    mock_max_metrics = {"likes": 10000, "comments": 1000, "shares": 500}

    @property
    def platform(self) -> Platform:
        return Platform.DOUYIN

    @property
    def site_type(self) -> SiteType:
        return SiteType.VIDEO

    async def _do_search(self, keyword: str, limit: int, offset: int) -> List[CrawlResult]:
        data = await self._get_json(
            "/search/item/", {"keyword": keyword, "count": limit, "offset": offset}
        )

        results = []
        for item in data.get("aweme_list") or []:
            aweme_id = item.get("aweme_id", "")
            stats = item.get("statistics") or {}
            author = item.get("author") or {}
            results.append(
                self._result(
                    f"https://www.douyin.com/video/{aweme_id}",
                    aweme_id,
                    title=item.get("desc") or "",
                    content=item.get("desc") or "",
                    author=author.get("nickname", ""),
                    publish_time=to_iso_time(item.get("create_time")),
                    metrics=Metrics(
                        views=stats.get("play_count") or 0,
                        likes=stats.get("digg_count") or 0,
                        comments=stats.get("comment_count") or 0,
                        shares=stats.get("share_count") or 0,
                    ),
                )
            )
        return results


# ------------------------------------------------------------------
# Xiaohongshu
# ------------------------------------------------------------------

class XiaohongshuSearcher(PlatformSearcher):
    """Search Xiaohongshu notes."""

    base_url = "https://www.xiaohongshu.com/fe_api/burdock"
    referer = "https://www.xiaohongshu.com/"

    mock_title = "{keyword}精选笔记 #{i}"
    mock_content = "这是关于{keyword}的小红书笔记，分享了实用的经验和心得。第{i}条内容。"
    mock_author = "小红书博主{i}"
    mock_url = "https://www.xiaohongshu.com/discovery/item/xiaohongshu_{i}"
    mock_interval_hours = 1.5
    mock_max_metrics = {"views": 20000, "likes": 5000, "comments": 500, "shares": 200}

    @property
    def platform(self) -> Platform:
        return Platform.XIAOHONGSHU

    async def _do_search(self, keyword: str, limit: int, offset: int) -> List[CrawlResult]:
        data = await self._get_json(
            "/weixin/v1/search/notes",
            {"keyword": keyword, "page": offset // max(limit, 1) + 1, "page_size": limit},
        )
        notes = (data.get("data") or {}).get("notes") or []

        results = []
        for note in notes:
            note_id = note.get("id", "")
            user = note.get("user") or {}
            results.append(
                self._result(
                    f"https://www.xiaohongshu.com/explore/{note_id}",
                    note_id,
                    title=note.get("title") or "",
                    content=note.get("desc") or "",
                    author=user.get("nickname", ""),
                    publish_time=to_iso_time(note.get("time")),
                    metrics=Metrics(
                        likes=note.get("liked_count") or 0,
                        comments=note.get("comment_count") or 0,
                        shares=note.get("share_count") or 0,
                    ),
                )
            )
        return results


# ------------------------------------------------------------------
# Zhihu
# ------------------------------------------------------------------

class ZhihuSearcher(PlatformSearcher):
    """Search Zhihu questions and answers."""

    base_url = "https://www.zhihu.com/api/v4"
    referer = "https://www.zhihu.com/"

    mock_title = "{keyword}相关问题 #{i}"
    mock_content = "这是关于{keyword}的知乎回答，提供了深入的分析和见解。第{i}条内容。"
    mock_author = "知乎用户{i}"
    mock_url = "https://www.zhihu.com/question/zhihu_{i}"
    mock_interval_hours = 2.5
    mock_max_metrics = {"views": 10000, "likes": 2000, "comments": 300, "shares": 100}

    @property
    def platform(self) -> Platform:
        return Platform.ZHIHU

    async def _do_search(self, keyword: str, limit: int, offset: int) -> List[CrawlResult]:
        data = await self._get_json(
            "/search_v3", {"q": keyword, "type": "content", "limit": limit, "offset": offset}
        )

        results = []
        for item in data.get("data") or []:
            obj = item.get("object")
            if not obj or not obj.get("token"):
                continue
            author = obj.get("author") or {}
            results.append(
                self._result(
                    f"https://www.zhihu.com/question/{obj['token']}",
                    obj["token"],
                    title=obj.get("title") or "",
                    content=obj.get("excerpt") or "",
                    author=author.get("name", ""),
                    publish_time=to_iso_time(obj.get("created_time")),
                    metrics=Metrics(
                        likes=obj.get("voteup_count") or 0,
                        comments=obj.get("comment_count") or 0,
                    ),
                )
            )
        return results


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

SEARCHERS: Dict[str, Type[PlatformSearcher]] = {
    Platform.WEIBO.value: WeiboSearcher,
    Platform.DOUYIN.value: DouyinSearcher,
    Platform.XIAOHONGSHU.value: XiaohongshuSearcher,
    Platform.ZHIHU.value: ZhihuSearcher,
}


def get_platform_searcher(platform: str, **kwargs) -> PlatformSearcher:
    """
    Instantiate the searcher for ``platform``.

    Raises:
        ValueError: If the platform is not supported
    """
    cls = SEARCHERS.get(platform.lower())
    if cls is None:
        raise ValueError(f"Unsupported platform: {platform!r}")
    return cls(**kwargs)
