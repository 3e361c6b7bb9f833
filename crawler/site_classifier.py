"""
Site Classifier: map a URL to a coarse site type by keyword heuristics.

Domain keywords are checked before generic path keywords, so
``news.gov.cn`` is a government site and ``en.wikipedia.org/wiki/Blog``
an encyclopedia.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from models.enums import SiteType


# Ordered: first match wins
DOMAIN_KEYWORDS: List[Tuple[SiteType, List[str]]] = [
    (SiteType.ENCYCLOPEDIA, [
        "baike.baidu.com",
        "wikipedia.org",
        "baike.so.com",
        "baike.sogou.com",
        "wiki.mbalib.com",
    ]),
    (SiteType.GOV, [".gov.cn", "//gov.cn", ".gov/", ".gov."]),
    (SiteType.SOCIAL, [
        "weibo.com",
        "weibo.cn",
        "zhihu.com",
        "xiaohongshu.com",
        "douban.com",
        "tieba.baidu.com",
    ]),
    (SiteType.VIDEO, [
        "douyin.com",
        "bilibili.com",
        "youku.com",
        "iqiyi.com",
        "youtube.com",
        "ixigua.com",
    ]),
    (SiteType.ECOMMERCE, ["taobao.com", "tmall.com", "jd.com", "amazon.", "pinduoduo.com"]),
]

PATH_KEYWORDS: List[Tuple[SiteType, List[str]]] = [
    (SiteType.NEWS, ["news", "article", "story", "report", "journalism"]),
    (SiteType.BLOG, ["blog", "post", "diary", "journal"]),
    (SiteType.ECOMMERCE, ["shop", "store", "buy", "product", "cart", "price"]),
    (SiteType.VIDEO, ["video", "watch", "play", "stream", "tube"]),
    (SiteType.SOCIAL, ["social", "share", "community", "forum", "discussion"]),
]


class SiteClassifier:
    """Pure, deterministic URL → SiteType mapping."""

    def __init__(
        self,
        domain_keywords: Optional[List[Tuple[SiteType, List[str]]]] = None,
        path_keywords: Optional[List[Tuple[SiteType, List[str]]]] = None,
    ):
        self._domain_keywords = DOMAIN_KEYWORDS if domain_keywords is None else domain_keywords
        self._path_keywords = PATH_KEYWORDS if path_keywords is None else path_keywords

    def classify(self, url: str) -> SiteType:
        url_lower = url.lower()

        for site_type, keywords in self._domain_keywords:
            if any(kw in url_lower for kw in keywords):
                return site_type

        for site_type, keywords in self._path_keywords:
            if any(kw in url_lower for kw in keywords):
                return site_type

        return SiteType.GENERAL
