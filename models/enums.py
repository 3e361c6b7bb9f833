"""
Enumerations for crawl and search data models.
"""

from enum import Enum


class SiteType(str, Enum):
    """Coarse site category driving which extraction rule applies."""
    NEWS = "news"
    BLOG = "blog"
    ECOMMERCE = "ecommerce"
    VIDEO = "video"
    ENCYCLOPEDIA = "encyclopedia"
    GOV = "gov"
    SOCIAL = "social"
    GENERAL = "general"


class Platform(str, Enum):
    """Content platform a result was collected from."""
    WEB = "web"
    WEIBO = "weibo"
    DOUYIN = "douyin"
    XIAOHONGSHU = "xiaohongshu"
    ZHIHU = "zhihu"


class FetchMethod(str, Enum):
    """How a page's HTML was retrieved."""
    HTTP = "http"
    PLAYWRIGHT = "playwright"
    SEARCH = "search"
