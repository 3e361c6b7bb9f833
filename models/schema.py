"""
Pydantic data models for crawl results.
"""

import hashlib
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from .enums import SiteType, Platform


def make_result_id(url: str) -> str:
    """Stable short identifier for a resolved URL."""
    return hashlib.md5(url.encode("utf-8")).hexdigest()[:12]


class Metrics(BaseModel):
    """Engagement counters scraped from a page or platform API."""
    views: int = Field(0, ge=0, description="View / play count")
    likes: int = Field(0, ge=0, description="Like / upvote count")
    comments: int = Field(0, ge=0, description="Comment count")
    shares: int = Field(0, ge=0, description="Share / repost count")


class CrawlResult(BaseModel):
    """Structured record extracted from one page or platform item."""
    id: str = Field(..., description="Stable id derived from the URL")
    title: str = Field("", description="Plain-text title")
    content: str = Field("", description="Whitespace-normalised plain-text body")
    url: str = Field(..., description="Resolved absolute URL")
    author: str = Field("", description="Author / byline, empty if not found")
    publish_time: str = Field("", alias="publishTime", description="Publish time as found on the page")
    platform: str = Field(Platform.WEB.value, description="'web' or a platform name")
    site_type: SiteType = Field(SiteType.GENERAL, alias="siteType", description="Detected site category")
    metrics: Optional[Metrics] = Field(None, description="Engagement counters")
    images: List[str] = Field(default_factory=list, description="Image URLs, de-duplicated")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Extra extracted fields")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "3f2c9a1b7e4d",
                "title": "人工智能的未来",
                "content": "人工智能正在改变……",
                "url": "https://news.example.com/ai-future",
                "author": "张三",
                "publishTime": "2024-03-15",
                "platform": "web",
                "siteType": "news",
                "metrics": {"views": 0, "likes": 0, "comments": 0, "shares": 0},
                "images": ["https://news.example.com/img/cover.jpg"],
                "metadata": {},
            }
        }

    @field_validator("images")
    @classmethod
    def dedupe_images(cls, v: List[str]) -> List[str]:
        """Keep first occurrence of each image URL."""
        seen = set()
        unique = []
        for src in v:
            if src and src not in seen:
                seen.add(src)
                unique.append(src)
        return unique

    @classmethod
    def for_url(cls, url: str, **fields: Any) -> "CrawlResult":
        """Build a result whose id is derived from ``url``."""
        return cls(id=make_result_id(url), url=url, **fields)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serialisable camelCase form used by the API layer."""
        return self.model_dump(by_alias=True, mode="json")


class CrawlResponse(BaseModel):
    """Envelope for a single crawl request."""
    success: bool = Field(..., description="True when a result was produced")
    data: Optional[CrawlResult] = Field(None, description="Crawl result, absent on failure")
    url: str = Field(..., description="URL as requested")
    error: Optional[str] = Field(None, description="Failure reason")
    timestamp: str = Field(..., description="ISO 8601 time the response was built")

    class Config:
        populate_by_name = True

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class SearchResponse(BaseModel):
    """Envelope for a paginated multi-platform search."""
    query: str = Field(..., description="Search keyword")
    results: List[CrawlResult] = Field(default_factory=list, description="One page of results")
    total: int = Field(0, ge=0, description="Results seen up to and including this page")
    sources: List[str] = Field(default_factory=list, description="Platforms queried")
    search_time: int = Field(..., alias="searchTime", description="Epoch milliseconds")

    class Config:
        populate_by_name = True

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
