"""
Extraction rules and the in-memory rule registry.

A rule is an ordered list of CSS selector candidates per field, plus
content strategies and crawl options for one site type (or one site,
when it carries URL patterns). Rules are plain configuration: they can be
loaded from / exported to JSON and hot-swapped at runtime.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from models.enums import SiteType

logger = logging.getLogger(__name__)


# Fields with dedicated handling in the extractor; other selector keys
# (price, rating, ...) are collected into CrawlResult.metadata
CORE_FIELDS = ("title", "content", "author", "date", "images")
METRIC_FIELDS = ("views", "likes", "comments", "shares")

CONTENT_STRATEGIES = ("summary", "paragraphs", "selectors")

COMMON_REMOVE = [".ad", ".advertisement", ".sidebar", ".footer", "script", "style", "noscript"]


@dataclass
class RuleOptions:
    """Crawl options attached to a rule."""

    use_rendered_fetch: bool = False
    wait_for_selector: Optional[str] = None
    delay_ms: int = 0  # artificial delay before fetching
    headers: Dict[str, str] = field(default_factory=dict)
    retries: Optional[int] = None


@dataclass
class ExtractionRule:
    """Selector candidates and content strategy for one site type or site."""

    name: str
    site_type: SiteType
    description: str = ""
    url_patterns: List[str] = field(default_factory=list)
    selectors: Dict[str, List[str]] = field(default_factory=dict)

    # Content strategy
    content_strategy: List[str] = field(default_factory=lambda: ["selectors"])
    summary_selectors: List[str] = field(default_factory=list)
    paragraph_selector: str = "p"
    max_paragraphs: int = 3
    min_text_length: int = 20  # minimum length of a summary / paragraph
    min_content_length: int = 50  # floor below which weaker strategies are tried
    max_content_length: int = 5000
    exclude_keywords: List[str] = field(default_factory=list)

    remove_selectors: List[str] = field(default_factory=lambda: list(COMMON_REMOVE))
    options: RuleOptions = field(default_factory=RuleOptions)

    def __post_init__(self):
        self.site_type = SiteType(self.site_type)
        unknown = [s for s in self.content_strategy if s not in CONTENT_STRATEGIES]
        if unknown:
            raise ValueError(f"Rule {self.name!r}: unknown content strategy {unknown}")

    def selectors_for(self, field_name: str) -> List[str]:
        return self.selectors.get(field_name, [])

    def extra_fields(self) -> List[str]:
        """Selector keys that end up in metadata."""
        return [
            name for name in self.selectors
            if name not in CORE_FIELDS and name not in METRIC_FIELDS
        ]

    # ------------------------------------------------------------------
    # JSON (camelCase, compatible with exported rule files)
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "siteType": self.site_type.value,
            "urlPatterns": list(self.url_patterns),
            "selectors": {k: list(v) for k, v in self.selectors.items()},
            "contentStrategy": list(self.content_strategy),
            "summarySelectors": list(self.summary_selectors),
            "paragraphSelector": self.paragraph_selector,
            "maxParagraphs": self.max_paragraphs,
            "minTextLength": self.min_text_length,
            "minContentLength": self.min_content_length,
            "maxContentLength": self.max_content_length,
            "excludeKeywords": list(self.exclude_keywords),
            "preprocessing": {"removeElements": list(self.remove_selectors)},
            "options": {
                "usePuppeteer": self.options.use_rendered_fetch,
                "waitForSelector": self.options.wait_for_selector,
                "delay": self.options.delay_ms,
                "headers": dict(self.options.headers),
                "retries": self.options.retries,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ExtractionRule:
        """Build a rule from its JSON form. Missing keys take defaults."""
        opts = data.get("options") or {}
        preprocessing = data.get("preprocessing") or {}
        selectors = {
            ("images" if k == "image" else k): list(v)
            for k, v in (data.get("selectors") or {}).items()
        }

        kwargs: Dict[str, Any] = {
            "name": data["name"],
            "site_type": data.get("siteType", SiteType.GENERAL.value),
            "description": data.get("description", ""),
            "url_patterns": list(data.get("urlPatterns", [])),
            "selectors": selectors,
            "options": RuleOptions(
                use_rendered_fetch=bool(opts.get("usePuppeteer", False)),
                wait_for_selector=opts.get("waitForSelector"),
                delay_ms=int(opts.get("delay") or 0),
                headers=dict(opts.get("headers") or {}),
                retries=opts.get("retries"),
            ),
        }
        optional = {
            "contentStrategy": "content_strategy",
            "summarySelectors": "summary_selectors",
            "paragraphSelector": "paragraph_selector",
            "maxParagraphs": "max_paragraphs",
            "minTextLength": "min_text_length",
            "minContentLength": "min_content_length",
            "maxContentLength": "max_content_length",
            "excludeKeywords": "exclude_keywords",
        }
        for key, attr in optional.items():
            if key in data and data[key] is not None:
                kwargs[attr] = data[key]
        if "removeElements" in preprocessing:
            kwargs["remove_selectors"] = list(preprocessing["removeElements"])

        return cls(**kwargs)


# ------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------

class RuleRegistry:
    """
    In-memory rule store.

    Read-mostly: lookups take a snapshot, add/remove are atomic
    single-rule operations under a lock.
    """

    def __init__(
        self,
        rules: Optional[Iterable[ExtractionRule]] = None,
        fallback_site_type: SiteType = SiteType.NEWS,
    ):
        self._rules: Dict[str, ExtractionRule] = {}
        self._compiled: Dict[str, List[re.Pattern]] = {}
        self._lock = threading.Lock()
        self._fallback_site_type = fallback_site_type
        for rule in rules or []:
            self.add(rule)

    @classmethod
    def with_defaults(cls) -> RuleRegistry:
        registry = cls(default_rules())
        logger.info("Initialised %d default extraction rules", len(registry))
        return registry

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, name: str) -> bool:
        return name in self._rules

    def add(self, rule: ExtractionRule):
        """Insert or replace a rule by name."""
        compiled = []
        for pattern in rule.url_patterns:
            try:
                compiled.append(re.compile(pattern, re.IGNORECASE))
            except re.error as e:
                logger.warning("Invalid URL pattern %r in rule %s: %s", pattern, rule.name, e)
        with self._lock:
            self._rules[rule.name] = rule
            self._compiled[rule.name] = compiled
        logger.debug("Added extraction rule: %s", rule.name)

    def remove(self, name: str) -> bool:
        with self._lock:
            removed = self._rules.pop(name, None) is not None
            self._compiled.pop(name, None)
        if removed:
            logger.info("Removed extraction rule: %s", name)
        return removed

    def get(self, name: str) -> Optional[ExtractionRule]:
        return self._rules.get(name)

    def all(self) -> List[ExtractionRule]:
        with self._lock:
            return list(self._rules.values())

    def match_url(self, url: str) -> Optional[ExtractionRule]:
        """First rule with a URL pattern matching ``url``."""
        with self._lock:
            candidates = [(self._rules[n], pats) for n, pats in self._compiled.items()]
        for rule, patterns in candidates:
            if any(p.search(url) for p in patterns):
                return rule
        return None

    def by_site_type(self, site_type: SiteType) -> List[ExtractionRule]:
        return [r for r in self.all() if r.site_type == site_type]

    def rule_for(self, site_type: SiteType) -> ExtractionRule:
        """
        Generic rule for a site type.

        Prefers rules without URL patterns (site-specific rules are
        reached through ``match_url``); falls back to the news rule.
        """
        for wanted in (site_type, self._fallback_site_type):
            rules = self.by_site_type(wanted)
            if rules:
                generic = [r for r in rules if not r.url_patterns]
                return (generic or rules)[0]
        raise LookupError(
            f"No rule for site type {site_type.value!r} and no "
            f"{self._fallback_site_type.value!r} fallback registered"
        )

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def load_json(self, rules_json: str) -> int:
        """
        Add every rule in a JSON array. Returns the number loaded.

        Raises:
            ValueError: If the document is not valid rule JSON
        """
        try:
            data = json.loads(rules_json)
        except json.JSONDecodeError as e:
            raise ValueError(f"Rule JSON is not valid JSON: {e}") from e
        if not isinstance(data, list):
            raise ValueError("Rule JSON must be an array of rules")

        rules = []
        for item in data:
            try:
                rules.append(ExtractionRule.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                raise ValueError(f"Invalid rule definition {item!r}: {e}") from e
        for rule in rules:
            self.add(rule)
        logger.info("Loaded %d extraction rules from JSON", len(rules))
        return len(rules)

    def export_json(self) -> str:
        return json.dumps(
            [r.to_dict() for r in self.all()], ensure_ascii=False, indent=2
        )


# ------------------------------------------------------------------
# Built-in rules
# ------------------------------------------------------------------

def default_rules() -> List[ExtractionRule]:
    """Fresh copies of the built-in rule set."""
    return [
        # Generic site types
        ExtractionRule(
            name="general-news",
            site_type=SiteType.NEWS,
            description="Generic news article pages",
            selectors={
                "title": ["h1", ".title", ".headline", '[data-testid="headline"]'],
                "content": [".article-content", ".post-content", ".story-body", "article", ".content"],
                "author": [".author", ".byline", ".writer", '[data-testid="author"]'],
                "date": [".publish-date", ".date", ".timestamp", "time", '[data-testid="date"]'],
                "images": [".article-image img", ".featured-image img", "article img", "img"],
            },
        ),
        ExtractionRule(
            name="general-blog",
            site_type=SiteType.BLOG,
            description="Generic blog posts",
            selectors={
                "title": ["h1", ".post-title", ".entry-title"],
                "content": [".post-content", ".entry-content", ".blog-content", "article"],
                "author": [".post-author", ".author", ".byline"],
                "date": [".post-date", ".entry-date", ".published", "time"],
                "images": [".post-image img", ".featured-image img", "article img", "img"],
            },
        ),
        ExtractionRule(
            name="general-ecommerce",
            site_type=SiteType.ECOMMERCE,
            description="Generic product pages",
            selectors={
                "title": ["h1", ".product-title", ".item-title"],
                "content": [".product-description", ".item-description", ".details"],
                "images": [".product-image", ".item-image", ".gallery img"],
                "price": [".price", ".current-price", ".sale-price"],
                "rating": [".rating", ".stars", ".reviews-score"],
            },
            min_content_length=20,
        ),
        ExtractionRule(
            name="general-video",
            site_type=SiteType.VIDEO,
            description="Generic video pages",
            selectors={
                "title": ["h1", ".video-title", ".title"],
                "content": [".video-description", ".description"],
                "author": [".channel-name", ".uploader", ".creator"],
                "views": [".views", ".view-count"],
                "images": [".thumbnail", ".video-thumb", "video[poster]"],
            },
            min_content_length=20,
        ),
        ExtractionRule(
            name="general-encyclopedia",
            site_type=SiteType.ENCYCLOPEDIA,
            description="Encyclopedia entries: summary first, then leading paragraphs",
            selectors={
                "title": ["h1", ".lemma-title", ".title", ".headline-title"],
                "content": [
                    ".lemma-summary",
                    ".para",
                    ".description",
                    'div[class*="content"]',
                    'div[class*="para"]',
                    ".mw-parser-output",
                ],
                "author": [".author", ".editor", ".contributor"],
                "date": [".update-time", ".last-modified", ".date", "time"],
                "images": [".summary-pic img", ".infobox img", ".picture img", "img"],
            },
            content_strategy=["summary", "paragraphs", "selectors"],
            summary_selectors=[".lemma-summary", '[class*="lemmaSummary"]', ".summary"],
            paragraph_selector=".para, .mw-parser-output > p",
            max_paragraphs=5,
            exclude_keywords=["编辑", "目录", "[edit]", "Contents"],
        ),
        ExtractionRule(
            name="general-gov",
            site_type=SiteType.GOV,
            description="Government sites: long-form text, boilerplate excluded",
            selectors={
                "title": ["h1", ".article-title", ".main-title", ".title"],
                "content": [
                    ".TRS_Editor",
                    ".content_text",
                    ".article-content",
                    ".article-body",
                    ".main-content",
                    ".content",
                    ".text",
                    'div[class*="content"]',
                    'div[class*="text"]',
                ],
                "author": [".source", ".publisher", ".author"],
                "date": [".release-time", ".publish-date", ".date", ".time"],
                "images": [".TRS_Editor img", ".content img", ".photo img", "img"],
            },
            content_strategy=["selectors", "paragraphs"],
            max_paragraphs=10,
            min_content_length=100,
            max_content_length=10000,
            exclude_keywords=["网站地图", "联系我们", "版权所有", "ICP备", "政府网站标识码"],
            remove_selectors=COMMON_REMOVE + ["nav", ".nav", "header", "footer"],
        ),
        ExtractionRule(
            name="general-social",
            site_type=SiteType.SOCIAL,
            description="Generic community / forum pages",
            selectors={
                "title": ["h1", ".title", ".topic-title"],
                "content": [".post-content", ".topic-content", ".content", "article"],
                "author": [".author", ".username", ".user-name"],
                "date": ["time", ".time", ".date"],
                "likes": [".like-count", ".likes"],
                "comments": [".comment-count", ".comments"],
                "images": [".content img", "article img"],
            },
            min_content_length=20,
        ),
        ExtractionRule(
            name="general-page",
            site_type=SiteType.GENERAL,
            description="Any other page",
            selectors={
                "title": ["h1", ".title"],
                "content": ["article", "main", ".content", "#content"],
                "author": [".author", ".byline"],
                "date": ["time", ".date"],
                "images": ["article img", "main img"],
            },
        ),
        # Platform-specific rules, matched by URL
        ExtractionRule(
            name="weibo",
            site_type=SiteType.SOCIAL,
            description="Weibo posts",
            url_patterns=[r"weibo\.com", r"m\.weibo\.cn"],
            selectors={
                "title": [".txt", ".weibo-text"],
                "content": [".txt", ".weibo-text", ".content"],
                "author": [".name", ".username"],
                "date": [".time", ".date"],
                "images": [".media-pic img", ".pic img", ".img"],
                "likes": [".like", ".heart"],
                "comments": [".comment", ".reply"],
                "shares": [".share", ".repost"],
            },
            min_content_length=10,
            options=RuleOptions(use_rendered_fetch=True, wait_for_selector=".txt", delay_ms=1000),
        ),
        ExtractionRule(
            name="zhihu",
            site_type=SiteType.SOCIAL,
            description="Zhihu questions and answers",
            url_patterns=[r"zhihu\.com"],
            selectors={
                "title": [".QuestionHeader-title", "h1"],
                "content": [".RichContent-inner", ".RichContent", ".QuestionAnswer-content"],
                "author": [".AuthorInfo-name", ".UserLink-link"],
                "date": [".ContentItem-time", ".Question-mainColumnTime"],
                "images": [".origin_image", ".content_image"],
                "likes": [".VoteButton--up", ".VoteButton"],
                "comments": [".ContentItem-action", ".CommentButton"],
            },
            options=RuleOptions(use_rendered_fetch=True, wait_for_selector=".RichContent", delay_ms=2000),
        ),
        ExtractionRule(
            name="xiaohongshu",
            site_type=SiteType.SOCIAL,
            description="Xiaohongshu notes",
            url_patterns=[r"xiaohongshu\.com"],
            selectors={
                "title": [".note-title", ".title"],
                "content": [".note-content", ".desc"],
                "author": [".author-name", ".user-name"],
                "date": [".publish-time", ".date"],
                "images": [".note-img", ".cover"],
                "likes": [".like-count", ".heart-count"],
                "comments": [".comment-count"],
                "shares": [".share-count"],
            },
            min_content_length=10,
            options=RuleOptions(use_rendered_fetch=True, wait_for_selector=".note-content", delay_ms=1500),
        ),
        ExtractionRule(
            name="douyin",
            site_type=SiteType.VIDEO,
            description="Douyin videos",
            url_patterns=[r"douyin\.com"],
            selectors={
                "title": [".video-desc", ".desc"],
                "content": [".video-desc", ".desc"],
                "author": [".author-name", ".nickname"],
                "date": [".publish-time", ".time"],
                "images": [".video-cover", ".cover"],
                "views": [".play-count", ".view-count"],
                "likes": [".digg-count", ".like-count"],
                "comments": [".comment-count"],
                "shares": [".share-count", ".forward-count"],
            },
            min_content_length=5,
            options=RuleOptions(use_rendered_fetch=True, wait_for_selector=".video-desc", delay_ms=2000),
        ),
    ]
