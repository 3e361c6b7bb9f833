"""
Rule-driven field extraction from raw HTML.

Given an ExtractionRule, pull title, content, author, date, images,
engagement counters and any custom fields out of a page. Extraction never
raises for missing data: absent fields come back empty.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin

from selectolax.parser import HTMLParser, Node

from models.schema import Metrics
from .rules import ExtractionRule, METRIC_FIELDS

logger = logging.getLogger(__name__)


# Rule-independent last resort for the body text
FALLBACK_PARAGRAPHS = 3
FALLBACK_PARAGRAPH_MIN = 20
FALLBACK_CONTENT_MIN = 50

_WS_RE = re.compile(r"\s+")
_COUNT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(万|亿|[kKmMwW])?")

_MULTIPLIERS = {
    "k": 1_000,
    "m": 1_000_000,
    "w": 10_000,
    "万": 10_000,
    "亿": 100_000_000,
}


@dataclass
class ExtractedFields:
    """Raw fields pulled from one page."""

    title: str = ""
    content: str = ""
    author: str = ""
    publish_time: str = ""
    images: List[str] = field(default_factory=list)
    metrics: Optional[Metrics] = None
    extra: Dict[str, Any] = field(default_factory=dict)


def normalize_text(text: Optional[str]) -> str:
    """Collapse whitespace runs to single spaces."""
    if not text:
        return ""
    return _WS_RE.sub(" ", text).strip()


def parse_count(text: Optional[str]) -> int:
    """
    Parse a human-formatted counter.

    ``"1,234"`` -> 1234, ``"3.4k"`` -> 3400, ``"1.2万"`` -> 12000.
    Returns 0 when no number is present.
    """
    if not text:
        return 0
    match = _COUNT_RE.search(text.replace(",", "").replace("，", ""))
    if not match:
        return 0
    value = float(match.group(1))
    unit = match.group(2)
    if unit:
        value *= _MULTIPLIERS[unit.lower()]
    return int(value)


class RuleExtractor:
    """Apply an ExtractionRule to an HTML document."""

    def extract(
        self,
        html: str,
        url: str,
        rule: ExtractionRule,
        exclude_selectors: Optional[Iterable[str]] = None,
    ) -> ExtractedFields:
        tree = HTMLParser(html)

        # Unwanted elements go before any text is read
        for selector in list(rule.remove_selectors) + list(exclude_selectors or []):
            self._remove(tree, selector)

        fields = ExtractedFields()
        fields.title = self._first_text(tree, rule.selectors_for("title"))
        if not fields.title:
            title_node = tree.css_first("title")
            fields.title = normalize_text(title_node.text()) if title_node else ""

        fields.content = self._extract_content(tree, rule)
        if len(fields.content) > rule.max_content_length:
            fields.content = fields.content[: rule.max_content_length]

        fields.author = self._first_text(tree, rule.selectors_for("author"))
        fields.publish_time = self._extract_date(tree, rule.selectors_for("date"))
        fields.images = self._extract_images(tree, url, rule.selectors_for("images"))
        fields.metrics = self._extract_metrics(tree, rule)

        for name in rule.extra_fields():
            value = self._first_text(tree, rule.selectors_for(name))
            if value:
                fields.extra[name] = value

        return fields

    # ------------------------------------------------------------------
    # Selector helpers
    # ------------------------------------------------------------------

    def _select(self, tree, selector: str) -> List[Node]:
        try:
            return tree.css(selector)
        except Exception as e:  # selectolax raises on selectors it cannot compile
            logger.warning("Skipping invalid selector %r: %s", selector, e)
            return []

    def _remove(self, tree: HTMLParser, selector: str):
        nodes = self._select(tree, selector)
        matched = {node.mem_id for node in nodes}
        for node in nodes:
            # Nested matches go with their outermost matched ancestor
            if not self._has_ancestor_in(node, matched):
                node.decompose()

    @staticmethod
    def _has_ancestor_in(node: Node, mem_ids: set) -> bool:
        parent = node.parent
        while parent is not None:
            if parent.mem_id in mem_ids:
                return True
            parent = parent.parent
        return False

    def _first_text(self, tree, selectors: Iterable[str], min_length: int = 1) -> str:
        """First matched element whose text reaches ``min_length``."""
        for selector in selectors:
            for node in self._select(tree, selector):
                text = normalize_text(node.text(deep=True, separator=" "))
                if len(text) >= min_length:
                    return text
        return ""

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def _extract_content(self, tree: HTMLParser, rule: ExtractionRule) -> str:
        content = ""
        for strategy in rule.content_strategy:
            if strategy == "summary":
                candidate = self._first_text(tree, rule.summary_selectors, rule.min_text_length)
            elif strategy == "paragraphs":
                candidate = self._join_paragraphs(
                    tree,
                    rule.paragraph_selector,
                    rule.max_paragraphs,
                    rule.min_text_length,
                    rule.exclude_keywords,
                )
            else:
                candidate = self._first_text(
                    tree, rule.selectors_for("content"), rule.min_content_length
                )

            if len(candidate) > len(content):
                content = candidate
            if len(content) >= rule.min_content_length:
                return content

        if len(content) < FALLBACK_CONTENT_MIN:
            fallback = self._join_paragraphs(
                tree, "p", FALLBACK_PARAGRAPHS, FALLBACK_PARAGRAPH_MIN, []
            )
            if len(fallback) > len(content):
                logger.debug("Using generic paragraph fallback for rule %s", rule.name)
                content = fallback
        return content

    def _join_paragraphs(
        self,
        tree: HTMLParser,
        selector: str,
        max_paragraphs: int,
        min_length: int,
        exclude_keywords: Iterable[str],
    ) -> str:
        exclude = list(exclude_keywords)
        paragraphs: List[str] = []
        for node in self._select(tree, selector):
            text = normalize_text(node.text(deep=True, separator=" "))
            if len(text) <= min_length:
                continue
            # Case-sensitive: "Contents" is a heading marker, "contents" is prose
            if any(kw in text for kw in exclude):
                continue
            paragraphs.append(text)
            if len(paragraphs) >= max_paragraphs:
                break
        return "\n\n".join(paragraphs)

    # ------------------------------------------------------------------
    # Date, images, counters
    # ------------------------------------------------------------------

    def _extract_date(self, tree: HTMLParser, selectors: List[str]) -> str:
        for selector in selectors:
            for node in self._select(tree, selector):
                machine = (node.attributes.get("datetime") or "").strip()
                if machine:
                    return machine
                text = normalize_text(node.text(deep=True, separator=" "))
                if text:
                    return text

        node = tree.css_first("time[datetime]")
        if node is not None:
            return (node.attributes.get("datetime") or "").strip()
        return ""

    def _extract_images(self, tree: HTMLParser, url: str, selectors: List[str]) -> List[str]:
        images: List[str] = []
        for selector in selectors:
            for node in self._select(tree, selector):
                src = self._image_source(node)
                if not src or src.startswith("data:"):
                    continue
                absolute = urljoin(url, src)
                if absolute not in images:
                    images.append(absolute)
        return images

    @staticmethod
    def _image_source(node: Node) -> Optional[str]:
        attrs = node.attributes
        src = attrs.get("src") or attrs.get("data-src") or attrs.get("poster")
        if not src and node.tag != "img":
            nested = node.css_first("img")
            if nested is not None:
                src = nested.attributes.get("src") or nested.attributes.get("data-src")
        return src.strip() if src else None

    def _extract_metrics(self, tree: HTMLParser, rule: ExtractionRule) -> Optional[Metrics]:
        if not any(rule.selectors_for(name) for name in METRIC_FIELDS):
            return None
        counts = {
            name: parse_count(self._first_text(tree, rule.selectors_for(name)))
            for name in METRIC_FIELDS
        }
        return Metrics(**counts)
