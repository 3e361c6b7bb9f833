"""
Result Ranking: score crawl results by title relevance to the keyword.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from models.schema import CrawlResult


@dataclass
class RankedResult:
    """A crawl result with scoring metadata."""

    result: CrawlResult
    score: float
    reasons: List[str] = field(default_factory=list)


class ResultRanker:
    """
    Rank results by how well their title matches the keyword.

    Scoring (case-insensitive, title only):
      - Exact match:     100
      - Title contains:  80
      - Partial:         share of whitespace-separated keyword tokens
                         found in the title, times 60
      - Otherwise:       0

    Ties keep their input order.
    """

    EXACT_MATCH = 100.0
    CONTAINS_MATCH = 80.0
    PARTIAL_MATCH_MAX = 60.0

    def score(self, title: str, keyword: str) -> float:
        if not title or not keyword:
            return 0.0

        title_lower = title.lower()
        keyword_lower = keyword.lower().strip()

        if title_lower == keyword_lower:
            return self.EXACT_MATCH
        if keyword_lower in title_lower:
            return self.CONTAINS_MATCH

        tokens = keyword_lower.split()
        if not tokens:
            return 0.0
        matched = sum(1 for token in tokens if token in title_lower)
        return (matched / len(tokens)) * self.PARTIAL_MATCH_MAX

    def rank_scored(self, results: List[CrawlResult], keyword: str) -> List[RankedResult]:
        """Score every result; best first."""
        ranked: List[RankedResult] = []
        for r in results:
            score = self.score(r.title, keyword)
            if score == self.EXACT_MATCH:
                reason = f"exact_match(+{score:g})"
            elif score == self.CONTAINS_MATCH:
                reason = f"title_contains(+{score:g})"
            elif score > 0:
                reason = f"partial_match(+{score:g})"
            else:
                reason = "no_match(+0)"
            ranked.append(RankedResult(result=r, score=score, reasons=[reason]))

        # list.sort is stable
        ranked.sort(key=lambda x: x.score, reverse=True)
        return ranked

    def rank(self, results: List[CrawlResult], keyword: str) -> List[CrawlResult]:
        return [r.result for r in self.rank_scored(results, keyword)]

    @staticmethod
    def dedupe(results: List[CrawlResult]) -> List[CrawlResult]:
        """Drop repeated ids, keeping the first occurrence."""
        seen = set()
        unique: List[CrawlResult] = []
        for r in results:
            if r.id in seen:
                continue
            seen.add(r.id)
            unique.append(r)
        return unique
