"""
Relevance Filter
================

Keyword-based relevance check for feed items. An item is kept when its
title or body mentions any security term; there is no scoring.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from ..database.models import RawArticle
from ..utils.logging import get_logger_for_component
from ..utils.validators import ContentValidator


# Terrorism and national security terms
PRIMARY_KEYWORDS: Tuple[str, ...] = (
    'terrorism',
    'terrorist',
    'terror attack',
    'asio',
    'national security',
    'threat level',
    'extremist',
    'extremism',
    'radicalisation',
    'bomb threat',
    'explosive',
    'hostage',
    'security threat',
    'counter-terrorism',
    'counter terrorism',
    'islamic state',
    'isis',
    'al-qaeda',
    'afp',
    'australian federal police',
    'security alert',
    'security warning',
)

# General crime and safety terms for broader recall
SECONDARY_KEYWORDS: Tuple[str, ...] = (
    'police',
    'crime',
    'arrest',
    'attack',
    'shooting',
    'stabbing',
    'incident',
    'emergency',
    'security',
    'safety',
    'warning',
    'alert',
    'investigation',
    'suspect',
    'detained',
    'charged',
    'court',
    'threat',
    'dangerous',
    'manhunt',
    'lockdown',
    'evacuation',
)


class KeywordTier(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass
class FilterResult:
    """Result of relevance filtering for one article."""
    article: RawArticle
    passed: bool
    matched_keyword: Optional[str] = None
    tier: Optional[KeywordTier] = None


class RelevanceFilter:
    """Substring keyword matcher over title and normalized content."""

    def __init__(self,
                 primary_keywords: Sequence[str] = PRIMARY_KEYWORDS,
                 secondary_keywords: Sequence[str] = SECONDARY_KEYWORDS):
        self.primary_keywords = tuple(k.lower() for k in primary_keywords)
        self.secondary_keywords = tuple(k.lower() for k in secondary_keywords)
        self.logger = get_logger_for_component("relevance_filter")

    @staticmethod
    def _haystack(article: RawArticle) -> str:
        return ContentValidator.normalize_text(f"{article.title} {article.content_normalized}")

    def filter_article(self, article: RawArticle) -> FilterResult:
        """Check one article, reporting the first matching keyword.

        Primary terms are checked before secondary ones.
        """
        haystack = self._haystack(article)

        for tier, keywords in ((KeywordTier.PRIMARY, self.primary_keywords),
                               (KeywordTier.SECONDARY, self.secondary_keywords)):
            for keyword in keywords:
                if keyword in haystack:
                    return FilterResult(article=article, passed=True,
                                        matched_keyword=keyword, tier=tier)

        return FilterResult(article=article, passed=False)

    def is_relevant(self, article: RawArticle) -> bool:
        return self.filter_article(article).passed

    def filter_relevant_articles(self, articles: Sequence[RawArticle]) -> List[RawArticle]:
        """Keep only relevant articles, preserving order."""
        if not articles:
            return []

        results = [self.filter_article(article) for article in articles]
        relevant = [r.article for r in results if r.passed]

        primary = sum(1 for r in results if r.tier == KeywordTier.PRIMARY)
        self.logger.info(
            f"Relevance filtering complete: {len(relevant)}/{len(articles)} articles passed "
            f"({primary} on primary keywords)"
        )
        return relevant
