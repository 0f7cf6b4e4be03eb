"""
Article Deduplicator
====================

Removes repeated stories from one ingestion batch: exact URL repeats and
near-identical titles syndicated across outlets. Titles are compared with
normalized Levenshtein similarity against every already-accepted item, so a
batch costs O(n^2) comparisons.
"""

from dataclasses import dataclass
from typing import List, Sequence, Set

from rapidfuzz.distance import Levenshtein

from ..database.models import RawArticle
from ..utils.logging import get_logger_for_component
from ..utils.validators import ContentValidator


DEFAULT_SIMILARITY_THRESHOLD = 0.90


def title_similarity(first: str, second: str) -> float:
    """Similarity in [0, 1] between two titles after normalization.

    Computed as ``1 - distance / max(len)``; returns 0.0 when either title is empty.
    """
    a = ContentValidator.normalize_text(first)
    b = ContentValidator.normalize_text(second)
    if not a or not b:
        return 0.0

    return Levenshtein.normalized_similarity(a, b)


@dataclass
class DeduplicationStats:
    """Statistics from deduplication process."""
    total_articles: int = 0
    unique_articles: int = 0
    duplicates_by_url: int = 0
    duplicates_by_title: int = 0

    @property
    def duplicates_found(self) -> int:
        return self.duplicates_by_url + self.duplicates_by_title

    @property
    def deduplication_rate(self) -> float:
        """Percentage of articles that were duplicates."""
        if self.total_articles == 0:
            return 0.0
        return (self.duplicates_found / self.total_articles) * 100


class Deduplicator:
    """In-batch URL and fuzzy-title deduplication."""

    def __init__(self, threshold: float = DEFAULT_SIMILARITY_THRESHOLD):
        """Initialize deduplicator.

        Args:
            threshold: Titles with similarity strictly above this are duplicates
        """
        self.threshold = threshold
        self.logger = get_logger_for_component("deduplicator")
        self.last_stats = DeduplicationStats()

    def deduplicate(self, articles: Sequence[RawArticle]) -> List[RawArticle]:
        """Return the first occurrence of each story, preserving order."""
        stats = DeduplicationStats(total_articles=len(articles))
        seen_urls: Set[str] = set()
        accepted: List[RawArticle] = []

        for article in articles:
            if article.url in seen_urls:
                stats.duplicates_by_url += 1
                continue

            if any(title_similarity(existing.title, article.title) > self.threshold
                   for existing in accepted):
                stats.duplicates_by_title += 1
                self.logger.debug(f"Dropping near-duplicate title: {article.title[:60]}")
                continue

            seen_urls.add(article.url)
            accepted.append(article)

        stats.unique_articles = len(accepted)
        self.last_stats = stats

        if stats.duplicates_found:
            self.logger.info(
                f"Deduplication complete: {stats.unique_articles}/{stats.total_articles} unique "
                f"({stats.duplicates_by_url} URL, {stats.duplicates_by_title} title)"
            )

        return accepted
