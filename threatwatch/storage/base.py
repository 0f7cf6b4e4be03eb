"""
Storage Contracts
=================

Abstract persistence interfaces used by the ingestion pipeline, the threat
level cache and the update tracker. Components depend on these contracts and
never on a concrete database.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..database.models import ArticleQuery, SourceConfig, StoredArticle, ThreatLevel


class ArticleStore(ABC):
    """Persistent, URL-unique collection of classified articles."""

    @abstractmethod
    async def insert_articles_if_absent(self, articles: Sequence[StoredArticle]) -> int:
        """Insert articles whose URL is not already stored.

        Existing URLs are skipped, never updated.

        Returns:
            Number of articles actually inserted
        """

    @abstractmethod
    async def query_recent_articles(self, query: ArticleQuery) -> List[StoredArticle]:
        """Articles published within ``query.days``, newest first, at most ``query.limit``."""

    async def ensure_sources(self, sources: Sequence[SourceConfig]) -> None:
        """Register configured feed sources. Stores without a sources table ignore this."""
        return None


class ThreatLevelStore(ABC):
    """Append-only history of threat level readings."""

    @abstractmethod
    async def load_latest_threat_level(self) -> Optional[ThreatLevel]:
        """Most recent reading by fetch time, tagged ``database``, or None."""

    @abstractmethod
    async def record_threat_level(self, threat_level: ThreatLevel) -> None:
        """Append a reading to the history."""
