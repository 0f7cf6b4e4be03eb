"""
Ingestion Pipeline Orchestrator
===============================

Runs one feed refresh cycle: fetch every source, keep relevant items, drop
duplicates, classify and store new articles. Subscribers of an attached
update tracker hear about newly inserted articles immediately.
"""

from typing import List, Optional, TYPE_CHECKING

from ..config.settings import ThreatWatchSettings, get_settings
from ..database.models import (
    ArticleQuery, AustralianState, IngestionSummary, NewsCategory, StoredArticle, utc_now
)
from ..storage.base import ArticleStore
from ..utils.exceptions import ThreatWatchError
from ..utils.logging import PerformanceLogger, get_logger_for_component

from .categorizer import Categorizer
from .deduplicator import Deduplicator
from .feed_fetcher import FeedFetcher
from .relevance_filter import RelevanceFilter

if TYPE_CHECKING:
    from ..services.update_tracker import UpdateTracker


class IngestionPipeline:
    """Feed ingestion orchestrator."""

    def __init__(self,
                 store: ArticleStore,
                 fetcher: Optional[FeedFetcher] = None,
                 relevance_filter: Optional[RelevanceFilter] = None,
                 deduplicator: Optional[Deduplicator] = None,
                 categorizer: Optional[Categorizer] = None,
                 tracker: Optional["UpdateTracker"] = None,
                 settings: Optional[ThreatWatchSettings] = None):
        """Initialize ingestion pipeline.

        Args:
            store: Article persistence
            fetcher: Feed fetcher (default built from settings)
            relevance_filter: Keyword filter
            deduplicator: In-batch deduplicator
            categorizer: Category and state classifier
            tracker: Update tracker to notify about new articles
            settings: Application settings (default: global settings)
        """
        self.settings = settings or get_settings()
        self.store = store
        self.fetcher = fetcher or FeedFetcher(
            max_concurrent=self.settings.processing.parallel_feeds,
            timeout=self.settings.limits.request_timeout,
        )
        self.relevance_filter = relevance_filter or RelevanceFilter()
        self.deduplicator = deduplicator or Deduplicator(
            threshold=self.settings.processing.duplicate_title_threshold
        )
        self.categorizer = categorizer or Categorizer()
        self.tracker = tracker
        self.logger = get_logger_for_component("ingestion_pipeline")

    async def refresh_all_feeds(self) -> IngestionSummary:
        """Run one full ingestion cycle.

        Returns:
            Counts of fetched, relevant and newly inserted articles
        """
        sources = self.settings.feeds.sources

        with PerformanceLogger(self.logger, "feed_refresh", sources=len(sources)):
            try:
                await self.store.ensure_sources(sources)
            except ThreatWatchError as e:
                self.logger.warning(f"Failed to register sources: {e}")

            fetched = await self.fetcher.fetch_all_feeds(sources)
            relevant = self.relevance_filter.filter_relevant_articles(fetched)
            unique = self.deduplicator.deduplicate(relevant)

            scraped_at = utc_now()
            classified = [self.categorizer.classify(article, scraped_at) for article in unique]

            inserted = await self._store_articles(classified)

        summary = IngestionSummary(fetched=len(fetched), relevant=len(relevant), inserted=inserted)
        self.logger.info(
            f"Feed refresh: {summary.fetched} fetched, {summary.relevant} relevant, "
            f"{summary.inserted} inserted"
        )

        if inserted > 0 and self.tracker is not None:
            newest = max(classified, key=lambda article: article.published_at)
            self.tracker.notify_news_update(inserted, newest.title)

        return summary

    async def _store_articles(self, articles: List[StoredArticle]) -> int:
        if not articles:
            return 0

        try:
            return await self.store.insert_articles_if_absent(articles)
        except Exception as e:
            self.logger.error(f"Failed to store {len(articles)} articles: {e}", exc_info=True)
            return 0

    async def get_recent_articles(self,
                                  days: int = 7,
                                  category: Optional[NewsCategory] = None,
                                  state: Optional[AustralianState] = None,
                                  limit: int = 20) -> List[StoredArticle]:
        """Recently published articles, newest first."""
        query = ArticleQuery(days=days, category=category, state=state, limit=limit)
        return await self.store.query_recent_articles(query)
