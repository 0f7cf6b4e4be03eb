"""
RSS Feed Fetcher
===============

Concurrent RSS/Atom feed fetching with per-source failure isolation.
A source that times out, answers non-200 or serves garbage contributes
zero items; it never fails the batch or cancels its siblings.
"""

import asyncio
import calendar
import ssl
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

import aiohttp
import certifi
import feedparser

from ..config.settings import get_settings
from ..database.models import RawArticle, SourceConfig, utc_now
from ..ingestion.content_cleaner import ContentCleaner
from ..utils.logging import get_logger_for_component
from ..utils.validators import ContentValidator


@dataclass
class FetchResult:
    """Result of a single feed fetch operation."""

    source: SourceConfig
    success: bool
    articles: List[RawArticle] = field(default_factory=list)
    error: Optional[str] = None
    fetch_time: datetime = field(default_factory=utc_now)

    @property
    def article_count(self) -> int:
        return len(self.articles)


class FeedFetcher:
    """Concurrent RSS feed fetcher with error isolation."""

    USER_AGENT = "ThreatWatch/1.0 (+feed ingestion)"

    # Entry fields joined into the normalized body, in order
    CONTENT_FIELDS = ("summary", "description", "content")

    def __init__(self, max_concurrent: Optional[int] = None, timeout: Optional[int] = None,
                 cleaner: Optional[ContentCleaner] = None):
        """Initialize feed fetcher.

        Args:
            max_concurrent: Maximum concurrent feed fetches (default from config)
            timeout: Request timeout in seconds (default from config)
            cleaner: HTML cleaner used for entry bodies
        """
        if max_concurrent is None or timeout is None:
            settings = get_settings()
            max_concurrent = max_concurrent or settings.processing.parallel_feeds
            timeout = timeout or settings.limits.request_timeout
        self.max_concurrent = max_concurrent
        self.timeout = timeout
        self.cleaner = cleaner or ContentCleaner()
        self.logger = get_logger_for_component("feed_fetcher")

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @asynccontextmanager
    async def get_session(self):
        """Get configured aiohttp session."""
        connector = aiohttp.TCPConnector(
            ssl=self.ssl_context,
            limit=self.max_concurrent * 2,
            limit_per_host=5,
            enable_cleanup_closed=True,
        )

        timeout = aiohttp.ClientTimeout(total=self.timeout)

        headers = {
            "User-Agent": self.USER_AGENT,
            "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml, */*",
            "Accept-Encoding": "gzip, deflate",
        }

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=headers
        ) as session:
            yield session

    async def fetch_feed(self, source: SourceConfig, session: aiohttp.ClientSession) -> FetchResult:
        """Fetch and parse a single feed.

        Args:
            source: Configured feed source
            session: aiohttp session for requests

        Returns:
            FetchResult with articles or error information
        """
        start_time = utc_now()
        self.logger.debug(f"Fetching feed: {source.url}")

        try:
            async with session.get(source.url) as response:
                if response.status != 200:
                    error_msg = f"HTTP {response.status}: {response.reason}"
                    self.logger.warning(f"Feed fetch failed for {source.name}: {error_msg}")
                    return FetchResult(source=source, success=False, error=error_msg,
                                       fetch_time=start_time)

                content = await response.text()

            feed_data = feedparser.parse(content)

            if getattr(feed_data, "bozo", False) and not feed_data.entries:
                error_msg = f"Feed parse error: {getattr(feed_data, 'bozo_exception', 'invalid XML')}"
                self.logger.warning(f"Feed parse failed for {source.name}: {error_msg}")
                return FetchResult(source=source, success=False, error=error_msg,
                                   fetch_time=start_time)

            articles = self.parse_entries(feed_data.entries, source, start_time)

            self.logger.info(
                f"Fetched {len(articles)} articles from {source.name} "
                f"in {(utc_now() - start_time).total_seconds():.2f}s"
            )
            return FetchResult(source=source, success=True, articles=articles,
                               fetch_time=start_time)

        except asyncio.TimeoutError:
            error_msg = f"Request timeout after {self.timeout}s"
            self.logger.warning(f"Feed fetch timeout for {source.name}: {error_msg}")
            return FetchResult(source=source, success=False, error=error_msg, fetch_time=start_time)

        except aiohttp.ClientError as e:
            error_msg = f"Network error: {e}"
            self.logger.warning(f"Feed fetch failed for {source.name}: {error_msg}")
            return FetchResult(source=source, success=False, error=error_msg, fetch_time=start_time)

    def parse_entries(self, entries: Sequence[Any], source: SourceConfig,
                      fetched_at: datetime) -> List[RawArticle]:
        """Convert feedparser entries into RawArticle models.

        Entries without a link or guid are dropped.
        """
        articles = []

        for entry in entries:
            url = (entry.get("link") or entry.get("id") or "").strip()
            if not url:
                self.logger.debug(f"Entry missing URL in feed {source.name}, skipping")
                continue

            articles.append(RawArticle(
                title=ContentValidator.sanitize_title(entry.get("title")),
                url=url,
                content_normalized=self._extract_content(entry),
                published_at=self._parse_date(entry) or fetched_at,
                source_name=source.name,
            ))

        return articles

    def _extract_content(self, entry: Any) -> str:
        """Join the entry's text fields into one normalized string."""
        fragments = []

        for field_name in self.CONTENT_FIELDS:
            raw_content = entry.get(field_name)

            # Atom content is a list of {type, value} dicts
            if isinstance(raw_content, list):
                fragments.extend(
                    item.get("value", "") for item in raw_content if isinstance(item, dict)
                )
            elif isinstance(raw_content, str):
                fragments.append(raw_content)

        # feedparser aliases description to summary
        unique_fragments = list(dict.fromkeys(f for f in fragments if f))
        return self.cleaner.normalize_for_matching(*unique_fragments)

    def _parse_date(self, entry: Any) -> Optional[datetime]:
        """Parse publication date from entry as UTC."""
        for field_name in ("published_parsed", "updated_parsed", "created_parsed"):
            date_tuple = entry.get(field_name)
            if date_tuple:
                try:
                    # feedparser normalizes parsed dates to UTC struct_time
                    return datetime.fromtimestamp(calendar.timegm(date_tuple), tz=timezone.utc)
                except (ValueError, OverflowError, TypeError):
                    continue

        return None

    async def fetch_feeds_batch(self, sources: Sequence[SourceConfig]) -> List[FetchResult]:
        """Fetch multiple feeds concurrently.

        Args:
            sources: Feed sources to fetch

        Returns:
            One FetchResult per source, in source order
        """
        if not sources:
            return []

        self.logger.info(f"Starting concurrent fetch of {len(sources)} feeds")

        async with self.get_session() as session:
            semaphore = asyncio.Semaphore(self.max_concurrent)

            async def fetch_with_semaphore(source: SourceConfig) -> FetchResult:
                async with semaphore:
                    return await self.fetch_feed(source, session)

            outcomes = await asyncio.gather(
                *(fetch_with_semaphore(source) for source in sources),
                return_exceptions=True,
            )

        results = []
        for source, outcome in zip(sources, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.error(f"Feed failure for {source.name}: {outcome}", exc_info=outcome)
                results.append(FetchResult(source=source, success=False, error=str(outcome)))
            else:
                results.append(outcome)

        successful = sum(1 for r in results if r.success)
        total_articles = sum(r.article_count for r in results)
        self.logger.info(
            f"Feed fetch complete: {successful}/{len(results)} feeds successful, "
            f"{total_articles} total articles"
        )

        return results

    async def fetch_all_feeds(self, sources: Optional[Sequence[SourceConfig]] = None) -> List[RawArticle]:
        """Fetch every source and flatten the items.

        Args:
            sources: Sources to fetch (default: configured feeds)

        Returns:
            All parsed items, grouped by source in source order
        """
        if sources is None:
            sources = get_settings().feeds.sources

        results = await self.fetch_feeds_batch(sources)

        articles: List[RawArticle] = []
        for result in results:
            articles.extend(result.articles)
        return articles
