"""
Threat Level Cache
==================

TTL cache in front of the threat level scraper with a staleness fallback
chain. Readings are served, in order of preference, from:

1. the in-memory entry while it is fresher than the TTL (tagged ``cache``)
2. the persisted history when its latest record is fresher than the TTL
3. a live scrape, persisted when it differs from the latest record
4. the in-memory entry up to the max-stale age (tagged ``fallback``)
5. the latest persisted record of any age (tagged ``database``)

Concurrent callers during a refresh share one in-flight task.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..database.models import CacheEntry, ThreatLevel, ThreatLevelSource, utc_now
from ..storage.base import ThreatLevelStore
from ..utils.exceptions import ThreatLevelUnavailableError
from ..utils.logging import get_logger_for_component
from .fetcher import ThreatLevelFetcher


DEFAULT_TTL = timedelta(hours=1)
DEFAULT_MAX_STALE = timedelta(hours=24)


class ThreatLevelCache:
    """Single-flight, TTL-bounded access to the current threat level."""

    def __init__(self,
                 fetcher: ThreatLevelFetcher,
                 store: ThreatLevelStore,
                 ttl: timedelta = DEFAULT_TTL,
                 max_stale: timedelta = DEFAULT_MAX_STALE,
                 clock: Callable[[], datetime] = utc_now):
        """Initialize threat level cache.

        Args:
            fetcher: Scraper for live readings
            store: Persisted reading history
            ttl: Freshness window for cached and persisted readings
            max_stale: Oldest in-memory reading served when scraping fails
            clock: Source of the current UTC time
        """
        if max_stale < ttl:
            raise ValueError("max_stale must not be shorter than ttl")

        self.fetcher = fetcher
        self.store = store
        self.ttl = ttl
        self.max_stale = max_stale
        self.clock = clock
        self.logger = get_logger_for_component("threat_cache")

        self._entry: Optional[CacheEntry] = None
        self._inflight: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, fetcher: ThreatLevelFetcher, store: ThreatLevelStore,
                      settings=None) -> "ThreatLevelCache":
        if settings is None:
            from ..config.settings import get_settings
            settings = get_settings()

        return cls(
            fetcher=fetcher,
            store=store,
            ttl=timedelta(seconds=settings.threat.cache_ttl_seconds),
            max_stale=timedelta(seconds=settings.threat.max_stale_seconds),
        )

    @property
    def entry(self) -> Optional[CacheEntry]:
        return self._entry

    @property
    def is_refreshing(self) -> bool:
        return self._inflight is not None

    def invalidate(self) -> None:
        """Drop the in-memory entry; persisted history is untouched."""
        self._entry = None

    async def get_threat_level(self) -> ThreatLevel:
        """Current threat level with a provenance tag.

        Raises:
            ThreatLevelUnavailableError: When scraping fails and nothing is cached or stored
        """
        now = self.clock()

        if self._entry is not None and self._entry.age_seconds(now) < self.ttl.total_seconds():
            data = self._entry.data
            if data.source == ThreatLevelSource.SCRAPED:
                return data.with_source(ThreatLevelSource.CACHE)
            return data

        if self._inflight is None:
            self._inflight = asyncio.get_running_loop().create_task(self._refresh(now))
            self._inflight.add_done_callback(self._consume_refresh_error)

        # A cancelled caller must not cancel the refresh other callers wait on
        return await asyncio.shield(self._inflight)

    def _consume_refresh_error(self, task: asyncio.Task) -> None:
        # Marks the error retrieved even when every waiter was cancelled
        if not task.cancelled() and task.exception() is not None:
            self.logger.debug(f"Threat level refresh failed: {task.exception()}")

    async def _load_latest(self) -> Optional[ThreatLevel]:
        try:
            return await self.store.load_latest_threat_level()
        except Exception as e:
            self.logger.error(f"Failed to load latest threat level: {e}")
            return None

    async def _record(self, threat_level: ThreatLevel) -> None:
        try:
            await self.store.record_threat_level(threat_level)
        except Exception as e:
            self.logger.error(f"Failed to record threat level: {e}")

    async def _refresh(self, now: datetime) -> ThreatLevel:
        try:
            latest_stored = await self._load_latest()
            if self._entry is None and latest_stored is not None:
                self._entry = CacheEntry(data=latest_stored, cached_at=latest_stored.fetched_at)

            if latest_stored is not None and \
                    (now - latest_stored.fetched_at).total_seconds() < self.ttl.total_seconds():
                return latest_stored

            try:
                scraped = await self.fetcher.fetch_threat_level()
            except Exception as e:
                self.logger.error(f"Failed to refresh threat level: {e}")
                return self._fallback(now, latest_stored, e)

            if not scraped.same_reading(latest_stored):
                self.logger.info(f"Threat level updated to {scraped.level} ({scraped.name})")
                await self._record(scraped)

            self._entry = CacheEntry(data=scraped, cached_at=scraped.fetched_at)
            return scraped

        finally:
            self._inflight = None

    def _fallback(self, now: datetime, latest_stored: Optional[ThreatLevel],
                  error: Exception) -> ThreatLevel:
        if self._entry is not None and self._entry.age_seconds(now) < self.max_stale.total_seconds():
            self.logger.warning(
                f"Serving cached threat level aged {self._entry.age_seconds(now):.0f}s as fallback"
            )
            return self._entry.data.with_source(ThreatLevelSource.FALLBACK)

        if latest_stored is not None:
            fallback = latest_stored.with_source(ThreatLevelSource.DATABASE)
            self._entry = CacheEntry(data=fallback, cached_at=fallback.fetched_at)
            self.logger.warning("Serving persisted threat level as fallback")
            return fallback

        raise ThreatLevelUnavailableError(
            context={"cause": str(error)}
        ) from error
