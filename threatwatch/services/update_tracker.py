"""
Update Tracker Service
======================

Watches the threat level and the article store for changes and broadcasts
events to live subscribers. Polling runs only while someone is listening:
the first subscriber starts the poll task and the last one to leave stops it.
"""

import asyncio
from typing import Callable, List, Optional

from ..database.models import ArticleQuery
from ..storage.base import ArticleStore
from ..utils.logging import get_logger_for_component
from .events import (
    DomainEvent, NewsUpdateData, NewsUpdateEvent, ThreatUpdateData, ThreatUpdateEvent
)


Subscriber = Callable[[DomainEvent], None]
Unsubscribe = Callable[[], None]

DEFAULT_POLL_INTERVAL = 60.0


class UpdateTracker:
    """Subscriber-driven change detector.

    Subscribers are plain callables; they run on the event loop and must not
    block. An exception raised by one subscriber is logged and does not stop
    delivery to the others.
    """

    def __init__(self,
                 threat_cache,
                 article_store: ArticleStore,
                 poll_interval: float = DEFAULT_POLL_INTERVAL,
                 news_window_days: int = 1):
        """Initialize update tracker.

        Args:
            threat_cache: Object exposing ``async get_threat_level()``
            article_store: Store probed for recent articles
            poll_interval: Seconds between checks while subscribed
            news_window_days: Publication window of the news probe
        """
        self.threat_cache = threat_cache
        self.article_store = article_store
        self.poll_interval = poll_interval
        self.news_window_days = news_window_days
        self.logger = get_logger_for_component("update_tracker")

        self._subscribers: List[Subscriber] = []
        self._poll_task: Optional[asyncio.Task] = None
        self._last_threat_level: Optional[int] = None
        self._last_news_count: Optional[int] = None

    @classmethod
    def from_settings(cls, threat_cache, article_store: ArticleStore, settings=None) -> "UpdateTracker":
        if settings is None:
            from ..config.settings import get_settings
            settings = get_settings()

        return cls(
            threat_cache=threat_cache,
            article_store=article_store,
            poll_interval=settings.tracker.poll_interval_seconds,
            news_window_days=settings.tracker.news_window_days,
        )

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def poll_task(self) -> Optional[asyncio.Task]:
        return self._poll_task

    def subscribe(self, callback: Subscriber) -> Unsubscribe:
        """Register a subscriber; must be called from a running event loop.

        Returns:
            Handle that removes this subscription; calling it again is a no-op

        Raises:
            RuntimeError: If no event loop is running; no subscription is made
        """
        loop = asyncio.get_running_loop()
        self._subscribers.append(callback)

        if len(self._subscribers) == 1:
            self._start_polling(loop)

        subscribed = True

        def unsubscribe() -> None:
            nonlocal subscribed
            if not subscribed:
                return
            subscribed = False

            self._subscribers.remove(callback)
            if not self._subscribers:
                self._stop_polling()

        return unsubscribe

    def _start_polling(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._poll_task is not None:
            return

        self._poll_task = loop.create_task(self._poll_loop())
        self.logger.info(f"Started polling every {self.poll_interval}s")

    def _stop_polling(self) -> None:
        if self._poll_task is None:
            return

        self._poll_task.cancel()
        self._poll_task = None
        self.logger.info("Stopped polling, no subscribers left")

    async def _poll_loop(self) -> None:
        while True:
            await self.check_for_updates()
            await asyncio.sleep(self.poll_interval)

    async def check_for_updates(self) -> None:
        """Run one threat check and one news check concurrently."""
        await asyncio.gather(self._check_threat_level(), self._check_news_updates())

    async def _check_threat_level(self) -> None:
        try:
            threat = await self.threat_cache.get_threat_level()
        except Exception as e:
            self.logger.error(f"Failed to check threat level: {e}")
            return

        previous = self._last_threat_level
        if previous is not None and threat.level != previous:
            self.broadcast(ThreatUpdateEvent(
                data=ThreatUpdateData(level=threat.level, name=threat.name, previous_level=previous)
            ))

        self._last_threat_level = threat.level

    async def _check_news_updates(self) -> None:
        try:
            articles = await self.article_store.query_recent_articles(
                ArticleQuery(days=self.news_window_days, limit=1)
            )
        except Exception as e:
            self.logger.error(f"Failed to check news updates: {e}")
            return

        current_count = len(articles)
        previous = self._last_news_count
        if previous is not None and current_count > previous:
            self.broadcast(NewsUpdateEvent(
                data=NewsUpdateData(
                    count=current_count - previous,
                    latest_title=articles[0].title if articles else None,
                )
            ))

        self._last_news_count = current_count

    def broadcast(self, event: DomainEvent) -> None:
        """Deliver an event to every current subscriber."""
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception as e:
                self.logger.error(f"Subscriber error on {event.type}: {e}", exc_info=True)

    def notify_threat_update(self, level: int, name: str, previous_level: Optional[int] = None) -> None:
        self.broadcast(ThreatUpdateEvent(
            data=ThreatUpdateData(level=level, name=name, previous_level=previous_level)
        ))

    def notify_news_update(self, count: int, latest_title: Optional[str] = None) -> None:
        self.broadcast(NewsUpdateEvent(
            data=NewsUpdateData(count=count, latest_title=latest_title)
        ))

    def close(self) -> None:
        """Drop all subscribers and stop polling."""
        self._subscribers.clear()
        self._stop_polling()
