"""
Unit Tests for Update Tracker
=============================

Tests for subscriber-driven polling, change detection and broadcast isolation.
"""

import asyncio
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from threatwatch.database.models import NewsCategory, StoredArticle, ThreatLevel
from threatwatch.services.events import NewsUpdateEvent, ThreatUpdateEvent
from threatwatch.services.update_tracker import UpdateTracker


LEVEL_NAMES = {3: "PROBABLE", 4: "EXPECTED"}


class FakeThreatCache:
    """Serves whatever level the test sets."""

    def __init__(self, level=3):
        self.level = level
        self.error = None
        self.calls = 0

    async def get_threat_level(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return ThreatLevel(level=self.level, name=LEVEL_NAMES.get(self.level, "UNKNOWN"),
                           link="https://example.gov.au/threat")


def stored_article(title, url):
    return StoredArticle(
        title=title,
        url=url,
        published_at=datetime.now(timezone.utc),
        source_name="ABC News",
        category=NewsCategory.INCIDENT,
    )


@pytest.fixture
def threat_cache():
    return FakeThreatCache()


@pytest_asyncio.fixture
async def tracker(threat_cache, fake_article_store):
    tracker = UpdateTracker(threat_cache, fake_article_store, poll_interval=60.0)
    yield tracker
    task = tracker.poll_task
    tracker.close()
    if task is not None:
        await asyncio.gather(task, return_exceptions=True)


async def settle():
    """Let the poll task run its immediate first check."""
    await asyncio.sleep(0.01)


class TestSubscriptionLifecycle:
    """Polling runs only while someone listens."""

    @pytest.mark.asyncio
    async def test_first_subscriber_starts_polling(self, tracker, threat_cache):
        assert not tracker.is_polling

        tracker.subscribe(lambda event: None)
        await settle()

        assert tracker.is_polling
        assert tracker.subscriber_count == 1
        assert threat_cache.calls == 1

    @pytest.mark.asyncio
    async def test_polls_repeatedly_until_last_unsubscribe(self, threat_cache, fake_article_store):
        tracker = UpdateTracker(threat_cache, fake_article_store, poll_interval=0.01)
        unsubscribe = tracker.subscribe(lambda event: None)
        await asyncio.sleep(0.1)

        assert threat_cache.calls >= 2

        task = tracker.poll_task
        unsubscribe()
        await asyncio.gather(task, return_exceptions=True)
        calls = threat_cache.calls
        await asyncio.sleep(0.05)

        assert threat_cache.calls == calls

    @pytest.mark.asyncio
    async def test_subscribe_without_loop_leaves_no_subscriber(self, tracker):
        with pytest.raises(RuntimeError):
            await asyncio.to_thread(tracker.subscribe, lambda event: None)

        assert tracker.subscriber_count == 0

        tracker.subscribe(lambda event: None)

        assert tracker.subscriber_count == 1
        assert tracker.is_polling

    @pytest.mark.asyncio
    async def test_last_unsubscribe_stops_polling(self, tracker):
        unsubscribe = tracker.subscribe(lambda event: None)
        task = tracker.poll_task

        unsubscribe()
        await asyncio.gather(task, return_exceptions=True)

        assert task.cancelled()
        assert tracker.poll_task is None
        assert not tracker.is_polling

    @pytest.mark.asyncio
    async def test_additional_subscribers_share_one_poll_task(self, tracker):
        first = tracker.subscribe(lambda event: None)
        task = tracker.poll_task
        second = tracker.subscribe(lambda event: None)

        assert tracker.poll_task is task

        first()
        assert tracker.is_polling
        assert tracker.subscriber_count == 1

        second()
        assert tracker.poll_task is None

    @pytest.mark.asyncio
    async def test_unsubscribe_is_idempotent(self, tracker):
        first = tracker.subscribe(lambda event: None)
        tracker.subscribe(lambda event: None)

        first()
        first()

        assert tracker.subscriber_count == 1
        assert tracker.is_polling

    @pytest.mark.asyncio
    async def test_resubscribe_restarts_polling(self, tracker):
        unsubscribe = tracker.subscribe(lambda event: None)
        old_task = tracker.poll_task
        unsubscribe()

        tracker.subscribe(lambda event: None)

        assert tracker.poll_task is not None
        assert tracker.poll_task is not old_task

    @pytest.mark.asyncio
    async def test_close_drops_everything(self, tracker):
        tracker.subscribe(lambda event: None)
        tracker.subscribe(lambda event: None)

        tracker.close()

        assert tracker.subscriber_count == 0
        assert tracker.poll_task is None


class TestChangeDetection:
    """Diffing against the last observed values."""

    @pytest.mark.asyncio
    async def test_first_observation_only_seeds(self, tracker):
        events = []
        tracker.subscribe(events.append)
        await settle()

        assert events == []

    @pytest.mark.asyncio
    async def test_threat_level_change_is_broadcast(self, tracker, threat_cache):
        events = []
        tracker.subscribe(events.append)
        await settle()

        threat_cache.level = 4
        await tracker.check_for_updates()

        assert len(events) == 1
        event = events[0]
        assert isinstance(event, ThreatUpdateEvent)
        assert event.data.level == 4
        assert event.data.name == "EXPECTED"
        assert event.data.previous_level == 3

    @pytest.mark.asyncio
    async def test_unchanged_threat_level_is_silent(self, tracker):
        events = []
        tracker.subscribe(events.append)
        await settle()

        await tracker.check_for_updates()

        assert events == []

    @pytest.mark.asyncio
    async def test_new_article_is_broadcast(self, tracker, fake_article_store):
        events = []
        tracker.subscribe(events.append)
        await settle()

        fake_article_store.articles["https://e.com/1"] = stored_article(
            "Bomb threat at station", "https://e.com/1"
        )
        await tracker.check_for_updates()

        assert len(events) == 1
        event = events[0]
        assert isinstance(event, NewsUpdateEvent)
        assert event.data.count == 1
        assert event.data.latest_title == "Bomb threat at station"
        assert fake_article_store.queries[-1].limit == 1
        assert fake_article_store.queries[-1].days == 1

    @pytest.mark.asyncio
    async def test_check_failures_are_isolated(self, tracker, threat_cache, fake_article_store):
        events = []
        tracker.subscribe(events.append)
        await settle()

        threat_cache.error = RuntimeError("scrape failed")
        fake_article_store.articles["https://e.com/1"] = stored_article(
            "Police hunt suspect", "https://e.com/1"
        )
        await tracker.check_for_updates()

        assert [type(e) for e in events] == [NewsUpdateEvent]


class TestBroadcast:
    """Delivery to subscribers."""

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_block_others(self, tracker):
        received = []

        def broken(event):
            raise RuntimeError("subscriber bug")

        tracker.subscribe(broken)
        tracker.subscribe(received.append)

        tracker.notify_news_update(3, "Latest headline")

        assert len(received) == 1
        assert received[0].data.count == 3

    @pytest.mark.asyncio
    async def test_notify_threat_update(self, tracker):
        received = []
        tracker.subscribe(received.append)

        tracker.notify_threat_update(4, "EXPECTED", previous_level=3)

        assert received[0].to_dict()["type"] == "threat-update"
        assert received[0].to_dict()["data"] == {"level": 4, "name": "EXPECTED", "previous_level": 3}

    @pytest.mark.asyncio
    async def test_notify_news_update_accepts_zero_count(self, tracker):
        received = []
        tracker.subscribe(received.append)

        tracker.notify_news_update(0)

        assert received[0].data.count == 0

    @pytest.mark.asyncio
    async def test_unsubscribed_callback_receives_nothing(self, tracker):
        received = []
        unsubscribe = tracker.subscribe(received.append)
        unsubscribe()

        tracker.notify_news_update(1)

        assert received == []

    def test_from_settings(self, threat_cache, fake_article_store):
        from threatwatch.config.settings import ThreatWatchSettings

        settings = ThreatWatchSettings()
        tracker = UpdateTracker.from_settings(threat_cache, fake_article_store, settings=settings)

        assert tracker.poll_interval == settings.tracker.poll_interval_seconds
        assert tracker.news_window_days == settings.tracker.news_window_days
