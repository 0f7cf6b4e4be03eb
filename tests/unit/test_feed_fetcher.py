"""
Unit Tests for RSS Feed Fetcher
===============================

Tests for feed parsing, entry normalization and per-source failure isolation.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import aiohttp
import pytest

from threatwatch.database.models import SourceConfig
from threatwatch.processing.feed_fetcher import FeedFetcher, FetchResult


SAMPLE_RSS_FEED = '''<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
    <channel>
        <title>Test News</title>
        <link>https://news.example.com</link>
        <description>Test feed for unit testing</description>
        <item>
            <title>Police arrest man in Sydney CBD</title>
            <link>https://news.example.com/arrest</link>
            <description>&lt;strong&gt;Police&lt;/strong&gt; arrested a man</description>
            <pubDate>Thu, 05 Sep 2024 12:00:00 GMT</pubDate>
        </item>
        <item>
            <link>https://news.example.com/untitled</link>
            <description>Emergency services respond</description>
            <pubDate>Wed, 04 Sep 2024 15:30:00 GMT</pubDate>
        </item>
        <item>
            <title>Guid only story</title>
            <guid>https://news.example.com/guid-only</guid>
            <pubDate>Wed, 04 Sep 2024 10:00:00 GMT</pubDate>
        </item>
        <item>
            <title>Story with nowhere to go</title>
            <description>No link and no guid</description>
        </item>
        <item>
            <title>Undated security alert</title>
            <link>https://news.example.com/undated</link>
        </item>
    </channel>
</rss>'''

SAMPLE_ATOM_FEED = '''<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
    <title>Atom News</title>
    <id>https://atom.example.com/feed</id>
    <updated>2024-09-07T00:00:01Z</updated>
    <entry>
        <title>Counter-terrorism raid in Melbourne</title>
        <link href="https://atom.example.com/raid"/>
        <id>https://atom.example.com/raid</id>
        <updated>2024-09-05T12:00:00Z</updated>
        <summary>Officers executed warrants</summary>
        <content type="html">&lt;p&gt;Full &lt;em&gt;story&lt;/em&gt; text&lt;/p&gt;&lt;script&gt;track()&lt;/script&gt;</content>
    </entry>
</feed>'''


RSS_SOURCE = SourceConfig(name="Test News", url="https://news.example.com/rss")
ATOM_SOURCE = SourceConfig(name="Atom News", url="https://atom.example.com/feed")
BROKEN_SOURCE = SourceConfig(name="Broken", url="https://broken.example.com/rss")


@pytest.fixture
def fetcher():
    return FeedFetcher(max_concurrent=2, timeout=10)


def use_session(fetcher, session):
    """Route the fetcher's batch calls through a mocked session."""
    @asynccontextmanager
    async def _session():
        yield session

    fetcher.get_session = _session


class TestFetchFeed:
    """Single feed fetch and entry parsing."""

    @pytest.mark.asyncio
    async def test_rss_entries_are_normalized(self, fetcher, mock_http_session):
        session = mock_http_session({RSS_SOURCE.url: (200, SAMPLE_RSS_FEED)})

        result = await fetcher.fetch_feed(RSS_SOURCE, session)

        assert result.success
        assert result.error is None
        urls = [article.url for article in result.articles]
        assert urls == [
            "https://news.example.com/arrest",
            "https://news.example.com/untitled",
            "https://news.example.com/guid-only",
            "https://news.example.com/undated",
        ]

        first = result.articles[0]
        assert first.title == "Police arrest man in Sydney CBD"
        assert first.content_normalized == "police arrested a man"
        assert first.published_at == datetime(2024, 9, 5, 12, 0, tzinfo=timezone.utc)
        assert first.source_name == "Test News"

    @pytest.mark.asyncio
    async def test_missing_title_becomes_untitled(self, fetcher, mock_http_session):
        session = mock_http_session({RSS_SOURCE.url: (200, SAMPLE_RSS_FEED)})

        result = await fetcher.fetch_feed(RSS_SOURCE, session)

        untitled = next(a for a in result.articles if a.url.endswith("/untitled"))
        assert untitled.title == "Untitled"
        assert untitled.content_normalized == "emergency services respond"

    @pytest.mark.asyncio
    async def test_missing_date_falls_back_to_fetch_time(self, fetcher, mock_http_session):
        session = mock_http_session({RSS_SOURCE.url: (200, SAMPLE_RSS_FEED)})

        before = datetime.now(timezone.utc)
        result = await fetcher.fetch_feed(RSS_SOURCE, session)
        after = datetime.now(timezone.utc)

        undated = next(a for a in result.articles if a.url.endswith("/undated"))
        assert before <= undated.published_at <= after
        assert undated.published_at == result.fetch_time

    @pytest.mark.asyncio
    async def test_atom_content_is_stripped_of_markup(self, fetcher, mock_http_session):
        session = mock_http_session({ATOM_SOURCE.url: (200, SAMPLE_ATOM_FEED)})

        result = await fetcher.fetch_feed(ATOM_SOURCE, session)

        assert result.success
        assert result.article_count == 1
        article = result.articles[0]
        assert article.url == "https://atom.example.com/raid"
        assert "officers executed warrants" in article.content_normalized
        assert "full story text" in article.content_normalized
        assert "track()" not in article.content_normalized
        assert "<p>" not in article.content_normalized

    @pytest.mark.asyncio
    async def test_http_error_yields_no_articles(self, fetcher, mock_http_session):
        session = mock_http_session({RSS_SOURCE.url: (500, "")})

        result = await fetcher.fetch_feed(RSS_SOURCE, session)

        assert not result.success
        assert result.articles == []
        assert result.error.startswith("HTTP 500")

    @pytest.mark.asyncio
    async def test_timeout_is_reported(self, fetcher, mock_http_session):
        session = mock_http_session({RSS_SOURCE.url: asyncio.TimeoutError()})

        result = await fetcher.fetch_feed(RSS_SOURCE, session)

        assert not result.success
        assert result.error == "Request timeout after 10s"

    @pytest.mark.asyncio
    async def test_network_error_is_reported(self, fetcher, mock_http_session):
        session = mock_http_session({RSS_SOURCE.url: aiohttp.ClientConnectionError("refused")})

        result = await fetcher.fetch_feed(RSS_SOURCE, session)

        assert not result.success
        assert "Network error" in result.error

    @pytest.mark.asyncio
    async def test_garbage_body_is_a_parse_failure(self, fetcher, mock_http_session):
        session = mock_http_session({RSS_SOURCE.url: (200, "this is <<< not a feed")})

        result = await fetcher.fetch_feed(RSS_SOURCE, session)

        assert not result.success
        assert result.articles == []
        assert "parse error" in result.error


class TestFetchFeedsBatch:
    """Concurrent fetching across sources."""

    @pytest.mark.asyncio
    async def test_failed_source_does_not_affect_others(self, fetcher, mock_http_session):
        session = mock_http_session({
            RSS_SOURCE.url: (200, SAMPLE_RSS_FEED),
            BROKEN_SOURCE.url: (500, ""),
            ATOM_SOURCE.url: (200, SAMPLE_ATOM_FEED),
        })
        use_session(fetcher, session)

        results = await fetcher.fetch_feeds_batch([RSS_SOURCE, BROKEN_SOURCE, ATOM_SOURCE])

        assert [r.source.name for r in results] == ["Test News", "Broken", "Atom News"]
        assert [r.success for r in results] == [True, False, True]
        assert results[1].article_count == 0

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_isolated(self, fetcher, mock_http_session):
        session = mock_http_session({
            BROKEN_SOURCE.url: RuntimeError("boom"),
            ATOM_SOURCE.url: (200, SAMPLE_ATOM_FEED),
        })
        use_session(fetcher, session)

        results = await fetcher.fetch_feeds_batch([BROKEN_SOURCE, ATOM_SOURCE])

        assert isinstance(results[0], FetchResult)
        assert not results[0].success
        assert results[0].error == "boom"
        assert results[1].success

    @pytest.mark.asyncio
    async def test_empty_source_list(self, fetcher):
        assert await fetcher.fetch_feeds_batch([]) == []

    @pytest.mark.asyncio
    async def test_fetch_all_feeds_flattens_in_source_order(self, fetcher, mock_http_session):
        session = mock_http_session({
            ATOM_SOURCE.url: (200, SAMPLE_ATOM_FEED),
            BROKEN_SOURCE.url: (503, ""),
            RSS_SOURCE.url: (200, SAMPLE_RSS_FEED),
        })
        use_session(fetcher, session)

        articles = await fetcher.fetch_all_feeds([ATOM_SOURCE, BROKEN_SOURCE, RSS_SOURCE])

        assert len(articles) == 5
        assert articles[0].source_name == "Atom News"
        assert all(a.source_name == "Test News" for a in articles[1:])
