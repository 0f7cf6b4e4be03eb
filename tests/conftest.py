"""
PyTest Configuration and Fixtures
=================================

Shared fixtures for ThreatWatch tests: a throwaway SQLite database,
article factories and in-memory fakes for stores and fetchers.
"""

import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
_test_dir = Path(tempfile.gettempdir()) / "threatwatch_tests"
os.environ["THREATWATCH_DATABASE__PATH"] = str(_test_dir / "threatwatch_test.db")
os.environ["THREATWATCH_LOGGING__FILE_PATH"] = ""
os.environ["THREATWATCH_LOGGING__CONSOLE_LOGGING"] = "false"
os.environ["THREATWATCH_DEBUG"] = "true"


FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

THREAT_URL = (
    "https://www.nationalsecurity.gov.au/national-threat-level/"
    "current-national-terrorism-threat-level"
)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def test_database(tmp_path):
    """Fresh file-backed database with schema, one per test."""
    from threatwatch.database.schema import DatabaseSchema

    db_path = tmp_path / "threatwatch_test.db"
    DatabaseSchema(str(db_path)).create_tables()
    return str(db_path)


@pytest.fixture
def db_connection(test_database):
    """Create a database connection manager for testing."""
    from threatwatch.database.connection import DatabaseConnection

    connection = DatabaseConnection(test_database, pool_size=2)
    yield connection

    connection.close_all_connections()


@pytest.fixture
def article_repository(db_connection):
    from threatwatch.storage.article_repository import ArticleRepository

    return ArticleRepository(db_connection)


@pytest.fixture
def threat_level_repository(db_connection):
    from threatwatch.storage.threat_level_repository import ThreatLevelRepository

    return ThreatLevelRepository(db_connection)


# ============================================================================
# Model Factories
# ============================================================================


@pytest.fixture
def make_raw_article():
    """Factory for RawArticle with sensible defaults."""
    from threatwatch.database.models import RawArticle, utc_now

    def _make(title="Police investigate security incident",
              url="https://example.com/story",
              content="",
              published_at=None,
              source_name="ABC News"):
        return RawArticle(
            title=title,
            url=url,
            content_normalized=content,
            published_at=published_at or utc_now(),
            source_name=source_name,
        )

    return _make


@pytest.fixture
def make_threat_level():
    """Factory for ThreatLevel readings."""
    from threatwatch.database.models import ThreatLevel, ThreatLevelSource

    def _make(level=3, name="PROBABLE", description="Terrorist attack is probable",
              fetched_at=None, source=ThreatLevelSource.SCRAPED):
        return ThreatLevel(
            level=level,
            name=name,
            description=description,
            link=THREAT_URL,
            fetched_at=fetched_at or FIXED_NOW,
            source=source,
        )

    return _make


# ============================================================================
# Fakes
# ============================================================================


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeThreatLevelStore:
    """In-memory ThreatLevelStore recording calls."""

    def __init__(self, latest=None, fail_load=False, fail_record=False):
        self.latest = latest
        self.fail_load = fail_load
        self.fail_record = fail_record
        self.recorded: List = []
        self.load_calls = 0

    async def load_latest_threat_level(self):
        self.load_calls += 1
        if self.fail_load:
            raise RuntimeError("load failed")
        return self.latest

    async def record_threat_level(self, threat_level):
        if self.fail_record:
            raise RuntimeError("record failed")
        self.recorded.append(threat_level)


class FakeThreatFetcher:
    """Scripted fetcher: each call pops the next result or raises it."""

    def __init__(self, *results, delay: float = 0.0):
        self.results = list(results)
        self.delay = delay
        self.calls = 0

    async def fetch_threat_level(self):
        import asyncio

        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, BaseException):
            raise result
        return result


class FakeArticleStore:
    """In-memory ArticleStore keyed by URL."""

    def __init__(self, fail_insert=False):
        self.articles = {}
        self.fail_insert = fail_insert
        self.sources = []
        self.queries = []

    async def insert_articles_if_absent(self, articles):
        if self.fail_insert:
            from threatwatch.utils.exceptions import DatabaseError
            raise DatabaseError("insert failed")
        inserted = 0
        for article in articles:
            if article.url not in self.articles:
                self.articles[article.url] = article
                inserted += 1
        return inserted

    async def query_recent_articles(self, query):
        self.queries.append(query)
        ordered = sorted(self.articles.values(), key=lambda a: a.published_at, reverse=True)
        return ordered[:query.limit]

    async def ensure_sources(self, sources):
        self.sources = list(sources)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_threat_store_cls():
    return FakeThreatLevelStore


@pytest.fixture
def fake_threat_fetcher_cls():
    return FakeThreatFetcher


@pytest.fixture
def fake_article_store():
    return FakeArticleStore()


@pytest.fixture
def fake_article_store_cls():
    return FakeArticleStore


# ============================================================================
# HTTP Mocking
# ============================================================================


@pytest.fixture
def mock_http_session():
    """Build an aiohttp-like session whose ``get`` serves canned responses.

    Usage:
        session = mock_http_session({"https://a/feed": (200, "<rss/>")})
    """
    from unittest.mock import AsyncMock, MagicMock

    def _build(responses):
        session = MagicMock()
        session.requested = []

        def _get(url, **kwargs):
            session.requested.append((url, kwargs))
            outcome = responses[url]
            if callable(outcome):
                outcome = outcome()

            context_manager = MagicMock()
            if isinstance(outcome, BaseException):
                context_manager.__aenter__ = AsyncMock(side_effect=outcome)
            else:
                status, body = outcome
                response = MagicMock()
                response.status = status
                response.reason = "OK" if status == 200 else "Error"
                response.text = AsyncMock(return_value=body)
                context_manager.__aenter__ = AsyncMock(return_value=response)
            context_manager.__aexit__ = AsyncMock(return_value=False)
            return context_manager

        session.get = MagicMock(side_effect=_get)
        return session

    return _build
