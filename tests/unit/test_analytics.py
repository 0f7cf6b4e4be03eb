"""
Unit Tests for Analytics Service
================================
"""

from datetime import datetime, timedelta, timezone

import pytest

from threatwatch.services.analytics import AnalyticsService, _percentage


def insert_article(db, url, published_at, category="incident", state=None):
    db.execute_update(
        """
        INSERT INTO news_articles
        (title, content, source_name, source_url, published_at, category, state, scraped_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (f"Story {url}", None, "ABC News", url, published_at.isoformat(),
         category, state, published_at.isoformat())
    )


def insert_threat_level(db, level, name, scraped_at):
    db.execute_update(
        """
        INSERT INTO threat_levels (level_number, level_name, description, source_url, scraped_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (level, name, "", "https://example.gov.au/threat", scraped_at.isoformat())
    )


@pytest.fixture
def analytics(db_connection):
    return AnalyticsService(db_connection)


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


class TestThreatTimeline:

    def test_latest_reading_per_day_oldest_first(self, analytics, db_connection, now):
        three_days_ago = now - timedelta(days=3)
        yesterday = (now - timedelta(days=1)).replace(hour=1)
        insert_threat_level(db_connection, 3, "PROBABLE", three_days_ago)
        insert_threat_level(db_connection, 3, "PROBABLE", yesterday)
        insert_threat_level(db_connection, 4, "EXPECTED", yesterday.replace(hour=5))

        timeline = analytics.get_threat_timeline(days=90)

        assert [(p.date, p.level, p.level_name) for p in timeline] == [
            (three_days_ago.date().isoformat(), 3, "PROBABLE"),
            (yesterday.date().isoformat(), 4, "EXPECTED"),
        ]

    def test_window_excludes_old_readings(self, analytics, db_connection, now):
        insert_threat_level(db_connection, 2, "POSSIBLE", now - timedelta(days=200))

        assert analytics.get_threat_timeline(days=90) == []


class TestDistributions:

    def test_news_volume_by_day(self, analytics, db_connection, now):
        two_days_ago = now - timedelta(days=2)
        insert_article(db_connection, "https://e.com/1", two_days_ago)
        insert_article(db_connection, "https://e.com/2", two_days_ago)
        insert_article(db_connection, "https://e.com/3", now - timedelta(minutes=5))
        insert_article(db_connection, "https://e.com/old", now - timedelta(days=60))

        volume = analytics.get_news_volume(days=30)

        assert [(p.date, p.count) for p in volume] == [
            (two_days_ago.date().isoformat(), 2),
            ((now - timedelta(minutes=5)).date().isoformat(), 1),
        ]

    def test_state_distribution_excludes_untagged(self, analytics, db_connection, now):
        recent = now - timedelta(hours=1)
        for i in range(3):
            insert_article(db_connection, f"https://e.com/nsw{i}", recent, state="NSW")
        insert_article(db_connection, "https://e.com/vic", recent, state="VIC")
        insert_article(db_connection, "https://e.com/none", recent)

        distribution = analytics.get_state_distribution(days=30)

        assert [(d.state, d.count, d.percentage) for d in distribution] == [
            ("NSW", 3, 75),
            ("VIC", 1, 25),
        ]

    def test_category_distribution_rounds_half_up(self, analytics, db_connection, now):
        recent = now - timedelta(hours=1)
        insert_article(db_connection, "https://e.com/a1", recent, category="arrest")
        insert_article(db_connection, "https://e.com/a2", recent, category="arrest")
        insert_article(db_connection, "https://e.com/i1", recent, category="incident")

        distribution = analytics.get_category_distribution(days=30)

        assert [(d.category, d.count, d.percentage) for d in distribution] == [
            ("arrest", 2, 67),
            ("incident", 1, 33),
        ]

    @pytest.mark.parametrize("count,total,expected", [
        (1, 8, 13),
        (1, 3, 33),
        (0, 5, 0),
        (3, 0, 0),
    ])
    def test_percentage(self, count, total, expected):
        assert _percentage(count, total) == expected


class TestSummary:

    def test_defaults_without_data(self, analytics):
        summary = analytics.get_summary()

        assert summary.current_threat_level == 3
        assert summary.current_threat_name == "PROBABLE"
        assert summary.total_articles == 0
        assert summary.most_active_state is None
        assert summary.dominant_category is None

    def test_summary_with_data(self, analytics, db_connection, now):
        insert_threat_level(db_connection, 4, "EXPECTED", now - timedelta(hours=2))
        insert_article(db_connection, "https://e.com/1", now - timedelta(hours=1),
                       category="arrest", state="QLD")
        insert_article(db_connection, "https://e.com/2", now - timedelta(days=3),
                       category="arrest", state="QLD")
        insert_article(db_connection, "https://e.com/3", now - timedelta(days=3),
                       category="policy", state="WA")
        insert_article(db_connection, "https://e.com/4", now - timedelta(days=20))

        summary = analytics.get_summary()

        assert summary.current_threat_level == 4
        assert summary.current_threat_name == "EXPECTED"
        assert summary.total_articles == 4
        assert summary.articles_last_24h == 1
        assert summary.articles_last_7d == 3
        assert summary.most_active_state == "QLD"
        assert summary.dominant_category == "arrest"

    def test_analytics_bundle(self, analytics, db_connection, now):
        insert_article(db_connection, "https://e.com/1", now - timedelta(hours=1), state="SA")

        data = analytics.get_analytics_data().to_dict()

        assert set(data) == {
            "summary", "threat_timeline", "news_volume",
            "state_distribution", "category_distribution",
        }
        assert data["summary"]["total_articles"] == 1
        assert data["state_distribution"] == [{"state": "SA", "count": 1, "percentage": 100}]
