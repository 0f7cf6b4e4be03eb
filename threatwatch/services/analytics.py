"""
Analytics Service
=================

Aggregate views over stored articles and threat level history: the threat
timeline, daily news volume, state and category distributions and a
headline summary.
"""

from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import AustralianState, utc_now
from ..utils.logging import get_logger_for_component


DEFAULT_THREAT_LEVEL = 3
DEFAULT_THREAT_NAME = "PROBABLE"
TIMELINE_ROW_LIMIT = 100
OTHER_STATE = "OTHER"

KNOWN_STATES = {state.value for state in AustralianState}


@dataclass
class ThreatTimelinePoint:
    date: str
    level: int
    level_name: str


@dataclass
class NewsVolumePoint:
    date: str
    count: int


@dataclass
class StateDistribution:
    state: str
    count: int
    percentage: int


@dataclass
class CategoryDistribution:
    category: str
    count: int
    percentage: int


@dataclass
class AnalyticsSummary:
    current_threat_level: int
    current_threat_name: str
    total_articles: int
    articles_last_24h: int
    articles_last_7d: int
    most_active_state: Optional[str]
    dominant_category: Optional[str]


@dataclass
class AnalyticsData:
    summary: AnalyticsSummary
    threat_timeline: List[ThreatTimelinePoint] = field(default_factory=list)
    news_volume: List[NewsVolumePoint] = field(default_factory=list)
    state_distribution: List[StateDistribution] = field(default_factory=list)
    category_distribution: List[CategoryDistribution] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _percentage(count: int, total: int) -> int:
    # Rounds half up
    return int(count * 100 / total + 0.5) if total > 0 else 0


class AnalyticsService:
    """Read-only aggregate queries over the ThreatWatch database."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("analytics")

    @staticmethod
    def _cutoff(days: int) -> str:
        return (utc_now() - timedelta(days=days)).isoformat()

    def get_threat_timeline(self, days: int = 90) -> List[ThreatTimelinePoint]:
        """One point per day within the window, the day's latest reading, oldest first.

        Only the newest readings are considered.
        """
        rows = self.db.execute_query(
            """
            SELECT substr(scraped_at, 1, 10) AS date, level_number, level_name
            FROM threat_levels
            WHERE scraped_at >= ?
            ORDER BY scraped_at DESC, id DESC
            LIMIT ?
            """,
            (self._cutoff(days), TIMELINE_ROW_LIMIT)
        )

        by_date: Dict[str, ThreatTimelinePoint] = {}
        for row in rows:
            if row['date'] not in by_date:
                by_date[row['date']] = ThreatTimelinePoint(
                    date=row['date'], level=row['level_number'], level_name=row['level_name']
                )

        return list(reversed(list(by_date.values())))

    def get_news_volume(self, days: int = 30) -> List[NewsVolumePoint]:
        rows = self.db.execute_query(
            """
            SELECT substr(published_at, 1, 10) AS date, COUNT(*) AS count
            FROM news_articles
            WHERE published_at >= ?
            GROUP BY date
            ORDER BY date
            """,
            (self._cutoff(days),)
        )
        return [NewsVolumePoint(date=row['date'], count=row['count']) for row in rows]

    def get_state_distribution(self, days: int = 30) -> List[StateDistribution]:
        """Article counts per tagged state; untagged articles are excluded."""
        rows = self.db.execute_query(
            """
            SELECT state, COUNT(*) AS count
            FROM news_articles
            WHERE published_at >= ? AND state IS NOT NULL
            GROUP BY state
            """,
            (self._cutoff(days),)
        )

        total = sum(row['count'] for row in rows)
        counts: Dict[str, int] = {}
        for row in rows:
            state = (row['state'] or OTHER_STATE).upper()
            if state not in KNOWN_STATES:
                state = OTHER_STATE
            counts[state] = counts.get(state, 0) + row['count']

        distribution = [
            StateDistribution(state=state, count=count, percentage=_percentage(count, total))
            for state, count in counts.items()
        ]
        return sorted(distribution, key=lambda d: d.count, reverse=True)

    def get_category_distribution(self, days: int = 30) -> List[CategoryDistribution]:
        rows = self.db.execute_query(
            """
            SELECT category, COUNT(*) AS count
            FROM news_articles
            WHERE published_at >= ?
            GROUP BY category
            """,
            (self._cutoff(days),)
        )

        total = sum(row['count'] for row in rows)
        distribution = [
            CategoryDistribution(
                category=row['category'], count=row['count'],
                percentage=_percentage(row['count'], total)
            )
            for row in rows
        ]
        return sorted(distribution, key=lambda d: d.count, reverse=True)

    def _count_since(self, days: Optional[int]) -> int:
        if days is None:
            row = self.db.execute_one("SELECT COUNT(*) AS count FROM news_articles")
        else:
            row = self.db.execute_one(
                "SELECT COUNT(*) AS count FROM news_articles WHERE published_at >= ?",
                (self._cutoff(days),)
            )
        return row['count'] if row else 0

    def get_summary(self) -> AnalyticsSummary:
        """Headline figures; the threat level defaults to 3 (PROBABLE) with no history."""
        week_cutoff = self._cutoff(7)

        current = self.db.execute_one(
            """
            SELECT level_number, level_name FROM threat_levels
            ORDER BY scraped_at DESC, id DESC LIMIT 1
            """
        )

        top_state = self.db.execute_one(
            """
            SELECT state, COUNT(*) AS count FROM news_articles
            WHERE published_at >= ? AND state IS NOT NULL
            GROUP BY state ORDER BY count DESC LIMIT 1
            """,
            (week_cutoff,)
        )

        top_category = self.db.execute_one(
            """
            SELECT category, COUNT(*) AS count FROM news_articles
            WHERE published_at >= ?
            GROUP BY category ORDER BY count DESC LIMIT 1
            """,
            (week_cutoff,)
        )

        return AnalyticsSummary(
            current_threat_level=current['level_number'] if current else DEFAULT_THREAT_LEVEL,
            current_threat_name=current['level_name'] if current else DEFAULT_THREAT_NAME,
            total_articles=self._count_since(None),
            articles_last_24h=self._count_since(1),
            articles_last_7d=self._count_since(7),
            most_active_state=top_state['state'] if top_state else None,
            dominant_category=top_category['category'] if top_category else None,
        )

    def get_analytics_data(self,
                           timeline_days: int = 90,
                           volume_days: int = 30,
                           distribution_days: int = 30) -> AnalyticsData:
        """Complete analytics bundle."""
        self.logger.debug(
            f"Building analytics: timeline={timeline_days}d volume={volume_days}d "
            f"distribution={distribution_days}d"
        )
        return AnalyticsData(
            summary=self.get_summary(),
            threat_timeline=self.get_threat_timeline(timeline_days),
            news_volume=self.get_news_volume(volume_days),
            state_distribution=self.get_state_distribution(distribution_days),
            category_distribution=self.get_category_distribution(distribution_days),
        )
