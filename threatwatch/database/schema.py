"""
ThreatWatch Database Schema
===========================

SQLite schema with constraints and indexes. Creates the core tables:
- sources: configured news feeds
- news_articles: classified articles, unique by source URL
- threat_levels: append-only history of threat level readings
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

EXPECTED_TABLES = {"sources", "news_articles", "threat_levels"}


class DatabaseSchema:
    """Database schema manager for the ThreatWatch SQLite database."""

    def __init__(self, db_path: str = "data/threatwatch.db"):
        """Initialize database schema manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables and indexes."""
        with sqlite3.connect(self.db_path) as conn:
            self._create_sources_table(conn)
            self._create_news_articles_table(conn)
            self._create_threat_levels_table(conn)
            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_sources_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS sources (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                feed_url TEXT UNIQUE NOT NULL,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                last_fetched TIMESTAMP
            )
        """
        )

    def _create_news_articles_table(self, conn: sqlite3.Connection) -> None:
        """Create news_articles table; source_url is the identity of a story."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS news_articles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                content TEXT,
                source_name TEXT NOT NULL,
                source_url TEXT UNIQUE NOT NULL,
                published_at TIMESTAMP NOT NULL,
                category TEXT NOT NULL CHECK (category IN ('incident', 'arrest', 'policy', 'community', 'general')),
                state TEXT CHECK (state IS NULL OR state IN ('NSW', 'VIC', 'QLD', 'WA', 'SA', 'TAS', 'NT', 'ACT')),
                scraped_at TIMESTAMP NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

    def _create_threat_levels_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS threat_levels (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                level_number INTEGER NOT NULL CHECK (level_number BETWEEN 1 AND 5),
                level_name TEXT NOT NULL,
                description TEXT NOT NULL,
                scraped_at TIMESTAMP NOT NULL,
                source_url TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_news_articles_published ON news_articles(published_at)",
            "CREATE INDEX IF NOT EXISTS idx_news_articles_category ON news_articles(category)",
            "CREATE INDEX IF NOT EXISTS idx_news_articles_state ON news_articles(state)",
            "CREATE INDEX IF NOT EXISTS idx_threat_levels_scraped ON threat_levels(scraped_at)",
        ]

        for index_sql in indexes:
            conn.execute(index_sql)

    def drop_tables(self) -> None:
        """Drop all tables (for testing/reset purposes)."""
        with sqlite3.connect(self.db_path) as conn:
            for table in ("threat_levels", "news_articles", "sources"):
                conn.execute(f"DROP TABLE IF EXISTS {table}")

            conn.commit()
            logger.info("All database tables dropped")

    def get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def verify_schema(self) -> bool:
        """Verify all expected tables exist."""
        try:
            with self.get_connection() as conn:
                cursor = conn.execute(
                    """
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name NOT LIKE 'sqlite_%'
                """
                )
                tables = {row[0] for row in cursor.fetchall()}

            missing = EXPECTED_TABLES - tables
            if missing:
                logger.error(f"Missing tables: {sorted(missing)}")
                return False

            logger.info("Database schema verification passed")
            return True

        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False


def create_tables(db_path: str = "data/threatwatch.db") -> None:
    """Convenience function to create database tables."""
    schema = DatabaseSchema(db_path)
    schema.create_tables()
