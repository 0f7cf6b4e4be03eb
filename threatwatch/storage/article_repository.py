"""
Article Repository
==================

SQLite-backed ArticleStore. Blocking sqlite3 calls run in worker threads so
the event loop keeps serving fetches and subscribers.
"""

import asyncio
import sqlite3
from datetime import timedelta
from typing import Any, Dict, List, Sequence

from ..database.connection import DatabaseConnection
from ..database.models import ArticleQuery, SourceConfig, StoredArticle, utc_now
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode
from .base import ArticleStore


class ArticleRepository(ArticleStore):
    """Repository for news article persistence."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize article repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("article_repository")

    async def insert_articles_if_absent(self, articles: Sequence[StoredArticle]) -> int:
        if not articles:
            return 0
        return await asyncio.to_thread(self._insert_articles_if_absent, list(articles))

    def _insert_articles_if_absent(self, articles: List[StoredArticle]) -> int:
        """Insert articles in one transaction, skipping known URLs.

        Raises:
            DatabaseError: If the transaction fails
        """
        try:
            inserted = 0
            with self.db.transaction() as conn:
                for article in articles:
                    cursor = conn.execute(
                        """
                        INSERT OR IGNORE INTO news_articles
                        (title, content, source_name, source_url, published_at,
                         category, state, scraped_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            article.title,
                            article.content_normalized or None,
                            article.source_name,
                            article.url,
                            article.published_at.isoformat(),
                            article.category.value,
                            article.state.value if article.state else None,
                            article.scraped_at.isoformat(),
                        )
                    )
                    inserted += cursor.rowcount

            self.logger.info(f"Inserted {inserted}/{len(articles)} articles")
            return inserted

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to insert articles: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION
            ) from e

    async def query_recent_articles(self, query: ArticleQuery) -> List[StoredArticle]:
        return await asyncio.to_thread(self._query_recent_articles, query)

    def _query_recent_articles(self, query: ArticleQuery) -> List[StoredArticle]:
        cutoff = utc_now() - timedelta(days=query.days)

        sql = "SELECT * FROM news_articles WHERE published_at >= ?"
        params: List[Any] = [cutoff.isoformat()]

        if query.category:
            sql += " AND category = ?"
            params.append(query.category.value)

        if query.state:
            sql += " AND state = ?"
            params.append(query.state.value)

        sql += " ORDER BY published_at DESC, id DESC LIMIT ?"
        params.append(query.limit)

        try:
            rows = self.db.execute_query(sql, tuple(params))
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to query recent articles: {e}",
                query=sql,
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

        return [StoredArticle.from_db_row(dict(row)) for row in rows]

    async def ensure_sources(self, sources: Sequence[SourceConfig]) -> None:
        if sources:
            await asyncio.to_thread(self._ensure_sources, list(sources))

    def _ensure_sources(self, sources: List[SourceConfig]) -> None:
        try:
            with self.db.transaction() as conn:
                conn.executemany(
                    "INSERT OR IGNORE INTO sources (name, feed_url) VALUES (?, ?)",
                    [(source.name, source.url) for source in sources]
                )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to register sources: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION
            ) from e

    def count_articles(self) -> int:
        row = self.db.execute_one("SELECT COUNT(*) AS total FROM news_articles")
        return row['total'] if row else 0

    def get_article_by_url(self, url: str) -> Dict[str, Any]:
        """Raw row for one article URL, or an empty dict."""
        row = self.db.execute_one("SELECT * FROM news_articles WHERE source_url = ?", (url,))
        return dict(row) if row else {}
