"""
Threat Level Repository
=======================

SQLite-backed ThreatLevelStore over the append-only ``threat_levels`` table.
"""

import asyncio
import sqlite3
from datetime import datetime
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import ThreatLevel, ThreatLevelSource
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode
from .base import ThreatLevelStore


class ThreatLevelRepository(ThreatLevelStore):
    """Repository for threat level history."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("threat_level_repository")

    @staticmethod
    def _row_to_threat_level(row: sqlite3.Row) -> ThreatLevel:
        return ThreatLevel(
            level=row['level_number'],
            name=row['level_name'],
            description=row['description'],
            link=row['source_url'],
            fetched_at=datetime.fromisoformat(row['scraped_at']),
            source=ThreatLevelSource.DATABASE,
        )

    async def load_latest_threat_level(self) -> Optional[ThreatLevel]:
        return await asyncio.to_thread(self._load_latest_threat_level)

    def _load_latest_threat_level(self) -> Optional[ThreatLevel]:
        try:
            row = self.db.execute_one(
                """
                SELECT level_number, level_name, description, source_url, scraped_at
                FROM threat_levels
                ORDER BY scraped_at DESC, id DESC
                LIMIT 1
                """
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to load latest threat level: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

        return self._row_to_threat_level(row) if row else None

    async def record_threat_level(self, threat_level: ThreatLevel) -> None:
        await asyncio.to_thread(self._record_threat_level, threat_level)

    def _record_threat_level(self, threat_level: ThreatLevel) -> None:
        try:
            self.db.execute_update(
                """
                INSERT INTO threat_levels (level_number, level_name, description, source_url, scraped_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    threat_level.level,
                    threat_level.name,
                    threat_level.description,
                    threat_level.link,
                    threat_level.fetched_at.isoformat(),
                )
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to record threat level: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

        self.logger.info(f"Recorded threat level {threat_level.level} ({threat_level.name})")

    def get_history(self, limit: int = 100) -> List[ThreatLevel]:
        """Newest-first readings, at most ``limit``."""
        rows = self.db.execute_query(
            """
            SELECT level_number, level_name, description, source_url, scraped_at
            FROM threat_levels
            ORDER BY scraped_at DESC, id DESC
            LIMIT ?
            """,
            (limit,)
        )
        return [self._row_to_threat_level(row) for row in rows]
