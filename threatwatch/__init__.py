"""
ThreatWatch - National Threat Level and Security News Monitor
=============================================================

Tracks the Australian national terrorism threat level and security-related
news from public RSS feeds.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: environment variables with Pydantic validation
- Ingestion: feed fetching, keyword relevance, fuzzy deduplication, categorization
- Threat level: retrying scraper behind a TTL cache with fallbacks
- Update tracker: subscriber-driven change polling and event broadcast
"""

__version__ = "1.0.0"
__author__ = "ThreatWatch Development Team"
__description__ = "National threat level and security news monitor"

# Core imports for easy access
from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import ThreatWatchError

__all__ = [
    "get_settings",
    "get_db_manager",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "ThreatWatchError",
]
