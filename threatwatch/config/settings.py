"""
ThreatWatch Configuration System
================================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.
"""

import os
from pathlib import Path
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from ..database.models import SourceConfig
from ..utils.exceptions import ConfigurationError, ErrorCode, ValidationError
from ..utils.validators import URLValidator


DEFAULT_THREAT_URL = (
    "https://www.nationalsecurity.gov.au/national-threat-level/"
    "current-national-terrorism-threat-level"
)


def _default_sources() -> List[SourceConfig]:
    return [
        SourceConfig(name="ABC News", url="https://www.abc.net.au/news/feed/2942460/rss.xml"),
        SourceConfig(name="ABC Just In", url="https://www.abc.net.au/news/feed/45910/rss.xml"),
        SourceConfig(name="SBS News", url="https://www.sbs.com.au/news/topic/world/feed"),
        SourceConfig(name="The Guardian AU", url="https://www.theguardian.com/australia-news/rss"),
        SourceConfig(name="SMH", url="https://www.smh.com.au/rss/national.xml"),
        SourceConfig(name="9News", url="https://www.9news.com.au/rss"),
    ]


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class FeedSettings(BaseModel):
    """News feed sources."""
    sources: List[SourceConfig] = Field(default_factory=_default_sources, description="RSS/Atom feeds to ingest")

    @field_validator('sources')
    @classmethod
    def validate_sources(cls, v):
        """Reject duplicate source URLs."""
        urls = [source.url for source in v]
        if len(urls) != len(set(urls)):
            raise ValueError("Duplicate feed URLs in sources")
        return v


class ProcessingSettings(BaseModel):
    """Ingestion pipeline configuration."""
    parallel_feeds: int = Field(default=5, ge=1, le=20, description="Concurrent feed fetches")
    duplicate_title_threshold: float = Field(
        default=0.90,
        ge=0.0,
        le=1.0,
        description="Titles more similar than this are treated as the same story"
    )


class LimitsSettings(BaseModel):
    """Network limits."""
    request_timeout: int = Field(default=30, ge=5, le=300, description="Request timeout in seconds")


class ThreatSettings(BaseModel):
    """National threat level source and cache behaviour."""
    url: str = Field(default=DEFAULT_THREAT_URL, description="Threat level page URL")
    cache_ttl_seconds: int = Field(default=60 * 60, ge=1, description="Freshness window for cached readings")
    max_stale_seconds: int = Field(default=24 * 60 * 60, ge=1, description="Oldest in-memory reading served as fallback")
    max_retries: int = Field(default=3, ge=1, le=10, description="HTTP attempts per refresh")
    retry_base_delay: float = Field(default=0.5, ge=0.0, le=30.0, description="First backoff delay in seconds")
    user_agent: str = Field(default="TWA Threat Scraper/1.0", description="User-Agent sent to the threat page")

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        try:
            return URLValidator.validate_http_url(v, field_name="threat.url")
        except ValidationError as e:
            raise ValueError(str(e)) from e

    @field_validator('max_stale_seconds')
    @classmethod
    def validate_max_stale(cls, v, info):
        ttl = info.data.get('cache_ttl_seconds')
        if ttl is not None and v < ttl:
            raise ValueError("max_stale_seconds must not be shorter than cache_ttl_seconds")
        return v


class TrackerSettings(BaseModel):
    """Update tracker polling."""
    poll_interval_seconds: float = Field(default=60.0, gt=0, description="Seconds between change checks")
    news_window_days: int = Field(default=1, ge=1, le=30, description="Window probed for new articles")


class DatabaseSettings(BaseModel):
    """Database configuration."""
    path: str = Field(default="data/threatwatch.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/threatwatch.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class ThreatWatchSettings(BaseSettings):
    """Main application settings."""

    feeds: FeedSettings = Field(default_factory=FeedSettings)
    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)
    threat: ThreatSettings = Field(default_factory=ThreatSettings)
    tracker: TrackerSettings = Field(default_factory=TrackerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="ThreatWatch", description="Application name")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "THREATWATCH_"
    }

    def validate_configuration(self) -> None:
        """Validate settings that depend on the filesystem."""
        errors = []

        try:
            db_path = Path(self.database.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        for source in self.feeds.sources:
            if not URLValidator.is_valid_http_url(source.url):
                errors.append(f"Invalid feed URL for {source.name}: {source.url}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def is_production_mode(self) -> bool:
        """Check if running in production mode."""
        return not self.debug and os.getenv("ENV", "development").lower() == "production"

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> ThreatWatchSettings:
    """Load settings from environment variables and defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        # Precedence: environment, then .env, then Field defaults
        settings = ThreatWatchSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e


_settings: Optional[ThreatWatchSettings] = None


def get_settings(reload: bool = False) -> ThreatWatchSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
