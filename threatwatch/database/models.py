"""
ThreatWatch Data Models
=======================

Pydantic data models for type safety and validation throughout the application.
These models correspond to the database schema and provide validation,
serialization, and type hints.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class NewsCategory(str, Enum):
    """Article categories, in classification precedence order."""
    ARREST = "arrest"
    INCIDENT = "incident"
    POLICY = "policy"
    COMMUNITY = "community"
    GENERAL = "general"


class AustralianState(str, Enum):
    """Australian states and territories used as geographic tags."""
    NSW = "NSW"
    VIC = "VIC"
    QLD = "QLD"
    WA = "WA"
    SA = "SA"
    TAS = "TAS"
    NT = "NT"
    ACT = "ACT"


class ThreatLevelSource(str, Enum):
    """How a threat level reading reached the caller."""
    SCRAPED = "scraped"
    CACHE = "cache"
    DATABASE = "database"
    FALLBACK = "fallback"


class SourceConfig(BaseModel):
    """A configured news feed."""
    name: str = Field(..., min_length=1, max_length=128, description="Display name of the publisher")
    url: str = Field(..., min_length=1, max_length=2048, description="RSS/Atom feed URL")

    def __str__(self) -> str:
        return f"Source({self.name})"


class RawArticle(BaseModel):
    """Normalized feed item, prior to classification."""
    title: str = Field(..., min_length=1, description="Article title")
    url: str = Field(..., min_length=1, description="Canonical article URL")
    content_normalized: str = Field(default="", description="Lowercased, whitespace-collapsed body text")
    published_at: datetime = Field(..., description="Publication time (fetch time if the feed omits it)")
    source_name: str = Field(..., min_length=1, description="Name of the originating source")

    @field_validator('published_at')
    @classmethod
    def validate_published_at(cls, v):
        return ensure_utc(v)

    def __str__(self) -> str:
        return f"RawArticle({self.title[:50]})"


class StoredArticle(RawArticle):
    """Classified article as persisted in the article store."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    category: NewsCategory = Field(..., description="First-match category")
    state: Optional[AustralianState] = Field(default=None, description="Detected state or territory")
    scraped_at: datetime = Field(default_factory=utc_now, description="Ingestion cycle timestamp")

    @field_validator('scraped_at')
    @classmethod
    def validate_scraped_at(cls, v):
        return ensure_utc(v)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation."""
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "source": self.source_name,
            "published_at": self.published_at.isoformat(),
            "category": self.category.value,
            "state": self.state.value if self.state else None,
        }

    @classmethod
    def from_db_row(cls, row: Dict[str, Any]) -> "StoredArticle":
        """Create StoredArticle from a news_articles row."""
        data = dict(row)
        return cls(
            id=data.get('id'),
            title=data['title'],
            url=data['source_url'],
            content_normalized=data.get('content') or "",
            published_at=datetime.fromisoformat(data['published_at']),
            source_name=data['source_name'],
            category=NewsCategory(data['category']),
            state=AustralianState(data['state']) if data.get('state') else None,
            scraped_at=datetime.fromisoformat(data['scraped_at']),
        )


class ThreatLevel(BaseModel):
    """National terrorism threat level reading."""
    level: int = Field(..., ge=1, le=5, description="Threat level number (1-5)")
    name: str = Field(..., min_length=1, description="Upper-case level name, e.g. PROBABLE")
    description: str = Field(default="", description="Official description of the level")
    link: str = Field(..., min_length=1, description="Absolute URL of the source page")
    fetched_at: datetime = Field(default_factory=utc_now, description="When the reading was scraped")
    source: ThreatLevelSource = Field(default=ThreatLevelSource.SCRAPED, description="Provenance tag")

    @field_validator('fetched_at')
    @classmethod
    def validate_fetched_at(cls, v):
        return ensure_utc(v)

    def same_reading(self, other: Optional["ThreatLevel"]) -> bool:
        """Compare level, name and description; provenance and time are ignored."""
        if other is None:
            return False
        return (
            self.level == other.level
            and self.name == other.name
            and self.description == other.description
        )

    def with_source(self, source: ThreatLevelSource) -> "ThreatLevel":
        return self.model_copy(update={"source": source})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "name": self.name,
            "description": self.description,
            "link": self.link,
            "fetched_at": self.fetched_at.isoformat(),
            "source": self.source.value,
        }

    def __str__(self) -> str:
        return f"ThreatLevel({self.level}:{self.name}:{self.source.value})"


@dataclass
class CacheEntry:
    """In-memory threat level cache slot."""
    data: ThreatLevel
    cached_at: datetime

    def age_seconds(self, now: datetime) -> float:
        return (now - self.cached_at).total_seconds()


class ArticleQuery(BaseModel):
    """Filters for recent article lookups."""
    days: int = Field(default=7, ge=1, le=365)
    category: Optional[NewsCategory] = None
    state: Optional[AustralianState] = None
    limit: int = Field(default=20, ge=1, le=500)


class IngestionSummary(BaseModel):
    """Counters reported by one feed refresh cycle."""
    fetched: int = 0
    relevant: int = 0
    inserted: int = 0

    def to_dict(self) -> Dict[str, int]:
        return self.model_dump()


# Type aliases for common data structures
ArticleDict = Dict[str, Any]
ThreatLevelDict = Dict[str, Any]
ArticleList = List[StoredArticle]
