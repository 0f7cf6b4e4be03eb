"""
Domain Events
=============

Change notifications broadcast to update tracker subscribers. Events form a
tagged union discriminated by ``type``; ``to_dict`` gives the JSON-ready
``{type, timestamp, data}`` payload.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_serializer

from ..database.models import utc_now


THREAT_UPDATE = "threat-update"
NEWS_UPDATE = "news-update"


class ThreatUpdateData(BaseModel):
    level: int = Field(..., ge=1, le=5)
    name: str
    previous_level: Optional[int] = Field(default=None, ge=1, le=5)


class NewsUpdateData(BaseModel):
    count: int = Field(..., ge=0, description="Number of new articles")
    latest_title: Optional[str] = None


class _BaseEvent(BaseModel):
    timestamp: datetime = Field(default_factory=utc_now)

    @field_serializer('timestamp')
    def serialize_timestamp(self, value: datetime) -> str:
        return value.isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class ThreatUpdateEvent(_BaseEvent):
    """The threat level number changed."""
    type: Literal["threat-update"] = THREAT_UPDATE
    data: ThreatUpdateData


class NewsUpdateEvent(_BaseEvent):
    """New articles were stored."""
    type: Literal["news-update"] = NEWS_UPDATE
    data: NewsUpdateData


DomainEvent = Annotated[Union[ThreatUpdateEvent, NewsUpdateEvent], Field(discriminator="type")]

_event_adapter: TypeAdapter = TypeAdapter(DomainEvent)


def parse_event(payload: Dict[str, Any]) -> Union[ThreatUpdateEvent, NewsUpdateEvent]:
    """Rebuild an event from its ``to_dict`` form."""
    return _event_adapter.validate_python(payload)
