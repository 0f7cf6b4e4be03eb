"""
ThreatWatch Services
====================

Long-lived application services: change tracking with event broadcast and
analytics over stored data.
"""

from .events import DomainEvent, NewsUpdateEvent, ThreatUpdateEvent, parse_event
from .update_tracker import UpdateTracker
from .analytics import AnalyticsService

__all__ = [
    "DomainEvent",
    "NewsUpdateEvent",
    "ThreatUpdateEvent",
    "parse_event",
    "UpdateTracker",
    "AnalyticsService",
]
