"""
ThreatWatch Processing Module
=============================

Feed ingestion pipeline components: fetching, relevance filtering,
deduplication and categorization.
"""

from .feed_fetcher import FeedFetcher, FetchResult
from .relevance_filter import RelevanceFilter, FilterResult
from .deduplicator import Deduplicator, DeduplicationStats
from .categorizer import Categorizer
from .pipeline import IngestionPipeline

__all__ = [
    'FeedFetcher',
    'FetchResult',
    'RelevanceFilter',
    'FilterResult',
    'Deduplicator',
    'DeduplicationStats',
    'Categorizer',
    'IngestionPipeline',
]
