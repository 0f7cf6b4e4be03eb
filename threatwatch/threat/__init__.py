"""
ThreatWatch Threat Level Module
===============================

Scraping and caching of the national terrorism threat level.
"""

from .fetcher import ThreatLevelFetcher, parse_threat_page, extract_threat_json
from .cache import ThreatLevelCache

__all__ = [
    "ThreatLevelFetcher",
    "ThreatLevelCache",
    "parse_threat_page",
    "extract_threat_json",
]
