"""
ThreatWatch Storage Layer
=========================

Persistence contracts and their SQLite implementations.

This module provides:
- ArticleStore / ThreatLevelStore abstract contracts
- Article repository with insert-if-absent semantics
- Threat level repository over the append-only history table
"""

from .base import ArticleStore, ThreatLevelStore
from .article_repository import ArticleRepository
from .threat_level_repository import ThreatLevelRepository

__all__ = [
    "ArticleStore",
    "ThreatLevelStore",
    "ArticleRepository",
    "ThreatLevelRepository",
]
