"""
Article Categorizer
===================

Rule-based category and state tagging. Rules are ordered and the first
match wins, so an arrest over a bomb plot is filed under ``arrest``.
"""

import re
from datetime import datetime
from typing import Dict, List, Optional, Pattern, Tuple

from ..database.models import (
    AustralianState, NewsCategory, RawArticle, StoredArticle, utc_now
)
from ..utils.validators import ContentValidator


CATEGORY_RULES: List[Tuple[NewsCategory, Pattern]] = [
    (NewsCategory.ARREST,
     re.compile(r"(arrest|charged|custody|court|bail|sentenced|detained)")),
    (NewsCategory.INCIDENT,
     re.compile(r"(attack|bomb|explosion|stabbing|shooting|hostage|incident|plot|attempted|device)")),
    (NewsCategory.POLICY,
     re.compile(r"(policy|law|bill|legislation|government|minister|parliament|strategy)")),
    (NewsCategory.COMMUNITY,
     re.compile(r"(community|awareness|safety|campaign|program|training|outreach|education)")),
]

# Checked in order; matching is plain substring on normalized text
STATE_PATTERNS: Dict[AustralianState, Tuple[str, ...]] = {
    AustralianState.NSW: ('nsw', 'new south wales', 'sydney', 'wollongong', 'newcastle'),
    AustralianState.VIC: ('vic', 'victoria', 'melbourne', 'geelong'),
    AustralianState.QLD: ('qld', 'queensland', 'brisbane', 'gold coast', 'cairns'),
    AustralianState.WA: ('wa', 'western australia', 'perth'),
    AustralianState.SA: ('sa', 'south australia', 'adelaide'),
    AustralianState.TAS: ('tas', 'tasmania', 'hobart'),
    AustralianState.NT: ('nt', 'northern territory', 'darwin', 'alice springs'),
    AustralianState.ACT: ('act', 'canberra', 'australian capital territory'),
}


def _normalized(title: str, content: str) -> str:
    return ContentValidator.normalize_text(f"{title} {content}")


def categorize(title: str, content: str = "") -> NewsCategory:
    """Return the first category whose pattern matches, else ``general``."""
    text = _normalized(title, content)

    for category, pattern in CATEGORY_RULES:
        if pattern.search(text):
            return category

    return NewsCategory.GENERAL


def extract_state(title: str, content: str = "") -> Optional[AustralianState]:
    """Return the first state with a keyword in the text, else None.

    Short codes like "wa" also match inside words.
    """
    text = _normalized(title, content)

    for state, patterns in STATE_PATTERNS.items():
        if any(pattern in text for pattern in patterns):
            return state

    return None


def classify(article: RawArticle, scraped_at: Optional[datetime] = None) -> StoredArticle:
    """Attach category, state and ingestion time to a raw article."""
    return StoredArticle(
        **article.model_dump(),
        category=categorize(article.title, article.content_normalized),
        state=extract_state(article.title, article.content_normalized),
        scraped_at=scraped_at or utc_now(),
    )


class Categorizer:
    """Stateless wrapper so the pipeline can take an injected classifier."""

    def categorize(self, title: str, content: str = "") -> NewsCategory:
        return categorize(title, content)

    def extract_state(self, title: str, content: str = "") -> Optional[AustralianState]:
        return extract_state(title, content)

    def classify(self, article: RawArticle, scraped_at: Optional[datetime] = None) -> StoredArticle:
        return classify(article, scraped_at)
