"""
Unit Tests for Relevance Filter
===============================
"""

import pytest

from threatwatch.processing.relevance_filter import (
    KeywordTier, PRIMARY_KEYWORDS, RelevanceFilter, SECONDARY_KEYWORDS
)


@pytest.fixture
def relevance_filter():
    return RelevanceFilter()


class TestRelevanceFilter:
    """Keyword matching over title and content."""

    def test_primary_keyword_in_title(self, relevance_filter, make_raw_article):
        article = make_raw_article(title="ASIO raises concerns over extremism")

        result = relevance_filter.filter_article(article)

        assert result.passed
        assert result.tier == KeywordTier.PRIMARY
        assert result.matched_keyword == "asio"

    def test_secondary_keyword_in_content(self, relevance_filter, make_raw_article):
        article = make_raw_article(
            title="Traffic chaos in the city",
            content="a suspect was detained after the chase",
        )

        result = relevance_filter.filter_article(article)

        assert result.passed
        assert result.tier == KeywordTier.SECONDARY

    def test_primary_checked_before_secondary(self, relevance_filter, make_raw_article):
        article = make_raw_article(title="Police respond to bomb threat at airport")

        result = relevance_filter.filter_article(article)

        assert result.tier == KeywordTier.PRIMARY
        assert result.matched_keyword == "bomb threat"

    def test_matching_ignores_case_and_spacing(self, relevance_filter, make_raw_article):
        article = make_raw_article(title="Review of NATIONAL\n   SECURITY laws")

        assert relevance_filter.is_relevant(article)

    def test_unrelated_article_is_rejected(self, relevance_filter, make_raw_article):
        article = make_raw_article(
            title="Local bakery wins award",
            content="the sourdough was judged best in show",
        )

        result = relevance_filter.filter_article(article)

        assert not result.passed
        assert result.matched_keyword is None
        assert result.tier is None

    def test_filter_preserves_order(self, relevance_filter, make_raw_article):
        articles = [
            make_raw_article(title="Police hunt suspect", url="https://e.com/1"),
            make_raw_article(title="Cricket scores", url="https://e.com/2"),
            make_raw_article(title="Terrorism charges laid", url="https://e.com/3"),
        ]

        relevant = relevance_filter.filter_relevant_articles(articles)

        assert [a.url for a in relevant] == ["https://e.com/1", "https://e.com/3"]

    def test_empty_batch(self, relevance_filter):
        assert relevance_filter.filter_relevant_articles([]) == []

    def test_custom_keywords(self, make_raw_article):
        custom = RelevanceFilter(primary_keywords=("Cyber Attack",), secondary_keywords=())

        assert custom.is_relevant(make_raw_article(title="Major cyber attack on ports"))
        assert not custom.is_relevant(make_raw_article(title="Police arrest man"))

    def test_keyword_sets_are_lowercase(self):
        assert all(k == k.lower() for k in PRIMARY_KEYWORDS + SECONDARY_KEYWORDS)
