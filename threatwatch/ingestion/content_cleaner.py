"""
Content Cleaner
===============

HTML text extraction for feed item bodies. Feed summaries routinely carry
markup, embedded scripts and entities; keyword matching needs plain text.
"""

import re
import html
from typing import Optional

from bs4 import BeautifulSoup, Comment

from ..utils.logging import get_logger_for_component
from ..utils.validators import ContentValidator


class ContentCleaner:
    """HTML cleaner producing plain text for keyword matching."""

    # HTML elements to completely remove (including content)
    NON_CONTENT_ELEMENTS = {
        "script",
        "style",
        "iframe",
        "embed",
        "object",
        "form",
        "noscript",
        "canvas",
        "svg",
    }

    WHITESPACE_PATTERN = re.compile(r"\s+")

    def __init__(self, parser: str = "html.parser"):
        self.logger = get_logger_for_component("content_cleaner")
        self.parser = parser  # Built-in parser, no external deps

    def extract_text_only(self, html_content: Optional[str]) -> str:
        """
        Extract only text content from HTML, removing all markup.

        Args:
            html_content: HTML content to process

        Returns:
            Plain text content with all HTML removed
        """
        if not html_content or not html_content.strip():
            return ""

        # Plain text needs no parsing
        if "<" not in html_content:
            return self.WHITESPACE_PATTERN.sub(" ", html.unescape(html_content)).strip()

        soup = BeautifulSoup(html_content, self.parser)

        for element in soup(self.NON_CONTENT_ELEMENTS):
            element.decompose()

        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()

        text = soup.get_text(separator=" ", strip=True)
        return self.WHITESPACE_PATTERN.sub(" ", text).strip()

    def normalize_for_matching(self, *fragments: Optional[str]) -> str:
        """Join HTML fragments into one lowercased, whitespace-collapsed string."""
        texts = [self.extract_text_only(fragment) for fragment in fragments if fragment]
        return ContentValidator.normalize_text(" ".join(t for t in texts if t))


def extract_plain_text(html_content: str) -> str:
    """Quick function to extract plain text from HTML."""
    return ContentCleaner().extract_text_only(html_content)
