"""
ThreatWatch Input Validators
============================

URL and text validation helpers shared by the feed fetcher, the threat level
fetcher and configuration loading.
"""

import re
from urllib.parse import urlparse
from typing import Optional

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation utilities."""

    ALLOWED_SCHEMES = {'http', 'https'}

    @classmethod
    def validate_http_url(cls, url: str, field_name: str = "url") -> str:
        """Validate an absolute http(s) URL.

        Args:
            url: URL to validate
            field_name: Field reported in the validation error

        Returns:
            The URL with surrounding whitespace removed

        Raises:
            ValidationError: If URL is missing, relative or not http(s)
        """
        if not url or not isinstance(url, str):
            raise ValidationError(
                "URL is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name=field_name
            )

        url = url.strip()
        parsed = urlparse(url)

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise ValidationError(
                f"URL scheme must be {' or '.join(sorted(cls.ALLOWED_SCHEMES))}: {url}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name=field_name
            )

        if not parsed.netloc:
            raise ValidationError(
                f"URL must include a hostname: {url}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name=field_name
            )

        return url

    @classmethod
    def is_valid_http_url(cls, url: Optional[str]) -> bool:
        try:
            cls.validate_http_url(url)
            return True
        except ValidationError:
            return False


class ContentValidator:
    """Content sanitization utilities."""

    MAX_TITLE_LENGTH = 512
    DEFAULT_TITLE = "Untitled"

    @classmethod
    def sanitize_title(cls, title: Optional[str]) -> str:
        """Collapse whitespace in a feed title, falling back to a placeholder.

        Titles longer than the storage column are truncated rather than rejected.
        """
        if not title or not isinstance(title, str):
            return cls.DEFAULT_TITLE

        title = cls.collapse_whitespace(title)
        if not title:
            return cls.DEFAULT_TITLE

        if len(title) > cls.MAX_TITLE_LENGTH:
            title = title[:cls.MAX_TITLE_LENGTH - 3].rstrip() + "..."

        return title

    @staticmethod
    def collapse_whitespace(text: str) -> str:
        return re.sub(r'\s+', ' ', text).strip()

    @classmethod
    def normalize_text(cls, text: Optional[str]) -> str:
        """Lowercase and whitespace-collapse text for keyword matching."""
        if not text:
            return ""
        return cls.collapse_whitespace(text.lower())
