"""
Threat Level Fetcher
====================

Scrapes the national terrorism threat level page. The page embeds the
current reading as JSON inside ``<script id="ThreatLevelJson">``; when that
tag is missing the first JSON object carrying all four expected keys is used.

HTTP failures are retried with exponential backoff. A page that downloads
fine but cannot be understood is a structural problem and fails at once.
"""

import asyncio
import html
import json
import re
import ssl
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import urljoin

import aiohttp
import certifi
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from ..config.settings import ThreatSettings, get_settings
from ..database.models import ThreatLevel, ThreatLevelSource, utc_now
from ..recovery.retry_logic import RetryConfig, RetryManager
from ..utils.exceptions import (
    ErrorCode, ThreatLevelFetchError, ThreatLevelParseError
)
from ..utils.logging import get_logger_for_component


SCRIPT_PATTERN = re.compile(
    r"<script\s+id=['\"]ThreatLevelJson['\"][^>]*>([\s\S]*?)</script>",
    re.IGNORECASE | re.MULTILINE,
)

OBJECT_PATTERN = re.compile(
    r'\{[^{}]*"ThreatLevelNo"[^{}]*"ThreatLevelName"[^{}]*"ThreatLevelDesc"[^{}]*"ThreatLevelLink"[^{}]*\}',
    re.IGNORECASE | re.MULTILINE,
)


class ThreatLevelPayload(BaseModel):
    """Embedded JSON payload as published on the threat page."""
    ThreatLevelNo: int = Field(..., ge=1, le=5)
    ThreatLevelName: str
    ThreatLevelDesc: str
    ThreatLevelLink: str


def extract_threat_json(page: str) -> str:
    """Pull the raw JSON text out of the threat page.

    Raises:
        ThreatLevelParseError: If neither the script tag nor a matching object is present
    """
    script_match = SCRIPT_PATTERN.search(page)
    if script_match and script_match.group(1).strip():
        return script_match.group(1).strip()

    object_match = OBJECT_PATTERN.search(page)
    if object_match:
        return object_match.group(0).strip()

    raise ThreatLevelParseError(
        "Threat level JSON not found in response",
        error_code=ErrorCode.THREAT_EXTRACTION_FAILED
    )


def parse_threat_page(page: str, source_url: str) -> ThreatLevel:
    """Turn a downloaded threat page into a scraped ThreatLevel.

    Args:
        page: HTML body of the threat page
        source_url: URL the page was fetched from, used to absolutize the link

    Raises:
        ThreatLevelParseError: On missing, malformed or out-of-range payloads
    """
    raw_json = html.unescape(extract_threat_json(page))

    try:
        payload = ThreatLevelPayload.model_validate(json.loads(raw_json))
    except json.JSONDecodeError as e:
        raise ThreatLevelParseError(
            f"Threat level JSON is malformed: {e}", source_url=source_url
        ) from e
    except PydanticValidationError as e:
        raise ThreatLevelParseError(
            f"Threat level JSON failed validation: {e.error_count()} error(s)",
            source_url=source_url,
            context={"errors": e.errors(include_url=False)}
        ) from e

    link = payload.ThreatLevelLink.strip()
    if not link.lower().startswith("http"):
        link = urljoin(source_url, link)

    try:
        return ThreatLevel(
            level=payload.ThreatLevelNo,
            name=payload.ThreatLevelName.strip().upper(),
            description=payload.ThreatLevelDesc.strip(),
            link=link,
            fetched_at=utc_now(),
            source=ThreatLevelSource.SCRAPED,
        )
    except PydanticValidationError as e:
        raise ThreatLevelParseError(
            f"Threat level payload is incomplete: {e.error_count()} error(s)",
            source_url=source_url
        ) from e


class ThreatLevelFetcher:
    """Retrying HTTP scraper for the current threat level."""

    def __init__(self,
                 threat_settings: Optional[ThreatSettings] = None,
                 timeout: Optional[int] = None,
                 session: Optional[aiohttp.ClientSession] = None,
                 retry_manager: Optional[RetryManager] = None):
        """Initialize threat level fetcher.

        Args:
            threat_settings: Source URL, retry and User-Agent settings
            timeout: Request timeout in seconds (default from config)
            session: Shared aiohttp session; when omitted one is opened per fetch
            retry_manager: Retry manager (default uses asyncio.sleep)
        """
        if threat_settings is None or timeout is None:
            settings = get_settings()
            threat_settings = threat_settings or settings.threat
            timeout = timeout or settings.limits.request_timeout
        self.threat_settings = threat_settings
        self.url = threat_settings.url
        self.timeout = timeout
        self._session = session
        self.retry_manager = retry_manager or RetryManager()
        self.retry_config = RetryConfig(
            max_attempts=self.threat_settings.max_retries,
            base_delay=self.threat_settings.retry_base_delay,
            retry_on_exceptions=(ThreatLevelFetchError,),
            never_retry_exceptions=(ThreatLevelParseError,),
        )
        self.logger = get_logger_for_component("threat_fetcher")

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @property
    def headers(self):
        return {
            "User-Agent": self.threat_settings.user_agent,
            "Accept": "text/html,application/xhtml+xml",
        }

    @asynccontextmanager
    async def get_session(self):
        """Yield the injected session, or a short-lived one."""
        if self._session is not None:
            yield self._session
            return

        connector = aiohttp.TCPConnector(ssl=self.ssl_context)
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(connector=connector, timeout=timeout) as session:
            yield session

    async def fetch_page(self) -> str:
        """Single download attempt of the threat page.

        Raises:
            ThreatLevelFetchError: On non-2xx status, timeout or network error
        """
        try:
            async with self.get_session() as session:
                async with session.get(self.url, headers=self.headers) as response:
                    if not 200 <= response.status < 300:
                        raise ThreatLevelFetchError(
                            f"Request failed with status {response.status}",
                            status=response.status,
                            source_url=self.url
                        )
                    return await response.text()

        except asyncio.TimeoutError as e:
            raise ThreatLevelFetchError(
                f"Request timeout after {self.timeout}s", source_url=self.url
            ) from e
        except aiohttp.ClientError as e:
            raise ThreatLevelFetchError(
                f"Network error: {e}", source_url=self.url
            ) from e

    async def fetch_threat_level(self) -> ThreatLevel:
        """Download and parse the current threat level.

        Raises:
            ThreatLevelFetchError: When every attempt failed
            ThreatLevelParseError: When the page content is not understood
        """
        page = await self.retry_manager.retry_async(
            self.fetch_page,
            config=self.retry_config,
            operation="threat_level_fetch",
        )

        threat_level = parse_threat_page(page, self.url)
        self.logger.debug(f"Scraped threat level {threat_level.level} ({threat_level.name})")
        return threat_level
