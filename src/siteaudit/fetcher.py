"""
Direct HTTP page fetcher (tier 1).

Performs a single GET with browser-like headers and classifies the response
as ok, blocked or error. Retries and escalation are the orchestrator's job.
"""

import logging
import re
import time
from typing import Optional

import httpx

from siteaudit.bot_detection import classify
from siteaudit.constants import (
    BROWSER_HEADERS,
    BROWSER_USER_AGENTS,
    HTTP_MAX_REDIRECTS,
    HTTP_TIER_TIMEOUT_SECONDS,
)
from siteaudit.models import FetchAttempt, FetchStatus, FetchTier

logger = logging.getLogger(__name__)

_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)


def build_http_client(
    timeout: float = HTTP_TIER_TIMEOUT_SECONDS,
    max_redirects: int = HTTP_MAX_REDIRECTS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create the AsyncClient shared by direct fetches and crawl workers."""
    return httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        max_redirects=max_redirects,
        transport=transport,
    )


def user_agent_for_attempt(attempt: int) -> str:
    """Deterministic user-agent rotation by attempt index."""
    return BROWSER_USER_AGENTS[attempt % len(BROWSER_USER_AGENTS)]


def extract_title(html: Optional[str]) -> str:
    """Cheap <title> lookup used before full parsing."""
    if not html:
        return ""
    match = _TITLE_RE.search(html)
    return " ".join(match.group(1).split()) if match else ""


class PageFetcher:
    """Single-request fetcher with browser-like headers."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = HTTP_TIER_TIMEOUT_SECONDS,
        max_redirects: int = HTTP_MAX_REDIRECTS,
        tier: FetchTier = FetchTier.HTTP,
    ):
        """
        Initialize the fetcher.

        Args:
            client: Shared AsyncClient; a short-lived client is created per
                request when omitted
            timeout: Default per-request timeout in seconds
            max_redirects: Redirect limit for per-request clients
            tier: Tier recorded on produced attempts
        """
        self._client = client
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.tier = tier

    async def fetch(
        self,
        url: str,
        user_agent: Optional[str] = None,
        attempt: int = 0,
        timeout: Optional[float] = None,
    ) -> FetchAttempt:
        """Fetch one URL and classify the response.

        2xx/3xx responses are OK unless the body is a bot-protection page,
        4xx responses are BLOCKED, 5xx responses and transport failures are
        ERROR.

        Args:
            url: URL to fetch
            user_agent: User agent override; rotated by attempt when omitted
            attempt: Zero-based attempt index within the tier
            timeout: Per-request timeout override in seconds

        Returns:
            FetchAttempt describing the outcome
        """
        user_agent = user_agent or user_agent_for_attempt(attempt)
        headers = {**BROWSER_HEADERS, "User-Agent": user_agent}
        timeout = timeout if timeout is not None else self.timeout
        start = time.monotonic()

        def failed(error: str, status_code: Optional[int] = None) -> FetchAttempt:
            return FetchAttempt(
                tier=self.tier,
                url=url,
                status=FetchStatus.ERROR,
                latency=time.monotonic() - start,
                error=error,
                status_code=status_code,
                attempt=attempt,
                user_agent=user_agent,
            )

        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers, timeout=timeout)
            else:
                async with build_http_client(timeout, self.max_redirects) as client:
                    response = await client.get(url, headers=headers)
        except httpx.TimeoutException:
            logger.warning(f"Timeout fetching {url} (>{timeout:.0f}s)")
            return failed(f"Timeout after {timeout:.0f}s")
        except httpx.TooManyRedirects:
            logger.warning(f"Too many redirects fetching {url}")
            return failed("Too many redirects")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            error_msg = str(e) or type(e).__name__
            logger.warning(f"Network error fetching {url}: {error_msg}")
            return failed(error_msg)

        latency = time.monotonic() - start
        status_code = response.status_code
        body = response.text
        common = dict(
            tier=self.tier,
            url=url,
            latency=latency,
            status_code=status_code,
            attempt=attempt,
            user_agent=user_agent,
            final_url=str(response.url),
            redirect_count=len(response.history),
        )

        if status_code >= 500:
            logger.warning(f"Server error {status_code} for {url}")
            return FetchAttempt(status=FetchStatus.ERROR, error=f"HTTP {status_code}", **common)

        protection = classify(body, extract_title(body))

        if status_code >= 400:
            logger.warning(f"Access denied ({status_code}) for {url}")
            return FetchAttempt(
                status=FetchStatus.BLOCKED,
                error=f"HTTP {status_code}",
                blocked_by=protection.provider,
                **common,
            )

        if protection.blocked:
            logger.warning(
                f"Bot protection detected on {url}: {protection.provider} ('{protection.signature}')"
            )
            return FetchAttempt(
                status=FetchStatus.BLOCKED,
                raw_body=body,
                error=f"Bot protection: {protection.provider}",
                blocked_by=protection.provider,
                **common,
            )

        logger.debug(f"Fetched {url} ({status_code}, {len(body)} bytes, {latency:.2f}s)")
        return FetchAttempt(status=FetchStatus.OK, raw_body=body, **common)
