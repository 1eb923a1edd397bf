"""
Third-party extraction fetchers (tier 3).

Paid scraping services that handle proxies, fingerprints and JavaScript
rendering on their side. Used as a last resort, one attempt per
acquisition, never retried.

Supported providers:
- ScraperAPI: https://www.scraperapi.com/documentation/
- Firecrawl: https://docs.firecrawl.dev/api-reference/endpoint/scrape
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from siteaudit.bot_detection import classify
from siteaudit.constants import FIRECRAWL_WAIT_FOR_MS, THIRD_PARTY_MIN_CONTENT_BYTES, THIRD_PARTY_TIMEOUT_SECONDS
from siteaudit.exceptions import ThirdPartyNotConfigured
from siteaudit.fetcher import extract_title
from siteaudit.models import FetchAttempt, FetchStatus, FetchTier

logger = logging.getLogger(__name__)


class ThirdPartyFetcher(ABC):
    """Interface for external scraping services."""

    name: str = "third_party"

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = THIRD_PARTY_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            api_key: Service API key; fetch() raises when missing
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self.total_requests = 0
        self.failed_requests = 0

    async def fetch(self, url: str, attempt: int = 0) -> FetchAttempt:
        """
        Fetch and render a page through the service.

        Args:
            url: URL to fetch
            attempt: Zero-based attempt index within the tier

        Returns:
            FetchAttempt with the service's HTML on success

        Raises:
            ThirdPartyNotConfigured: If no API key is set
        """
        if not self.api_key:
            raise ThirdPartyNotConfigured(
                f"{self.name} API key not set", tier=FetchTier.THIRD_PARTY.value, url=url
            )

        start = time.monotonic()
        self.total_requests += 1
        logger.info(f"[{self.name}] Requesting {url} (may take up to {self.timeout:.0f}s)")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                html, metadata = await self._request(client, url)
        except httpx.TimeoutException:
            self.failed_requests += 1
            logger.error(f"[{self.name}] Timeout fetching {url} (>{self.timeout:.0f}s)")
            return self._attempt(url, FetchStatus.ERROR, start, attempt, error=f"Timeout after {self.timeout:.0f}s")
        except httpx.HTTPStatusError as e:
            self.failed_requests += 1
            status_code = e.response.status_code
            if status_code in (401, 403):
                logger.error(f"[{self.name}] Authentication error - check API key")
            elif status_code == 429:
                logger.error(f"[{self.name}] Rate limit exceeded")
            else:
                logger.error(f"[{self.name}] API error {status_code} for {url}")
            return self._attempt(
                url, FetchStatus.ERROR, start, attempt, error=f"HTTP {status_code}", status_code=status_code
            )
        except (httpx.HTTPError, ValueError) as e:
            self.failed_requests += 1
            error_msg = str(e) or type(e).__name__
            logger.error(f"[{self.name}] Error fetching {url}: {error_msg}")
            return self._attempt(url, FetchStatus.ERROR, start, attempt, error=error_msg)

        if not html or len(html) < THIRD_PARTY_MIN_CONTENT_BYTES:
            self.failed_requests += 1
            size = len(html or "")
            logger.error(f"[{self.name}] Insufficient content for {url} ({size} bytes)")
            return self._attempt(url, FetchStatus.ERROR, start, attempt, error=f"Insufficient content ({size} bytes)")

        protection = classify(html, metadata.get("title") or extract_title(html))
        if protection.blocked:
            self.failed_requests += 1
            logger.warning(f"[{self.name}] Returned a challenge page for {url}: {protection.provider}")
            return self._attempt(
                url, FetchStatus.BLOCKED, start, attempt,
                error=f"Bot protection: {protection.provider}", blocked_by=protection.provider,
                raw_body=html, status_code=200, metadata=metadata,
            )

        logger.info(f"[{self.name}] ✓ {url}: {len(html)} bytes in {time.monotonic() - start:.1f}s")
        return self._attempt(url, FetchStatus.OK, start, attempt, raw_body=html, status_code=200, metadata=metadata)

    @abstractmethod
    async def _request(self, client: httpx.AsyncClient, url: str) -> tuple[str, dict]:
        """Perform the service call and return (html, metadata)."""

    def _attempt(self, url, status, start, attempt, **kwargs) -> FetchAttempt:
        return FetchAttempt(
            tier=FetchTier.THIRD_PARTY,
            url=url,
            status=status,
            latency=time.monotonic() - start,
            attempt=attempt,
            user_agent=self.name,
            **kwargs,
        )

    def get_stats(self) -> dict:
        """Get API usage statistics"""
        return {
            'provider': self.name,
            'total_requests': self.total_requests,
            'failed_requests': self.failed_requests,
        }


class ScraperAPIFetcher(ThirdPartyFetcher):
    """ScraperAPI client: GET with JavaScript rendering enabled."""

    name = "scraperapi"
    API_URL = "http://api.scraperapi.com/"

    async def _request(self, client: httpx.AsyncClient, url: str) -> tuple[str, dict]:
        headers = {"Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"}
        params = {"api_key": self.api_key, "url": url, "render": "true"}

        response = await client.get(self.API_URL, params=params, headers=headers)
        if response.status_code == 500:
            # Rendering is the usual cause of 500s; the plain fetch still counts as this attempt
            logger.warning(f"[{self.name}] render=true failed with 500, trying without rendering")
            params.pop("render")
            response = await client.get(self.API_URL, params=params, headers=headers)

        response.raise_for_status()
        return response.text, {}


class FirecrawlFetcher(ThirdPartyFetcher):
    """Firecrawl client: POST scrape request returning HTML and page metadata."""

    name = "firecrawl"
    API_URL = "https://api.firecrawl.dev/v1/scrape"

    async def _request(self, client: httpx.AsyncClient, url: str) -> tuple[str, dict]:
        payload = {
            "url": url,
            "formats": ["html", "markdown"],
            "onlyMainContent": False,
            "waitFor": FIRECRAWL_WAIT_FOR_MS,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        response = await client.post(self.API_URL, json=payload, headers=headers)
        response.raise_for_status()
        body = response.json()

        if not body.get("success"):
            raise ValueError(f"Firecrawl returned unsuccessful response: {body.get('error', 'unknown error')}")

        data = body.get("data") or {}
        raw_metadata = data.get("metadata") or {}
        metadata = {
            key: raw_metadata[key]
            for key in ("title", "description")
            if raw_metadata.get(key)
        }
        return data.get("html") or "", metadata


PROVIDERS = {
    ScraperAPIFetcher.name: ScraperAPIFetcher,
    FirecrawlFetcher.name: FirecrawlFetcher,
}


def build_third_party_fetcher(
    provider: str,
    scraper_api_key: Optional[str] = None,
    firecrawl_api_key: Optional[str] = None,
    timeout: float = THIRD_PARTY_TIMEOUT_SECONDS,
) -> ThirdPartyFetcher:
    """
    Create the configured tier-3 fetcher.

    Args:
        provider: 'scraperapi' or 'firecrawl'
        scraper_api_key: ScraperAPI key
        firecrawl_api_key: Firecrawl key
        timeout: Request timeout in seconds

    Returns:
        ThirdPartyFetcher instance

    Raises:
        ValueError: If the provider is unknown
    """
    provider = provider.lower()
    if provider not in PROVIDERS:
        raise ValueError(f"Unsupported third-party provider: {provider}")
    api_key = scraper_api_key if provider == ScraperAPIFetcher.name else firecrawl_api_key
    return PROVIDERS[provider](api_key=api_key, timeout=timeout)
