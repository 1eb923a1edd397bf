"""
Google PageSpeed Insights API Client

Provides Lighthouse category scores and core web vitals for the homepage.
API Documentation: https://developers.google.com/speed/docs/insights/v5/get-started

Rate Limits:
- 400 requests per 100 seconds
- 25,000 requests per day (free tier)

Missing metrics mean "unknown", never "bad": every failure path returns None.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Dict, List, Optional

import httpx

from siteaudit.constants import PSI_TIMEOUT_SECONDS
from siteaudit.models import PerformanceMetrics

logger = logging.getLogger(__name__)


class PageSpeedInsightsAPI:
    """Client for Google PageSpeed Insights API v5"""

    API_URL = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
    RATE_LIMIT_REQUESTS = 400  # Max requests per 100 seconds
    RATE_LIMIT_WINDOW = 100  # Seconds

    def __init__(
        self,
        api_key: Optional[str] = None,
        strategy: str = "mobile",  # 'mobile' or 'desktop'
        categories: Optional[List[str]] = None,
        timeout: float = PSI_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rate_limit_requests: int = RATE_LIMIT_REQUESTS,
        rate_limit_window: float = RATE_LIMIT_WINDOW,
        clock=time.monotonic,
        sleep=asyncio.sleep,
    ):
        """
        Initialize PageSpeed Insights API client.

        Args:
            api_key: Google API key (optional; unauthenticated calls share a lower quota)
            strategy: 'mobile' or 'desktop' analysis
            categories: List of categories to analyze
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
            rate_limit_requests: Requests allowed per window
            rate_limit_window: Window length in seconds
            clock: Monotonic clock in seconds
            sleep: Coroutine used to wait out a full window
        """
        self.api_key = api_key
        self.strategy = strategy
        self.categories = categories or [
            'performance',
            'accessibility',
            'best-practices',
            'seo',
        ]
        self.timeout = timeout
        self._transport = transport

        # Rate limiting
        self.rate_limit_requests = rate_limit_requests
        self.rate_limit_window = rate_limit_window
        self._clock = clock
        self._sleep = sleep
        self.request_times: deque = deque()
        self.semaphore = asyncio.Semaphore(4)  # Max 4 concurrent requests
        self.total_requests = 0
        self.failed_requests = 0

    async def get_performance(self, url: str) -> Optional[PerformanceMetrics]:
        """
        Analyze a URL with PageSpeed Insights.

        Args:
            url: URL to analyze

        Returns:
            PerformanceMetrics, or None when the service is unavailable
        """
        await self._enforce_rate_limit()

        params = {
            'url': url,
            'strategy': self.strategy,
            'category': self.categories,
        }
        if self.api_key:
            params['key'] = self.api_key

        try:
            async with self.semaphore:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    logger.info(f"[PSI] Analyzing {url} ({self.strategy})")
                    response = await client.get(self.API_URL, params=params)
                    response.raise_for_status()

                    self.total_requests += 1
                    metrics = self._parse_response(response.json(), url)
                    if metrics is None:
                        self.failed_requests += 1
                    return metrics

        except httpx.TimeoutException:
            self.failed_requests += 1
            logger.warning(f"[PSI] Timeout analyzing {url} (>{self.timeout:.0f}s)")
        except httpx.HTTPStatusError as e:
            self.failed_requests += 1
            if e.response.status_code == 429:
                logger.warning(f"[PSI] Rate limit exceeded for {url}")
            elif e.response.status_code == 400:
                logger.warning(f"[PSI] Invalid URL or parameters: {url}")
            else:
                logger.warning(f"[PSI] API error {e.response.status_code} for {url}")
        except (httpx.HTTPError, ValueError) as e:
            self.failed_requests += 1
            error_msg = str(e) if str(e) else type(e).__name__
            logger.warning(f"[PSI] Error analyzing {url}: {error_msg}")

        return None

    async def _enforce_rate_limit(self):
        """Hold the request until the sliding window has room."""
        now = self._clock()
        self._expire_request_times(now)

        if len(self.request_times) >= self.rate_limit_requests:
            wait_time = self.rate_limit_window - (now - self.request_times[0])

            if wait_time > 0:
                logger.warning(f"[PSI] Rate limit reached. Waiting {wait_time:.1f}s...")
                await self._sleep(wait_time)

                now = self._clock()
                self._expire_request_times(now)

        self.request_times.append(now)

    def _expire_request_times(self, now: float) -> None:
        """Drop request timestamps that fell out of the window."""
        while self.request_times and now - self.request_times[0] >= self.rate_limit_window:
            self.request_times.popleft()

    def _parse_response(self, data: Dict, url: str) -> Optional[PerformanceMetrics]:
        """
        Parse PageSpeed Insights API response.

        Args:
            data: Raw API response
            url: URL that was analyzed

        Returns:
            PerformanceMetrics with Lighthouse scores and metrics, or None
            when the reply carries no Lighthouse result
        """
        if not isinstance(data, dict):
            data = {}
        # Lighthouse sends explicit nulls when a run fails part-way
        lighthouse = data.get('lighthouseResult')
        if not lighthouse or not isinstance(lighthouse, dict):
            logger.warning(f"[PSI] No Lighthouse result for {url}")
            return None
        categories = lighthouse.get('categories') or {}
        audits = lighthouse.get('audits') or {}

        metrics = PerformanceMetrics(
            performance_score=self._extract_score(categories.get('performance')),
            accessibility_score=self._extract_score(categories.get('accessibility')),
            best_practices_score=self._extract_score(categories.get('best-practices')),
            seo_score=self._extract_score(categories.get('seo')),
            lcp=self._extract_metric_ms(audits.get('largest-contentful-paint')),
            fid=self._extract_metric_ms(audits.get('max-potential-fid')),
            cls=self._extract_cls(audits.get('cumulative-layout-shift')),
            fcp=self._extract_metric_ms(audits.get('first-contentful-paint')),
            tbt=self._extract_metric_ms(audits.get('total-blocking-time')),
            strategy=self.strategy,
            fetch_time=lighthouse.get('fetchTime'),
        )

        logger.info(f"[PSI] ✓ {url}: Performance={metrics.performance_score}, "
                    f"LCP={metrics.lcp}ms, CLS={metrics.cls}")

        return metrics

    def _extract_score(self, category: Optional[Dict]) -> Optional[float]:
        """Extract score from category (convert 0-1 to 0-100)"""
        if not category or category.get('score') is None:
            return None
        return round(category['score'] * 100, 1)

    def _extract_metric_ms(self, audit: Optional[Dict]) -> Optional[int]:
        """Extract metric value in milliseconds"""
        if not audit or 'numericValue' not in audit:
            return None
        return int(audit['numericValue'])

    def _extract_cls(self, audit: Optional[Dict]) -> Optional[float]:
        """Extract CLS score (already in correct scale)"""
        if not audit or 'numericValue' not in audit:
            return None
        return round(audit['numericValue'], 3)

    def get_stats(self) -> Dict[str, int]:
        """Get API usage statistics"""
        return {
            'total_requests': self.total_requests,
            'failed_requests': self.failed_requests,
            'requests_in_window': len(self.request_times),
        }
