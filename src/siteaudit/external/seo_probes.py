"""
Direct SEO probes against the target host.

robots.txt and sitemap.xml presence, a verified TLS handshake on port 443,
and homepage markup checks (viewport, canonical). Every probe has its own
deadline and degrades to False/None on any error.
"""

import asyncio
import logging
import ssl
from typing import Optional
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from siteaudit.constants import BROWSER_USER_AGENTS, SEO_PROBE_TIMEOUT_SECONDS, TLS_PORT
from siteaudit.models import FetchAttempt, SEOMetrics
from siteaudit.url_utils import origin

logger = logging.getLogger(__name__)


class SEOProbe:
    """Runs the direct SEO checks for one site."""

    def __init__(
        self,
        timeout: float = SEO_PROBE_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verify_tls: bool = True,
    ):
        """
        Initialize the probe.

        Args:
            timeout: Deadline in seconds for each probe
            transport: Optional httpx transport (used by tests)
            verify_tls: Run the TLS handshake probe; when False has_ssl falls
                back to the URL scheme
        """
        self.timeout = timeout
        self._transport = transport
        self.verify_tls = verify_tls

    async def get_seo(
        self,
        url: str,
        html: Optional[str] = None,
        homepage_attempt: Optional[FetchAttempt] = None,
    ) -> SEOMetrics:
        """
        Collect SEO metrics for a site.

        Args:
            url: Homepage URL
            html: Homepage HTML already fetched by the pipeline
            homepage_attempt: The successful homepage fetch, for timing and redirects

        Returns:
            SEOMetrics with each probe defaulting to False on error
        """
        parsed = urlparse(url)
        root = origin(url)

        tls_check = (
            self.check_tls(parsed.hostname) if self.verify_tls and parsed.hostname
            else self._scheme_is_https(parsed.scheme)
        )
        has_robots, has_sitemap, has_ssl = await asyncio.gather(
            self.check_resource(f"{root}/robots.txt"),
            self.check_resource(f"{root}/sitemap.xml"),
            tls_check,
        )

        mobile_optimized, canonical_url = self._inspect_markup(html)
        html = html or ""

        metrics = SEOMetrics(
            has_robots_txt=has_robots,
            has_sitemap=has_sitemap,
            has_ssl=has_ssl,
            mobile_optimized=mobile_optimized,
            canonical_url=canonical_url,
            page_size_kb=round(len(html.encode("utf-8")) / 1024, 1),
            response_time_ms=round(homepage_attempt.latency * 1000, 1) if homepage_attempt else None,
            redirect_count=homepage_attempt.redirect_count if homepage_attempt else 0,
            has_service_worker="serviceworker.register" in html.lower(),
        )
        logger.info(
            f"SEO probes for {root}: robots={has_robots}, sitemap={has_sitemap}, "
            f"ssl={has_ssl}, mobile={mobile_optimized}"
        )
        return metrics

    async def check_resource(self, url: str) -> bool:
        """True when GET url answers 200."""
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True, transport=self._transport
            ) as client:
                response = await client.get(url, headers={"User-Agent": BROWSER_USER_AGENTS[0]})
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug(f"Probe failed for {url}: {e}")
            return False

    async def check_tls(self, hostname: str) -> bool:
        """True when a certificate-verified TLS handshake on port 443 succeeds."""
        context = ssl.create_default_context()
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(hostname, TLS_PORT, ssl=context, server_hostname=hostname),
                timeout=self.timeout,
            )
        except (OSError, ValueError, asyncio.TimeoutError) as e:
            logger.debug(f"TLS handshake failed for {hostname}: {e}")
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except (OSError, ssl.SSLError):
            pass  # Peer may drop the connection first
        return True

    async def _scheme_is_https(self, scheme: str) -> bool:
        return scheme == "https"

    def _inspect_markup(self, html: Optional[str]) -> tuple[bool, Optional[str]]:
        if not html:
            return False, None
        soup = BeautifulSoup(html, "html.parser")

        viewport = soup.find("meta", attrs={"name": "viewport"})
        content = (viewport.get("content") or "") if viewport else ""
        mobile_optimized = "width=device-width" in content.replace(" ", "").lower()

        canonical = soup.find("link", rel="canonical")
        canonical_url = canonical.get("href") if canonical else None
        return mobile_optimized, canonical_url or None
