"""Clients for external services: metrics collectors and third-party scrapers."""

from siteaudit.external.pagespeed_insights import PageSpeedInsightsAPI
from siteaudit.external.scraping_api import (
    FirecrawlFetcher,
    ScraperAPIFetcher,
    ThirdPartyFetcher,
    build_third_party_fetcher,
)
from siteaudit.external.seo_probes import SEOProbe

__all__ = [
    "PageSpeedInsightsAPI",
    "SEOProbe",
    "ThirdPartyFetcher",
    "ScraperAPIFetcher",
    "FirecrawlFetcher",
    "build_third_party_fetcher",
]
