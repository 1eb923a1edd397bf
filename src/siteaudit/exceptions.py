"""Exception types raised inside the acquisition pipeline.

None of these cross ScrapingOrchestrator.acquire(); the orchestrator turns
them into FetchAttempt records and escalates.
"""

from typing import Optional


class SiteAuditError(Exception):
    """Base class for all site audit errors."""


class FetchError(SiteAuditError):
    """A fetch tier could not produce usable HTML."""

    def __init__(
        self,
        message: str,
        tier: Optional[str] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.tier = tier
        self.url = url
        self.status_code = status_code


class RenderEngineUnavailable(FetchError):
    """The headless browser engine is not installed or failed to launch."""


class ThirdPartyFetchError(FetchError):
    """The external scraping service returned an error or unusable content."""


class ThirdPartyNotConfigured(ThirdPartyFetchError):
    """No API key is configured for the external scraping service."""


class ScoringError(SiteAuditError):
    """Section scores could not be extracted from a generated report."""
