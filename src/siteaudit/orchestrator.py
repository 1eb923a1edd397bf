"""
Scraping orchestrator.

Turns a URL into a CrawlResult by escalating through the fetch tiers:

    HTTP (up to 3 attempts) -> HEADLESS (1 attempt) -> THIRD_PARTY (1 attempt)

The escalation is an explicit state machine driven by TRANSITIONS, so the
rule "never leave a tier early without a reason" lives in one table. A
blocked response leaves the HTTP tier immediately; only transport errors
and 5xx responses are retried. When every tier fails the caller gets a
typed fallback result marked LIMITED, never an exception, unless one of the
blocked responses still holds a full page; that page is analyzed on its own
as a SINGLE_PAGE result.
"""

import asyncio
import dataclasses
import logging
from enum import Enum
from typing import Optional

from siteaudit.browser_config import DEFAULT_CONFIG, BrowserConfig
from siteaudit.browser_fetcher import HeadlessFetcher
from siteaudit.config import Config
from siteaudit.consistency import ConsistencyAnalyzer
from siteaudit.constants import BLOCKED_PAGE_MIN_WORDS, UNAVAILABLE_MARKER
from siteaudit.crawl_coordinator import MultiPageCrawler
from siteaudit.exceptions import RenderEngineUnavailable, ThirdPartyNotConfigured
from siteaudit.external.pagespeed_insights import PageSpeedInsightsAPI
from siteaudit.external.scraping_api import ThirdPartyFetcher, build_third_party_fetcher
from siteaudit.external.seo_probes import SEOProbe
from siteaudit.fetcher import PageFetcher
from siteaudit.models import (
    AnalysisDepth,
    CrawlResult,
    FetchAttempt,
    FetchStatus,
    FetchTier,
    SEOMetrics,
    SiteStructure,
    unavailable_page,
)
from siteaudit.parser import ContentParser
from siteaudit.site_structure import SiteStructureAnalyzer
from siteaudit.url_utils import extract_company_name, is_valid_url, normalize_url

logger = logging.getLogger(__name__)


class State(Enum):
    """Orchestrator states: one per fetch tier plus the two terminal states."""
    HTTP = "http"
    HEADLESS = "headless"
    THIRD_PARTY = "third_party"
    PARSE = "parse"
    FALLBACK = "fallback"


class Outcome(Enum):
    """Classification of a tier attempt as seen by the state machine."""
    OK = "ok"
    BLOCKED = "blocked"
    RETRY = "retry"  # Transient failure with attempts left in the tier
    EXHAUSTED = "exhausted"  # Transient failure with no attempts left


TRANSITIONS = {
    (State.HTTP, Outcome.OK): State.PARSE,
    (State.HTTP, Outcome.RETRY): State.HTTP,
    (State.HTTP, Outcome.BLOCKED): State.HEADLESS,
    (State.HTTP, Outcome.EXHAUSTED): State.HEADLESS,
    (State.HEADLESS, Outcome.OK): State.PARSE,
    (State.HEADLESS, Outcome.BLOCKED): State.THIRD_PARTY,
    (State.HEADLESS, Outcome.EXHAUSTED): State.THIRD_PARTY,
    (State.THIRD_PARTY, Outcome.OK): State.PARSE,
    (State.THIRD_PARTY, Outcome.BLOCKED): State.FALLBACK,
    (State.THIRD_PARTY, Outcome.EXHAUSTED): State.FALLBACK,
}

TIER_FOR_STATE = {
    State.HTTP: FetchTier.HTTP,
    State.HEADLESS: FetchTier.HEADLESS,
    State.THIRD_PARTY: FetchTier.THIRD_PARTY,
}

DEPTH_FOR_TIER = {
    FetchTier.HEADLESS: AnalysisDepth.HEADLESS,
    FetchTier.THIRD_PARTY: AnalysisDepth.THIRD_PARTY,
}


def backoff_delay(attempt_index: int) -> float:
    """Seconds to wait after the failed attempt with this zero-based index."""
    return float(attempt_index + 1)


def build_fallback_result(url: str, attempts: Optional[list[FetchAttempt]] = None) -> CrawlResult:
    """
    Typed result for a site no tier could fetch.

    Every page text field carries UNAVAILABLE_MARKER so downstream scoring
    cannot mistake the absence of data for real content. company_name is the
    exception: it is derived from the domain, which is known without a fetch.

    Args:
        url: Requested URL
        attempts: The escalation trail

    Returns:
        CrawlResult with analysis_depth LIMITED and fallback_used True
    """
    homepage = unavailable_page(url)
    return CrawlResult(
        url=url,
        homepage=homepage,
        pages=[homepage],
        consistency=ConsistencyAnalyzer().insufficient_pages_report(0),
        performance=None,
        seo=SEOMetrics(),
        site_structure=SiteStructure(
            main_navigation_text=UNAVAILABLE_MARKER,
            breadcrumbs_text=UNAVAILABLE_MARKER,
            footer_text=UNAVAILABLE_MARKER,
        ),
        analysis_depth=AnalysisDepth.LIMITED,
        fallback_used=True,
        acquired_with=None,
        attempts=list(attempts or []),
        company_name=extract_company_name(url),
    )


class ScrapingOrchestrator:
    """Acquires a CrawlResult for a URL, escalating through fetch tiers."""

    def __init__(
        self,
        config: Optional[Config] = None,
        http_fetcher: Optional[PageFetcher] = None,
        headless_fetcher: Optional[HeadlessFetcher] = None,
        third_party_fetcher: Optional[ThirdPartyFetcher] = None,
        parser: Optional[ContentParser] = None,
        structure_analyzer: Optional[SiteStructureAnalyzer] = None,
        consistency_analyzer: Optional[ConsistencyAnalyzer] = None,
        performance_client: Optional[PageSpeedInsightsAPI] = None,
        seo_probe: Optional[SEOProbe] = None,
        sleep=asyncio.sleep,
    ):
        """
        Initialize the orchestrator.

        Collaborators left as None are built from config; the headless tier
        and metrics collectors are skipped when config disables them.

        Args:
            config: Pipeline configuration (default: Config.from_env())
            http_fetcher: Tier-1 fetcher, also used by the multi-page crawl
            headless_fetcher: Tier-2 fetcher
            third_party_fetcher: Tier-3 fetcher
            parser: Content parser
            structure_analyzer: Site structure analyzer
            consistency_analyzer: Cross-page consistency analyzer
            performance_client: PageSpeed Insights client
            seo_probe: SEO probe runner
            sleep: Coroutine used for backoff waits
        """
        self.config = config or Config.from_env()
        cfg = self.config

        self.http_fetcher = http_fetcher or PageFetcher(timeout=cfg.http_timeout)

        if headless_fetcher is None and cfg.headless_enabled:
            headless_fetcher = HeadlessFetcher(BrowserConfig.model_validate({
                **DEFAULT_CONFIG.model_dump(),
                "browser_type": cfg.browser_type,
                "timeout": int(cfg.headless_timeout * 1000),
            }))
        self.headless_fetcher = headless_fetcher

        self.third_party_fetcher = third_party_fetcher or build_third_party_fetcher(
            cfg.third_party_provider,
            scraper_api_key=cfg.scraper_api_key,
            firecrawl_api_key=cfg.firecrawl_api_key,
            timeout=cfg.third_party_timeout,
        )

        self.parser = parser or ContentParser()
        self.structure_analyzer = structure_analyzer or SiteStructureAnalyzer()
        self.consistency_analyzer = consistency_analyzer or ConsistencyAnalyzer()

        if performance_client is None and cfg.collect_metrics:
            performance_client = PageSpeedInsightsAPI(
                api_key=cfg.google_psi_api_key, strategy=cfg.psi_strategy
            )
        self.performance_client = performance_client
        if seo_probe is None and cfg.collect_metrics:
            seo_probe = SEOProbe()
        self.seo_probe = seo_probe

        self._sleep = sleep

    async def acquire(self, url: str) -> CrawlResult:
        """
        Acquire a CrawlResult for a URL.

        Never raises for reachable-but-hostile or unreachable URLs; the
        worst case is a fallback result (analysis_depth LIMITED).

        Args:
            url: Site URL (scheme optional)

        Returns:
            CrawlResult from the first tier that succeeded, or a fallback
        """
        url = normalize_url(url)
        if not is_valid_url(url):
            logger.error(f"Invalid URL, returning fallback result: {url}")
            return build_fallback_result(url)

        attempts: list[FetchAttempt] = []
        success: Optional[FetchAttempt] = None
        state = State.HTTP
        http_attempt = 0

        while state not in (State.PARSE, State.FALLBACK):
            attempt = await self._run_tier(state, url, http_attempt)
            attempts.append(attempt)
            outcome = self._classify(state, attempt, http_attempt)
            next_state = TRANSITIONS[(state, outcome)]

            if outcome == Outcome.OK:
                success = attempt
            elif next_state == state:
                delay = backoff_delay(http_attempt)
                logger.warning(
                    f"Attempt {http_attempt + 1}/{self.config.http_attempts} failed for {url} "
                    f"({attempt.error}). Retrying in {delay:.0f}s..."
                )
                await self._sleep(delay)
                http_attempt += 1
            else:
                logger.warning(
                    f"Escalating {url}: {state.value} -> {next_state.value} ({outcome.value}: {attempt.error})"
                )
            state = next_state

        degraded = False
        if state == State.FALLBACK:
            success = self._salvage_blocked_page(url, attempts)
            if success is None:
                logger.error(f"All fetch tiers failed for {url}; returning fallback result")
                return build_fallback_result(url, attempts)
            degraded = True
            logger.warning(
                f"All fetch tiers flagged {url} as protected; analyzing the "
                f"{success.tier.value} response as a single page"
            )

        try:
            return await self._analyze(url, success, attempts, degraded=degraded)
        except Exception as e:
            logger.exception(f"Analysis failed for {url} after a successful fetch: {e}")
            return build_fallback_result(url, attempts)

    def _classify(self, state: State, attempt: FetchAttempt, http_attempt: int) -> Outcome:
        """Map a tier attempt to a state-machine outcome."""
        if attempt.status == FetchStatus.OK:
            return Outcome.OK
        if attempt.status == FetchStatus.BLOCKED:
            return Outcome.BLOCKED
        if state == State.HTTP and http_attempt + 1 < self.config.http_attempts:
            return Outcome.RETRY
        return Outcome.EXHAUSTED

    async def _run_tier(self, state: State, url: str, http_attempt: int) -> FetchAttempt:
        """Run one attempt of the tier for this state; errors become ERROR attempts."""
        tier = TIER_FOR_STATE[state]
        try:
            if state == State.HTTP:
                logger.info(f"Attempt {http_attempt + 1} to fetch {url}")
                return await self.http_fetcher.fetch(url, attempt=http_attempt)

            if state == State.HEADLESS:
                if self.headless_fetcher is None:
                    return FetchAttempt(tier=tier, url=url, status=FetchStatus.ERROR, error="Headless tier disabled")
                logger.info(f"Rendering {url} with headless browser")
                return await self.headless_fetcher.fetch(url)

            logger.info(f"Fetching {url} through third-party extraction service")
            return await self.third_party_fetcher.fetch(url)

        except RenderEngineUnavailable as e:
            logger.error(f"Headless engine unavailable, check browser installation: {e}")
            return FetchAttempt(tier=tier, url=url, status=FetchStatus.ERROR, error=str(e))
        except ThirdPartyNotConfigured as e:
            logger.warning(f"Third-party tier skipped: {e}")
            return FetchAttempt(tier=tier, url=url, status=FetchStatus.ERROR, error=str(e))
        except Exception as e:
            error_msg = str(e) or type(e).__name__
            logger.error(f"Unexpected {tier.value} tier error for {url}: {error_msg}")
            return FetchAttempt(tier=tier, url=url, status=FetchStatus.ERROR, error=error_msg)

    def _salvage_blocked_page(self, url: str, attempts: list[FetchAttempt]) -> Optional[FetchAttempt]:
        """
        Latest blocked 2xx response whose body still reads like a real page.

        Challenge signatures can match ordinary pages (a contact form that
        loads Turnstile, say). A challenge interstitial is short, so a body
        with at least BLOCKED_PAGE_MIN_WORDS words of text is kept.
        """
        for attempt in reversed(attempts):
            if attempt.status != FetchStatus.BLOCKED or not attempt.raw_body:
                continue
            if attempt.status_code is None or not 200 <= attempt.status_code < 300:
                continue
            page = self.parser.parse(attempt.raw_body, attempt.final_url or url)
            if page.word_count >= BLOCKED_PAGE_MIN_WORDS:
                return attempt
        return None

    async def _analyze(
        self,
        url: str,
        success: FetchAttempt,
        attempts: list[FetchAttempt],
        degraded: bool = False,
    ) -> CrawlResult:
        """Parse the fetched homepage, crawl secondary pages and collect metrics.

        A degraded analysis covers the homepage only and is reported as
        SINGLE_PAGE.
        """
        html = success.raw_body or ""
        page_url = success.final_url or url

        homepage = self.parser.parse(html, page_url, is_homepage=True)
        if success.metadata:
            homepage = dataclasses.replace(
                homepage,
                title=success.metadata.get("title") or homepage.title,
                description=success.metadata.get("description") or homepage.description,
            )

        structure = self.structure_analyzer.analyze(page_url, html)
        pages = [homepage]

        secondary_budget = self.config.max_pages - 1
        if not degraded and secondary_budget > 0 and structure.discovered_internal_links:
            crawler = MultiPageCrawler(
                self.http_fetcher,
                parser=self.parser,
                max_workers=self.config.crawl_workers,
                page_timeout=self.config.crawl_page_timeout,
                stagger=self.config.crawl_stagger,
            )
            pages.extend(await crawler.crawl(page_url, structure.discovered_internal_links, secondary_budget))

        consistency = self.consistency_analyzer.compare(pages)
        performance, seo = await self._collect_metrics(url, html, success)

        if degraded:
            depth = AnalysisDepth.SINGLE_PAGE
        elif success.tier == FetchTier.HTTP:
            depth = AnalysisDepth.MULTI_PAGE if len(pages) >= 2 else AnalysisDepth.SINGLE_PAGE
        else:
            depth = DEPTH_FOR_TIER[success.tier]

        logger.info(
            f"Acquired {url} via {success.tier.value}: {len(pages)} pages, depth={depth.value}"
        )
        return CrawlResult(
            url=url,
            homepage=homepage,
            pages=pages,
            consistency=consistency,
            performance=performance,
            seo=seo,
            site_structure=structure,
            analysis_depth=depth,
            fallback_used=False,
            acquired_with=success.tier,
            attempts=attempts,
            company_name=extract_company_name(url, homepage.title),
            load_time=success.latency,
        )

    async def _collect_metrics(self, url: str, html: str, success: FetchAttempt):
        """Run the performance and SEO collectors concurrently."""

        async def performance():
            if self.performance_client is None:
                return None
            return await self.performance_client.get_performance(url)

        async def seo():
            if self.seo_probe is None:
                return SEOMetrics()
            return await self.seo_probe.get_seo(url, html=html, homepage_attempt=success)

        performance_result, seo_result = await asyncio.gather(performance(), seo(), return_exceptions=True)

        # A failed collector degrades to unknown metrics, never to a fallback result
        if isinstance(performance_result, Exception):
            logger.warning(f"Performance collection failed for {url}: {performance_result!r}")
            performance_result = None
        if isinstance(seo_result, Exception):
            logger.warning(f"SEO probes failed for {url}: {seo_result!r}")
            seo_result = SEOMetrics()
        return performance_result, seo_result
