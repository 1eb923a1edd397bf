"""Tests for the tiered scraping orchestrator."""

from unittest.mock import AsyncMock, Mock, call

import httpx
import pytest

from conftest import ABOUT_HTML, CLOUDFLARE_HTML, HOMEPAGE_HTML, TURNSTILE_CONTACT_HTML
from siteaudit.browser_config import DEFAULT_CONFIG
from siteaudit.config import Config
from siteaudit.constants import UNAVAILABLE_MARKER
from siteaudit.external.pagespeed_insights import PageSpeedInsightsAPI
from siteaudit.external.scraping_api import ScraperAPIFetcher
from siteaudit.fetcher import PageFetcher, build_http_client
from siteaudit.models import (
    AnalysisDepth,
    FetchAttempt,
    FetchStatus,
    FetchTier,
    PerformanceMetrics,
    SEOMetrics,
)
from siteaudit.orchestrator import (
    TRANSITIONS,
    Outcome,
    ScrapingOrchestrator,
    State,
    backoff_delay,
    build_fallback_result,
)

URL = "https://acme.example.com/"


def ok(tier=FetchTier.HTTP, html=HOMEPAGE_HTML, url=URL, **kwargs):
    return FetchAttempt(tier=tier, url=url, status=FetchStatus.OK, raw_body=html, status_code=200, **kwargs)


def error(tier=FetchTier.HTTP, status_code=503):
    return FetchAttempt(
        tier=tier, url=URL, status=FetchStatus.ERROR, error=f"HTTP {status_code}", status_code=status_code
    )


def blocked(tier=FetchTier.HTTP, html=CLOUDFLARE_HTML):
    return FetchAttempt(
        tier=tier, url=URL, status=FetchStatus.BLOCKED, raw_body=html,
        error="Bot protection: cloudflare", status_code=200, blocked_by="cloudflare",
    )


def fetcher(*results):
    mock = Mock()
    mock.fetch = AsyncMock(side_effect=list(results))
    return mock


def make_orchestrator(http=None, headless=None, third_party=None, **config_overrides):
    config_overrides.setdefault("max_pages", 1)
    config_overrides.setdefault("collect_metrics", False)
    config = Config(**config_overrides)
    sleep = AsyncMock()
    orchestrator = ScrapingOrchestrator(
        config=config,
        http_fetcher=http or fetcher(),
        headless_fetcher=headless,
        third_party_fetcher=third_party or fetcher(error(FetchTier.THIRD_PARTY)),
        sleep=sleep,
    )
    return orchestrator, sleep


class TestStateMachine:
    """Test cases for the transition table and backoff."""

    def test_backoff_is_linear(self):
        """Test that the n-th retry waits n seconds."""
        assert [backoff_delay(i) for i in range(3)] == [1.0, 2.0, 3.0]

    def test_blocked_never_retries(self):
        """Test that a blocked outcome always leaves the current tier."""
        for state in (State.HTTP, State.HEADLESS, State.THIRD_PARTY):
            assert TRANSITIONS[(state, Outcome.BLOCKED)] != state

    def test_only_http_retries(self):
        """Test that RETRY transitions exist for the HTTP tier only."""
        retry_states = [state for (state, outcome) in TRANSITIONS if outcome == Outcome.RETRY]
        assert retry_states == [State.HTTP]

    def test_third_party_ends_in_terminal_state(self):
        """Test that the last tier never escalates further."""
        for outcome in (Outcome.BLOCKED, Outcome.EXHAUSTED):
            assert TRANSITIONS[(State.THIRD_PARTY, outcome)] == State.FALLBACK


class TestConstruction:
    """Test cases for collaborators built from Config."""

    def test_headless_fetcher_from_config(self):
        """Test that the default render settings pick up the configured engine and timeout."""
        orchestrator = ScrapingOrchestrator(
            config=Config(headless_timeout=12.0, browser_type="firefox", collect_metrics=False)
        )

        browser_config = orchestrator.headless_fetcher._config
        assert browser_config.timeout == 12000
        assert browser_config.browser_type == "firefox"
        assert browser_config.settle_delay == DEFAULT_CONFIG.settle_delay
        assert orchestrator.performance_client is None

    def test_headless_disabled_builds_no_fetcher(self):
        orchestrator = ScrapingOrchestrator(config=Config(headless_enabled=False, collect_metrics=False))

        assert orchestrator.headless_fetcher is None


class TestScrapingOrchestrator:
    """Test cases for ScrapingOrchestrator.acquire."""

    @pytest.mark.asyncio
    async def test_http_success_first_try(self):
        """Test a plain successful fetch on the first attempt."""
        http = fetcher(ok())
        orchestrator, sleep = make_orchestrator(http=http)

        result = await orchestrator.acquire("acme.example.com")

        assert result.acquired_with == FetchTier.HTTP
        assert result.analysis_depth == AnalysisDepth.SINGLE_PAGE
        assert not result.fallback_used
        assert result.homepage.title == "Acme Widgets | Quality Widgets Since 1990"
        assert result.company_name == "Acme Widgets"
        assert len(result.attempts) == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_server_errors_retried_with_backoff(self):
        """Test that 5xx responses are retried with 1s then 2s waits."""
        http = fetcher(error(), error(), ok())
        orchestrator, sleep = make_orchestrator(http=http)

        result = await orchestrator.acquire(URL)

        assert result.acquired_with == FetchTier.HTTP
        assert http.fetch.await_count == 3
        assert [c.kwargs["attempt"] for c in http.fetch.await_args_list] == [0, 1, 2]
        assert sleep.await_args_list == [call(1.0), call(2.0)]
        assert len(result.attempts) == 3

    @pytest.mark.asyncio
    async def test_blocked_escalates_immediately(self):
        """Test that a challenge page skips the remaining HTTP attempts."""
        http = fetcher(blocked())
        headless = fetcher(ok(FetchTier.HEADLESS))
        orchestrator, sleep = make_orchestrator(http=http, headless=headless)

        result = await orchestrator.acquire(URL)

        assert http.fetch.await_count == 1
        sleep.assert_not_awaited()
        assert result.acquired_with == FetchTier.HEADLESS
        assert result.analysis_depth == AnalysisDepth.HEADLESS
        assert [a.tier for a in result.attempts] == [FetchTier.HTTP, FetchTier.HEADLESS]

    @pytest.mark.asyncio
    async def test_exhausted_http_escalates_to_headless(self):
        """Test escalation after three failed HTTP attempts."""
        http = fetcher(error(), error(), error())
        headless = fetcher(ok(FetchTier.HEADLESS))
        orchestrator, sleep = make_orchestrator(http=http, headless=headless)

        result = await orchestrator.acquire(URL)

        assert http.fetch.await_count == 3
        assert sleep.await_count == 2
        assert result.acquired_with == FetchTier.HEADLESS

    @pytest.mark.asyncio
    async def test_third_party_success_uses_metadata(self):
        """Test the third-party tier and its title/description override."""
        http = fetcher(blocked())
        headless = fetcher(blocked(FetchTier.HEADLESS))
        third_party = fetcher(ok(
            FetchTier.THIRD_PARTY,
            metadata={"title": "Acme | Official Site", "description": "From the service"},
        ))
        orchestrator, _ = make_orchestrator(http=http, headless=headless, third_party=third_party)

        result = await orchestrator.acquire(URL)

        assert result.acquired_with == FetchTier.THIRD_PARTY
        assert result.analysis_depth == AnalysisDepth.THIRD_PARTY
        assert result.homepage.title == "Acme | Official Site"
        assert result.homepage.description == "From the service"

    @pytest.mark.asyncio
    async def test_all_tiers_fail_returns_fallback(self):
        """Test the typed fallback when every tier fails."""
        http = fetcher(error(), error(), error())
        headless = fetcher(blocked(FetchTier.HEADLESS))
        third_party = fetcher(error(FetchTier.THIRD_PARTY, status_code=500))
        orchestrator, _ = make_orchestrator(http=http, headless=headless, third_party=third_party)

        result = await orchestrator.acquire(URL)

        assert result.fallback_used
        assert result.analysis_depth == AnalysisDepth.LIMITED
        assert result.acquired_with is None
        assert result.homepage.title == UNAVAILABLE_MARKER
        assert result.homepage.navigation_text == UNAVAILABLE_MARKER
        assert result.performance is None
        assert len(result.attempts) == 5
        assert result.company_name == "Example"

    @pytest.mark.asyncio
    async def test_headless_disabled(self):
        """Test that a disabled headless tier is recorded and skipped."""
        http = fetcher(blocked())
        third_party = fetcher(ok(FetchTier.THIRD_PARTY))
        orchestrator, _ = make_orchestrator(http=http, third_party=third_party, headless_enabled=False)

        result = await orchestrator.acquire(URL)

        headless_attempt = result.attempts[1]
        assert headless_attempt.tier == FetchTier.HEADLESS
        assert headless_attempt.error == "Headless tier disabled"
        assert result.acquired_with == FetchTier.THIRD_PARTY

    @pytest.mark.asyncio
    async def test_third_party_not_configured(self):
        """Test that a missing API key becomes an error attempt, not an exception."""
        http = fetcher(blocked())
        headless = fetcher(blocked(FetchTier.HEADLESS))
        orchestrator, _ = make_orchestrator(
            http=http, headless=headless, third_party=ScraperAPIFetcher(api_key=None)
        )

        result = await orchestrator.acquire(URL)

        assert result.fallback_used
        assert "API key not set" in result.attempts[-1].error

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error_attempt(self):
        """Test that fetcher exceptions are retried like transport errors."""
        http = fetcher(RuntimeError("boom"), ok())
        orchestrator, sleep = make_orchestrator(http=http)

        result = await orchestrator.acquire(URL)

        assert result.attempts[0].status == FetchStatus.ERROR
        assert result.attempts[0].error == "boom"
        assert result.acquired_with == FetchTier.HTTP
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_invalid_url_returns_fallback(self):
        """Test that an unparseable URL never reaches a fetcher."""
        http = fetcher()
        orchestrator, _ = make_orchestrator(http=http)

        result = await orchestrator.acquire("http://")

        assert result.fallback_used
        assert result.attempts == []
        http.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_multi_page_crawl(self):
        """Test that secondary pages are crawled and compared after a successful fetch."""
        async def fetch(url, **kwargs):
            if url == URL:
                return ok()
            return ok(html=ABOUT_HTML, url=url)

        http = Mock()
        http.fetch = AsyncMock(side_effect=fetch)
        orchestrator, _ = make_orchestrator(http=http, max_pages=3, crawl_stagger=0)

        result = await orchestrator.acquire(URL)

        assert result.analysis_depth == AnalysisDepth.MULTI_PAGE
        assert len(result.pages) == 3
        assert result.pages[0].is_homepage
        assert [page.url for page in result.pages[1:]] == [
            "https://acme.example.com/about",
            "https://acme.example.com/contact",
        ]
        assert result.consistency.pages_compared == 3

    @pytest.mark.asyncio
    async def test_single_page_consistency_default(self):
        """Test that a single parsed page yields the low-confidence report."""
        orchestrator, _ = make_orchestrator(http=fetcher(ok()))

        result = await orchestrator.acquire(URL)

        assert result.consistency.brand_score == 50
        assert result.consistency.pages_compared == 1

    @pytest.mark.asyncio
    async def test_collects_metrics(self):
        """Test that performance and SEO collectors feed the result."""
        performance_client = Mock()
        performance_client.get_performance = AsyncMock(return_value=PerformanceMetrics(performance_score=91.0))
        seo_probe = Mock()
        seo_probe.get_seo = AsyncMock(return_value=SEOMetrics(has_ssl=True, has_robots_txt=True))

        orchestrator = ScrapingOrchestrator(
            config=Config(max_pages=1, collect_metrics=True, headless_enabled=False),
            http_fetcher=fetcher(ok()),
            third_party_fetcher=fetcher(),
            performance_client=performance_client,
            seo_probe=seo_probe,
            sleep=AsyncMock(),
        )

        result = await orchestrator.acquire(URL)

        assert result.performance.performance_score == 91.0
        assert result.seo.has_ssl
        performance_client.get_performance.assert_awaited_once_with(URL)
        assert seo_probe.get_seo.await_args.kwargs["homepage_attempt"].ok


class TestDegradedResults:
    """Test cases for results that degrade instead of falling back."""

    @pytest.mark.asyncio
    async def test_turnstile_contact_page_is_real_content(self):
        """Test that a page loading the Turnstile widget is fetched, not escalated."""
        client = build_http_client(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text=TURNSTILE_CONTACT_HTML))
        )
        third_party = fetcher(ok(FetchTier.THIRD_PARTY, html=TURNSTILE_CONTACT_HTML))
        orchestrator, _ = make_orchestrator(
            http=PageFetcher(client=client), third_party=third_party, headless_enabled=False
        )

        result = await orchestrator.acquire(URL)

        assert not result.fallback_used
        assert result.analysis_depth == AnalysisDepth.SINGLE_PAGE
        assert result.acquired_with == FetchTier.HTTP
        assert result.homepage.title == "Contact Us | Acme Widgets"
        third_party.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_flagged_full_page_analyzed_when_every_tier_flags_it(self):
        """Test that a blocked 2xx body with real content becomes a single-page result."""
        http = fetcher(blocked(html=TURNSTILE_CONTACT_HTML))
        third_party = fetcher(blocked(FetchTier.THIRD_PARTY, html=TURNSTILE_CONTACT_HTML))
        orchestrator, _ = make_orchestrator(
            http=http, third_party=third_party, headless_enabled=False, max_pages=3
        )

        result = await orchestrator.acquire(URL)

        assert not result.fallback_used
        assert result.analysis_depth == AnalysisDepth.SINGLE_PAGE
        assert result.acquired_with == FetchTier.THIRD_PARTY
        assert result.homepage.title == "Contact Us | Acme Widgets"
        assert len(result.pages) == 1
        assert http.fetch.await_count == 1
        assert len(result.attempts) == 3

    @pytest.mark.asyncio
    async def test_challenge_interstitial_still_falls_back(self):
        """Test that a short challenge page is never analyzed as content."""
        http = fetcher(blocked())
        third_party = fetcher(blocked(FetchTier.THIRD_PARTY))
        orchestrator, _ = make_orchestrator(http=http, third_party=third_party, headless_enabled=False)

        result = await orchestrator.acquire(URL)

        assert result.fallback_used
        assert result.analysis_depth == AnalysisDepth.LIMITED

    @pytest.mark.asyncio
    async def test_non_2xx_blocked_body_not_salvaged(self):
        """Test that only successful responses are eligible for degraded analysis."""
        forbidden = FetchAttempt(
            tier=FetchTier.HTTP, url=URL, status=FetchStatus.BLOCKED, raw_body=TURNSTILE_CONTACT_HTML,
            error="HTTP 403", status_code=403,
        )
        orchestrator, _ = make_orchestrator(http=fetcher(forbidden), headless_enabled=False)

        result = await orchestrator.acquire(URL)

        assert result.fallback_used

    @pytest.mark.asyncio
    async def test_null_lighthouse_reply_keeps_result(self):
        """Test that a PSI reply without a Lighthouse result leaves performance unknown."""
        psi = PageSpeedInsightsAPI(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"lighthouseResult": None}))
        )
        seo_probe = Mock()
        seo_probe.get_seo = AsyncMock(return_value=SEOMetrics(has_ssl=True))
        orchestrator = ScrapingOrchestrator(
            config=Config(max_pages=1, collect_metrics=True, headless_enabled=False),
            http_fetcher=fetcher(ok()),
            third_party_fetcher=fetcher(),
            performance_client=psi,
            seo_probe=seo_probe,
            sleep=AsyncMock(),
        )

        result = await orchestrator.acquire(URL)

        assert not result.fallback_used
        assert result.analysis_depth == AnalysisDepth.SINGLE_PAGE
        assert result.performance is None
        assert result.seo.has_ssl
        assert result.homepage.title == "Acme Widgets | Quality Widgets Since 1990"

    @pytest.mark.asyncio
    async def test_collector_exceptions_degrade_metrics(self):
        """Test that crashing collectors yield unknown metrics, not a fallback."""
        performance_client = Mock()
        performance_client.get_performance = AsyncMock(side_effect=AttributeError("boom"))
        seo_probe = Mock()
        seo_probe.get_seo = AsyncMock(side_effect=RuntimeError("probe crashed"))
        orchestrator = ScrapingOrchestrator(
            config=Config(max_pages=1, collect_metrics=True, headless_enabled=False),
            http_fetcher=fetcher(ok()),
            third_party_fetcher=fetcher(),
            performance_client=performance_client,
            seo_probe=seo_probe,
            sleep=AsyncMock(),
        )

        result = await orchestrator.acquire(URL)

        assert not result.fallback_used
        assert result.performance is None
        assert result.seo == SEOMetrics()


class TestBuildFallbackResult:
    """Test cases for build_fallback_result."""

    def test_every_text_field_marked(self):
        """Test that no fallback text field looks like real content."""
        result = build_fallback_result("https://www.acme.com/")
        page = result.homepage

        assert page.title == UNAVAILABLE_MARKER
        assert page.description == UNAVAILABLE_MARKER
        assert page.headings == [UNAVAILABLE_MARKER]
        assert page.paragraphs == [UNAVAILABLE_MARKER]
        assert page.footer_text == UNAVAILABLE_MARKER
        assert result.site_structure.main_navigation_text == UNAVAILABLE_MARKER
        assert result.company_name == "Acme"
        assert result.consistency.pages_compared == 0
