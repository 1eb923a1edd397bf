"""Tests for the Playwright headless fetcher."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from conftest import CLOUDFLARE_HTML, HOMEPAGE_HTML
from siteaudit.browser_config import BrowserConfig, STEALTH_CONFIG
from siteaudit.browser_fetcher import HeadlessFetcher
from siteaudit.exceptions import RenderEngineUnavailable
from siteaudit.models import FetchStatus, FetchTier

URL = "https://acme.example.com/"


class FakePlaywright:
    """Minimal stand-in for the async Playwright object graph."""

    def __init__(self, html=HOMEPAGE_HTML, title="Acme", status=200):
        self.page = MagicMock()
        self.page.url = URL
        self.page.goto = AsyncMock(return_value=MagicMock(status=status))
        self.page.wait_for_load_state = AsyncMock()
        self.page.content = AsyncMock(return_value=html)
        self.page.title = AsyncMock(return_value=title)
        self.page.route = AsyncMock()

        self.context = MagicMock()
        self.context.new_page = AsyncMock(return_value=self.page)
        self.context.add_init_script = AsyncMock()
        self.context.close = AsyncMock()

        self.browser = MagicMock()
        self.browser.new_context = AsyncMock(return_value=self.context)
        self.browser.close = AsyncMock()

        self.playwright = MagicMock()
        self.playwright.chromium.launch = AsyncMock(return_value=self.browser)
        self.playwright.stop = AsyncMock()

    def factory(self):
        manager = MagicMock()
        manager.start = AsyncMock(return_value=self.playwright)
        return manager


def make_fetcher(fake: FakePlaywright, **config) -> HeadlessFetcher:
    config.setdefault("settle_delay", 0)
    return HeadlessFetcher(BrowserConfig(**config), playwright_factory=fake.factory)


class TestHeadlessFetcher:
    """Test cases for HeadlessFetcher.fetch."""

    @pytest.mark.asyncio
    async def test_renders_page(self):
        """Test a successful render returning the DOM."""
        fake = FakePlaywright()
        attempt = await make_fetcher(fake).fetch(URL)

        assert attempt.ok
        assert attempt.tier == FetchTier.HEADLESS
        assert attempt.raw_body == HOMEPAGE_HTML
        assert attempt.status_code == 200
        assert attempt.final_url == URL
        fake.context.add_init_script.assert_awaited_once()
        fake.page.route.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_always_tears_down(self):
        """Test that context, browser and driver are closed after a render."""
        fake = FakePlaywright()
        await make_fetcher(fake).fetch(URL)

        fake.context.close.assert_awaited_once()
        fake.browser.close.assert_awaited_once()
        fake.playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_challenge_still_blocked(self):
        """Test that a rendered challenge page is reported as blocked."""
        fake = FakePlaywright(html=CLOUDFLARE_HTML, title="Just a moment...")
        attempt = await make_fetcher(fake).fetch(URL)

        assert attempt.status == FetchStatus.BLOCKED
        assert attempt.blocked_by == "cloudflare"

    @pytest.mark.asyncio
    async def test_server_error(self):
        fake = FakePlaywright(status=503)
        attempt = await make_fetcher(fake).fetch(URL)

        assert attempt.status == FetchStatus.ERROR
        assert attempt.error == "HTTP 503"

    @pytest.mark.asyncio
    async def test_forbidden_is_blocked(self):
        fake = FakePlaywright(status=403)
        attempt = await make_fetcher(fake).fetch(URL)

        assert attempt.status == FetchStatus.BLOCKED
        assert attempt.error == "HTTP 403"

    @pytest.mark.asyncio
    async def test_timeout_tears_down(self):
        """Test that the render deadline fires and resources are still released."""
        fake = FakePlaywright()

        async def hang(*args, **kwargs):
            await asyncio.sleep(30)

        fake.page.goto = AsyncMock(side_effect=hang)
        fetcher = make_fetcher(fake, timeout=1000, network_idle_timeout=0)

        attempt = await fetcher.fetch(URL)

        assert attempt.status == FetchStatus.ERROR
        assert attempt.error == "Timeout after 1s"
        fake.browser.close.assert_awaited_once()
        fake.playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_engine_unavailable(self):
        """Test that a failed browser launch raises RenderEngineUnavailable."""
        fake = FakePlaywright()
        fake.playwright.chromium.launch = AsyncMock(side_effect=PlaywrightError("Executable doesn't exist"))

        with pytest.raises(RenderEngineUnavailable):
            await make_fetcher(fake).fetch(URL)
        fake.playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_navigation_error(self):
        fake = FakePlaywright()
        fake.page.goto = AsyncMock(side_effect=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))

        attempt = await make_fetcher(fake).fetch(URL)

        assert attempt.status == FetchStatus.ERROR
        assert "ERR_NAME_NOT_RESOLVED" in attempt.error

    @pytest.mark.asyncio
    async def test_resource_blocking_and_launch_args(self):
        """Test that stealth settings reach the browser."""
        fake = FakePlaywright()
        config = STEALTH_CONFIG.model_copy(update={"settle_delay": 0})
        fetcher = HeadlessFetcher(config, playwright_factory=fake.factory)

        await fetcher.fetch(URL)

        fake.page.route.assert_awaited_once()
        launch_kwargs = fake.playwright.chromium.launch.await_args.kwargs
        assert "--disable-http2" in launch_kwargs["args"]


class TestBrowserConfig:
    """Test cases for BrowserConfig."""

    def test_total_timeout(self):
        config = BrowserConfig(timeout=30000, network_idle_timeout=15000, settle_delay=2000)
        assert config.total_timeout_seconds == 47.0

    def test_validation(self):
        with pytest.raises(ValueError):
            BrowserConfig(timeout=10)

    def test_default_user_agent(self):
        assert "Mozilla/5.0" in BrowserConfig().get_user_agent()
        assert BrowserConfig(user_agent="Custom/1.0").get_user_agent() == "Custom/1.0"
