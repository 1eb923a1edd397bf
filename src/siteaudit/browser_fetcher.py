"""
Headless render fetcher (tier 2) using Playwright.

Each fetch launches its own browser, renders the page in an isolated
context and tears everything down before returning, including when the
render deadline fires.
"""
import asyncio
import logging
import time
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from siteaudit.bot_detection import classify
from siteaudit.browser_config import BrowserConfig
from siteaudit.exceptions import RenderEngineUnavailable
from siteaudit.models import FetchAttempt, FetchStatus, FetchTier

logger = logging.getLogger(__name__)

STEALTH_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });
    window.chrome = {
        runtime: {}
    };
    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en']
    });
    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3]
    });
"""


class HeadlessFetcher:
    """
    Renders a page with a real browser engine and returns the DOM.

        fetcher = HeadlessFetcher(BrowserConfig())
        attempt = await fetcher.fetch("https://example.com")
    """

    DESKTOP_VIEWPORT = {"width": 1366, "height": 768}

    def __init__(self, config: Optional[BrowserConfig] = None, playwright_factory=async_playwright):
        """
        Initialize the headless fetcher.

        Args:
            config: BrowserConfig instance with render settings
            playwright_factory: Callable returning a Playwright context manager
        """
        self._config = config or BrowserConfig()
        self._playwright_factory = playwright_factory

    async def fetch(self, url: str, attempt: int = 0) -> FetchAttempt:
        """
        Render a single URL with full JavaScript execution.

        Args:
            url: URL to render
            attempt: Zero-based attempt index within the tier

        Returns:
            FetchAttempt with the rendered DOM on success

        Raises:
            RenderEngineUnavailable: If the browser engine cannot be started
        """
        start = time.monotonic()
        deadline = self._config.total_timeout_seconds

        try:
            status_code, html, title, final_url = await asyncio.wait_for(
                self._render(url), timeout=deadline
            )
        except RenderEngineUnavailable:
            raise
        except (asyncio.TimeoutError, PlaywrightTimeoutError):
            logger.warning(f"Headless render timed out for {url} (>{deadline:.0f}s)")
            return self._attempt(url, FetchStatus.ERROR, start, attempt, error=f"Timeout after {deadline:.0f}s")
        except PlaywrightError as e:
            logger.warning(f"Headless render failed for {url}: {e}")
            return self._attempt(url, FetchStatus.ERROR, start, attempt, error=str(e))

        if status_code is not None and status_code >= 500:
            return self._attempt(
                url, FetchStatus.ERROR, start, attempt,
                error=f"HTTP {status_code}", status_code=status_code, final_url=final_url,
            )

        protection = classify(html, title)
        if (status_code is not None and status_code >= 400) or protection.blocked:
            logger.warning(
                f"Headless render still blocked for {url} "
                f"(status={status_code}, provider={protection.provider})"
            )
            return self._attempt(
                url, FetchStatus.BLOCKED, start, attempt,
                error=f"HTTP {status_code}" if not protection.blocked else f"Bot protection: {protection.provider}",
                status_code=status_code, final_url=final_url, blocked_by=protection.provider, raw_body=html,
            )

        logger.info(f"Headless render complete: {url} (status={status_code}, time={time.monotonic() - start:.2f}s)")
        return self._attempt(
            url, FetchStatus.OK, start, attempt,
            raw_body=html, status_code=status_code, final_url=final_url,
        )

    async def _render(self, url: str) -> tuple[Optional[int], str, str, str]:
        """Launch, navigate, settle and read the DOM. Always tears down."""
        playwright = browser = context = None
        try:
            try:
                playwright = await self._playwright_factory().start()
                launcher = getattr(playwright, self._config.browser_type)
                launch_options = {"headless": self._config.headless}
                if self._config.launch_args:
                    launch_options["args"] = self._config.launch_args
                browser = await launcher.launch(**launch_options)
            except PlaywrightError as e:
                raise RenderEngineUnavailable(
                    f"Could not launch {self._config.browser_type}: {e}", tier=FetchTier.HEADLESS.value, url=url
                ) from e

            context = await browser.new_context(
                viewport=self.DESKTOP_VIEWPORT,
                user_agent=self._config.get_user_agent(),
                locale="en-US",
                java_script_enabled=True,
            )
            if self._config.stealth_mode:
                await context.add_init_script(STEALTH_SCRIPT)

            page = await context.new_page()

            if self._config.block_resources:
                blocked = set(self._config.block_resources)
                await page.route(
                    "**/*",
                    lambda route: (
                        route.abort()
                        if route.request.resource_type in blocked
                        else route.continue_()
                    )
                )

            logger.info(f"Rendering: {url}")
            response = await page.goto(
                url,
                wait_until=self._config.wait_until,
                timeout=self._config.timeout
            )

            await self._wait_for_network_idle(page)
            if self._config.settle_delay:
                await asyncio.sleep(self._config.settle_delay / 1000)

            html = await page.content()
            title = await page.title()
            status_code = response.status if response else None
            return status_code, html, title, page.url

        finally:
            await self._teardown(playwright, browser, context)

    async def _wait_for_network_idle(self, page) -> None:
        """Wait for network idle; a busy page is rendered as-is."""
        try:
            await page.wait_for_load_state("networkidle", timeout=self._config.network_idle_timeout)
        except PlaywrightTimeoutError:
            logger.debug("Network did not go idle, continuing with current DOM")

    async def _teardown(self, playwright, browser, context) -> None:
        """Close context, browser and driver, in that order."""
        for name, closer in (
            ("context", context.close if context else None),
            ("browser", browser.close if browser else None),
            ("playwright", playwright.stop if playwright else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                logger.debug(f"Error closing {name}: {e}")

    def _attempt(self, url, status, start, attempt, **kwargs) -> FetchAttempt:
        return FetchAttempt(
            tier=FetchTier.HEADLESS,
            url=url,
            status=status,
            latency=time.monotonic() - start,
            attempt=attempt,
            user_agent=self._config.get_user_agent(),
            **kwargs,
        )
