"""Unit tests for the PageSpeed Insights client."""

from unittest.mock import AsyncMock

import httpx
import pytest

from siteaudit.external.pagespeed_insights import PageSpeedInsightsAPI

PSI_RESPONSE = {
    "lighthouseResult": {
        "fetchTime": "2024-01-01T12:00:00.000Z",
        "categories": {
            "performance": {"score": 0.87},
            "accessibility": {"score": 0.92},
            "best-practices": {"score": 1.0},
            "seo": {"score": None},
        },
        "audits": {
            "largest-contentful-paint": {"numericValue": 2450.7},
            "max-potential-fid": {"numericValue": 120.2},
            "cumulative-layout-shift": {"numericValue": 0.04567},
            "first-contentful-paint": {"numericValue": 1200.0},
            "total-blocking-time": {"numericValue": 310.9},
        },
    }
}


class TestPageSpeedInsightsAPI:
    """Tests for PageSpeedInsightsAPI."""

    @pytest.mark.asyncio
    async def test_parses_scores_and_vitals(self):
        """Test conversion of Lighthouse output into PerformanceMetrics."""
        seen = {}

        def handler(request):
            seen["params"] = request.url.params
            return httpx.Response(200, json=PSI_RESPONSE)

        client = PageSpeedInsightsAPI(api_key="psi-key", transport=httpx.MockTransport(handler))
        metrics = await client.get_performance("https://acme.example.com/")

        assert metrics.performance_score == 87.0
        assert metrics.accessibility_score == 92.0
        assert metrics.best_practices_score == 100.0
        assert metrics.seo_score is None
        assert metrics.lcp == 2450
        assert metrics.cls == 0.046
        assert metrics.tbt == 310
        assert metrics.strategy == "mobile"
        assert seen["params"]["key"] == "psi-key"
        assert seen["params"].get_list("category") == ["performance", "accessibility", "best-practices", "seo"]

    @pytest.mark.asyncio
    async def test_no_api_key_param_when_unset(self):
        seen = {}

        def handler(request):
            seen["params"] = request.url.params
            return httpx.Response(200, json=PSI_RESPONSE)

        client = PageSpeedInsightsAPI(strategy="desktop", transport=httpx.MockTransport(handler))
        metrics = await client.get_performance("https://acme.example.com/")

        assert "key" not in seen["params"]
        assert metrics.strategy == "desktop"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 429, 500])
    async def test_http_errors_return_none(self, status_code):
        """Test that service errors mean unknown metrics."""
        client = PageSpeedInsightsAPI(
            transport=httpx.MockTransport(lambda request: httpx.Response(status_code))
        )

        assert await client.get_performance("https://acme.example.com/") is None
        assert client.get_stats()["failed_requests"] == 1

    @pytest.mark.asyncio
    async def test_timeout_returns_none(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = PageSpeedInsightsAPI(transport=httpx.MockTransport(handler))

        assert await client.get_performance("https://acme.example.com/") is None

    @pytest.mark.asyncio
    async def test_invalid_json_returns_none(self):
        client = PageSpeedInsightsAPI(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="not json"))
        )

        assert await client.get_performance("https://acme.example.com/") is None

    @pytest.mark.asyncio
    async def test_stats(self):
        client = PageSpeedInsightsAPI(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=PSI_RESPONSE))
        )
        await client.get_performance("https://acme.example.com/")

        stats = client.get_stats()
        assert stats["total_requests"] == 1
        assert stats["requests_in_window"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{"lighthouseResult": None}, {}, ["unexpected"]])
    async def test_missing_lighthouse_result_returns_none(self, payload):
        """Test that replies without a Lighthouse result mean unknown metrics."""
        client = PageSpeedInsightsAPI(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=payload))
        )

        assert await client.get_performance("https://acme.example.com/") is None
        assert client.get_stats()["failed_requests"] == 1

    @pytest.mark.asyncio
    async def test_null_categories_and_audits(self):
        payload = {"lighthouseResult": {"categories": None, "audits": None}}
        client = PageSpeedInsightsAPI(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=payload))
        )

        metrics = await client.get_performance("https://acme.example.com/")

        assert metrics.performance_score is None
        assert metrics.lcp is None

    @pytest.mark.asyncio
    async def test_rate_limit_waits_for_window(self):
        """Test that a full window holds the next request until the oldest expires."""
        now = [0.0]
        waits = []

        async def sleep(seconds):
            waits.append(seconds)
            now[0] += seconds

        client = PageSpeedInsightsAPI(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=PSI_RESPONSE)),
            rate_limit_requests=2,
            rate_limit_window=10,
            clock=lambda: now[0],
            sleep=sleep,
        )

        await client.get_performance("https://acme.example.com/")
        now[0] = 4.0
        await client.get_performance("https://acme.example.com/about")
        await client.get_performance("https://acme.example.com/contact")

        assert waits == [pytest.approx(6.0)]
        assert client.get_stats()["requests_in_window"] == 2

    @pytest.mark.asyncio
    async def test_rate_limit_window_slides(self):
        """Test that requests older than the window no longer count."""
        now = [0.0]
        sleep = AsyncMock()
        client = PageSpeedInsightsAPI(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=PSI_RESPONSE)),
            rate_limit_requests=1,
            rate_limit_window=10,
            clock=lambda: now[0],
            sleep=sleep,
        )

        await client.get_performance("https://acme.example.com/")
        now[0] = 10.0
        await client.get_performance("https://acme.example.com/")

        sleep.assert_not_awaited()
