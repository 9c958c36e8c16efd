"""
Tests for the fetch providers and the provider factory.
"""
import asyncio

import httpx
import pytest

from kondo_scraping.adapters.direct import DirectFetchProvider
from kondo_scraping.adapters.platform import FetchOptions, create_fetch_provider
from kondo_scraping.adapters.scrapfly import ScrapflyProvider
from kondo_scraping.adapters.scrapingdog import SCRAPINGDOG_ENDPOINT, ScrapingDogProvider
from kondo_scraping.config import config
from kondo_scraping.errors import (
    FetchAuthError,
    FetchError,
    FetchNetworkError,
    FetchRateLimitedError,
    FetchServerError,
    FetchTargetBlockedError,
)


TARGET = "https://www.residencialaurora.com.br/empreendimento"
PAGE = "<html><body><h1>Residencial Aurora</h1></body></html>"


class TestScrapingDogProvider:
    """Tests for ScrapingDogProvider."""

    def test_static_request(self):
        """Test query parameters and metadata of a static fetch."""
        seen = {}

        def handler(request):
            seen["url"] = request.url
            return httpx.Response(200, text=PAGE, headers={"ETag": '"abc"', "X-Other": "1"})

        provider = ScrapingDogProvider(api_key="dog-key", transport=httpx.MockTransport(handler))
        response = asyncio.run(provider.fetch_html(TARGET))

        params = dict(seen["url"].params)
        assert str(seen["url"]).startswith(SCRAPINGDOG_ENDPOINT)
        assert params["api_key"] == "dog-key"
        assert params["url"] == TARGET
        assert params["dynamic"] == "false"
        assert "wait" not in params
        assert response.html == PAGE
        assert response.metadata.rendered_js is False
        assert response.metadata.cost_units == 1.0
        assert response.metadata.headers == {"etag": '"abc"'}

    def test_rendered_request(self):
        """Test that rendering sets dynamic, wait and the higher cost."""
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, text=PAGE)

        provider = ScrapingDogProvider(api_key="dog-key", transport=httpx.MockTransport(handler))
        response = asyncio.run(
            provider.fetch_html(TARGET, FetchOptions(render_js=True, use_proxy=True, country="us", wait_ms=3000))
        )

        assert seen["params"]["dynamic"] == "true"
        assert seen["params"]["premium"] == "true"
        assert seen["params"]["country"] == "us"
        assert seen["params"]["wait"] == "3000"
        assert response.metadata.rendered_js is True
        assert response.metadata.cost_units == 5.0

    @pytest.mark.parametrize("status,error_class", [
        (401, FetchAuthError),
        (403, FetchTargetBlockedError),
        (410, FetchTargetBlockedError),
        (429, FetchRateLimitedError),
        (500, FetchServerError),
        (503, FetchServerError),
        (404, FetchError),
    ])
    def test_status_translation(self, status, error_class):
        """Test that HTTP failures map onto the FetchError classes."""
        provider = ScrapingDogProvider(
            api_key="dog-key",
            transport=httpx.MockTransport(lambda request: httpx.Response(status)),
        )

        with pytest.raises(error_class) as excinfo:
            asyncio.run(provider.fetch_html(TARGET))

        assert type(excinfo.value) is error_class
        assert excinfo.value.status_code == status
        assert excinfo.value.platform == "scrapingdog"

    def test_network_error(self):
        """Test that transport failures become FetchNetworkError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = ScrapingDogProvider(api_key="dog-key", transport=httpx.MockTransport(handler))

        with pytest.raises(FetchNetworkError):
            asyncio.run(provider.fetch_html(TARGET))

    def test_timeout(self):
        """Test that timeouts are network errors too."""
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        provider = ScrapingDogProvider(api_key="dog-key", transport=httpx.MockTransport(handler))

        with pytest.raises(FetchNetworkError, match="Timeout"):
            asyncio.run(provider.fetch_html(TARGET))


class TestScrapflyProvider:
    """Tests for ScrapflyProvider."""

    def test_json_envelope(self):
        """Test that content, cost, duration and headers come from the envelope."""
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={
                "uuid": "scrape-1",
                "result": {
                    "content": PAGE,
                    "status_code": 200,
                    "duration": 1.5,
                    "response_headers": {"ETag": '"v2"', "Server": "nginx"},
                },
                "context": {"cost": {"total": 6}},
            })

        provider = ScrapflyProvider(api_key="fly-key", transport=httpx.MockTransport(handler))
        response = asyncio.run(provider.fetch_html(TARGET, FetchOptions(render_js=True, wait_ms=2000)))

        assert seen["params"]["key"] == "fly-key"
        assert seen["params"]["render_js"] == "true"
        assert seen["params"]["asp"] == "true"
        assert seen["params"]["rendering_wait"] == "2000"
        assert response.html == PAGE
        assert response.metadata.cost_units == 6
        assert response.metadata.scrape_id == "scrape-1"
        assert response.metadata.response_time_ms == 1500
        assert response.metadata.headers == {"etag": '"v2"'}

    def test_static_request_has_no_render_params(self):
        """Test that static fetches do not ask for rendering."""
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"result": {"content": PAGE, "status_code": 200}})

        provider = ScrapflyProvider(api_key="fly-key", transport=httpx.MockTransport(handler))
        asyncio.run(provider.fetch_html(TARGET))

        assert "render_js" not in seen["params"]
        assert "asp" not in seen["params"]

    def test_upstream_failure(self):
        """Test that a blocked target inside a 200 envelope raises."""
        def handler(request):
            return httpx.Response(200, json={"result": {"content": "", "status_code": 403}})

        provider = ScrapflyProvider(api_key="fly-key", transport=httpx.MockTransport(handler))

        with pytest.raises(FetchTargetBlockedError) as excinfo:
            asyncio.run(provider.fetch_html(TARGET))

        assert excinfo.value.status_code == 403

    def test_non_json_body(self):
        """Test that a garbled envelope is a fetch error."""
        provider = ScrapflyProvider(
            api_key="fly-key",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>")),
        )

        with pytest.raises(FetchError, match="non-JSON"):
            asyncio.run(provider.fetch_html(TARGET))


class TestDirectFetchProvider:
    """Tests for DirectFetchProvider."""

    def test_fetches_target_directly(self):
        """Test that the target URL itself is requested with browser headers."""
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["agent"] = request.headers["user-agent"]
            return httpx.Response(200, text=PAGE, headers={"Last-Modified": "Mon, 01 Jan 2024 00:00:00 GMT"})

        provider = DirectFetchProvider(transport=httpx.MockTransport(handler))
        response = asyncio.run(provider.fetch_html(TARGET, FetchOptions(render_js=True)))

        assert seen["url"] == TARGET
        assert "Mozilla" in seen["agent"]
        assert response.metadata.rendered_js is False
        assert response.metadata.headers == {"last-modified": "Mon, 01 Jan 2024 00:00:00 GMT"}


class TestCreateFetchProvider:
    """Tests for create_fetch_provider fallbacks."""

    def test_direct(self):
        """Test explicit direct selection."""
        assert isinstance(create_fetch_provider("direct"), DirectFetchProvider)

    def test_scrapfly_when_configured(self, monkeypatch):
        """Test that a configured Scrapfly is used."""
        monkeypatch.setattr(config, "SCRAPFLY_API_KEY", "fly-key")

        assert isinstance(create_fetch_provider("scrapfly"), ScrapflyProvider)

    def test_unconfigured_scrapfly_falls_back_to_scrapingdog(self, monkeypatch):
        """Test Scrapfly -> ScrapingDog fallback."""
        monkeypatch.setattr(config, "SCRAPFLY_API_KEY", None)
        monkeypatch.setattr(config, "SCRAPINGDOG_API_KEY", "dog-key")

        assert isinstance(create_fetch_provider("scrapfly"), ScrapingDogProvider)

    def test_unconfigured_scrapingdog_falls_back_to_direct(self, monkeypatch):
        """Test ScrapingDog -> direct fallback."""
        monkeypatch.setattr(config, "SCRAPINGDOG_API_KEY", None)

        assert isinstance(create_fetch_provider("scrapingdog"), DirectFetchProvider)

    def test_unknown_platform(self, monkeypatch):
        """Test that unknown names go through the ScrapingDog path."""
        monkeypatch.setattr(config, "SCRAPINGDOG_API_KEY", "dog-key")

        assert isinstance(create_fetch_provider("zenrows"), ScrapingDogProvider)
