"""
Fetch platform abstraction.

Every provider answers one question: "give me this URL's HTML", optionally
rendered by a headless browser on the provider's side. Providers translate
their HTTP failures into the FetchError classes so they can be told apart
in logs; callers retry all of them the same way.
"""
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from kondo_scraping.config import config
from kondo_scraping.errors import (
    FetchAuthError,
    FetchError,
    FetchNetworkError,
    FetchRateLimitedError,
    FetchServerError,
    FetchTargetBlockedError,
)
from kondo_scraping.utils.logger import LayerLogger


@dataclass
class FetchOptions:
    render_js: bool = False
    use_proxy: bool = False
    country: Optional[str] = None
    wait_ms: Optional[int] = None
    extra_params: Dict[str, str] = field(default_factory=dict)


@dataclass
class FetchMetadata:
    status_code: int
    response_time_ms: int
    rendered_js: bool
    cost_units: Optional[float] = None
    scrape_id: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status_code": self.status_code,
            "response_time_ms": self.response_time_ms,
            "rendered_js": self.rendered_js,
            "cost_units": self.cost_units,
            "scrape_id": self.scrape_id,
            "headers": dict(self.headers),
        }


@dataclass
class FetchResponse:
    html: str
    metadata: FetchMetadata


def extract_cache_headers(response: httpx.Response) -> Dict[str, str]:
    """ETag / Last-Modified of a response, used by the site cache."""
    return {
        key: response.headers[key]
        for key in ("etag", "last-modified")
        if key in response.headers
    }


class FetchProvider:
    """
    Base class for fetch providers.

    Subclasses implement _build_request and _parse_response; the HTTP
    round trip, timing and error translation live here.
    """

    name = "base"

    def __init__(
        self,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self.transport = transport
        self.logger = LayerLogger(f"{self.name}_provider")

    def is_configured(self) -> bool:
        return True

    async def fetch_html(self, url: str, options: Optional[FetchOptions] = None) -> FetchResponse:
        """
        Fetch a page through this provider.

        Args:
            url: Target page URL
            options: Rendering, proxy and geo options

        Returns:
            FetchResponse with the HTML and provider metadata

        Raises:
            FetchError subclass describing the failure class
        """
        options = options or FetchOptions()
        endpoint, params, headers = self._build_request(url, options)

        self.logger.log_action(
            "fetch_html",
            "started",
            url=url,
            platform=self.name,
            render_js=options.render_js,
            use_proxy=options.use_proxy,
        )

        started = time.monotonic()
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(endpoint, params=params, headers=headers)
        except httpx.TimeoutException as e:
            self.logger.log_fetch(url, self.name, None, "timeout")
            raise FetchNetworkError(f"Timeout fetching {url}: {e}", url=url, platform=self.name) from e
        except httpx.HTTPError as e:
            self.logger.log_fetch(url, self.name, None, "network_error")
            raise FetchNetworkError(f"Network error fetching {url}: {e}", url=url, platform=self.name) from e

        elapsed_ms = int((time.monotonic() - started) * 1000)

        if response.status_code >= 400:
            error = self._translate_status(url, response)
            self.logger.log_fetch(url, self.name, response.status_code, error.error_type)
            self.logger.log_error(str(error), error_type=error.error_type, url=url, platform=self.name)
            raise error

        result = self._parse_response(url, response, options, elapsed_ms)
        self.logger.log_fetch(
            url,
            self.name,
            result.metadata.status_code,
            "success",
            response_time_ms=result.metadata.response_time_ms,
            content_length=len(result.html),
            rendered_js=result.metadata.rendered_js,
            cost_units=result.metadata.cost_units,
        )
        return result

    def _translate_status(self, url: str, response: httpx.Response) -> FetchError:
        status = response.status_code
        message = f"{self.name} returned HTTP {status} for {url}"
        kwargs = {"url": url, "status_code": status, "platform": self.name}
        if status in (401, 403) and self._is_auth_status(response):
            return FetchAuthError(message, **kwargs)
        if status == 429:
            return FetchRateLimitedError(message, **kwargs)
        if status in (403, 410, 422):
            return FetchTargetBlockedError(message, **kwargs)
        if status >= 500:
            return FetchServerError(message, **kwargs)
        return FetchError(message, **kwargs)

    def _is_auth_status(self, response: httpx.Response) -> bool:
        return response.status_code == 401

    def _build_request(self, url: str, options: FetchOptions):
        raise NotImplementedError

    def _parse_response(
        self,
        url: str,
        response: httpx.Response,
        options: FetchOptions,
        elapsed_ms: int,
    ) -> FetchResponse:
        raise NotImplementedError


def create_fetch_provider(
    platform: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FetchProvider:
    """
    Build the provider selected by SCRAPING_PLATFORM (or the explicit name).

    An unconfigured Scrapfly falls back to ScrapingDog; an unconfigured
    ScrapingDog falls back to a direct fetch without rendering.
    """
    from kondo_scraping.adapters.direct import DirectFetchProvider
    from kondo_scraping.adapters.scrapfly import ScrapflyProvider
    from kondo_scraping.adapters.scrapingdog import ScrapingDogProvider

    logger = LayerLogger("platform_factory")
    name = (platform or config.SCRAPING_PLATFORM or "scrapingdog").lower()

    if name == "direct":
        provider: FetchProvider = DirectFetchProvider(transport=transport)
        logger.log_decision(decision="direct", reason="explicit_platform")
        return provider

    if name == "scrapfly":
        provider = ScrapflyProvider(transport=transport)
        if provider.is_configured():
            logger.log_decision(decision="scrapfly", reason="explicit_platform")
            return provider
        logger.log_fallback(
            from_source="scrapfly",
            to_source="scrapingdog",
            reason="SCRAPFLY_API_KEY not configured",
        )
    elif name != "scrapingdog":
        logger.log_fallback(
            from_source=name,
            to_source="scrapingdog",
            reason="unknown platform",
        )

    provider = ScrapingDogProvider(transport=transport)
    if provider.is_configured():
        logger.log_decision(decision="scrapingdog", reason="platform_selected")
        return provider

    logger.log_fallback(
        from_source="scrapingdog",
        to_source="direct",
        reason="SCRAPINGDOG_API_KEY not configured; JS rendering unavailable",
    )
    return DirectFetchProvider(transport=transport)
