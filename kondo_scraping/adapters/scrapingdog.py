"""
ScrapingDog fetch provider.
Plain query-string API; the response body is the target page HTML.
"""
from typing import Optional

import httpx

from kondo_scraping.adapters.platform import (
    FetchMetadata,
    FetchOptions,
    FetchProvider,
    FetchResponse,
    extract_cache_headers,
)
from kondo_scraping.config import config

SCRAPINGDOG_ENDPOINT = "https://api.scrapingdog.com/scrape"


class ScrapingDogProvider(FetchProvider):
    """ScrapingDog adapter. `dynamic=true` asks the API to render JavaScript."""

    name = "scrapingdog"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.api_key = api_key or config.SCRAPINGDOG_API_KEY

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _build_request(self, url: str, options: FetchOptions):
        params = {
            "api_key": self.api_key or "",
            "url": url,
            "dynamic": "true" if options.render_js else "false",
            "premium": "true" if options.use_proxy else "false",
            "country": options.country or config.SCRAPING_COUNTRY,
        }
        if options.render_js and options.wait_ms:
            params["wait"] = str(options.wait_ms)
        params.update(options.extra_params)
        return SCRAPINGDOG_ENDPOINT, params, {}

    def _parse_response(
        self,
        url: str,
        response: httpx.Response,
        options: FetchOptions,
        elapsed_ms: int,
    ) -> FetchResponse:
        # Credits are not reported per call: one for static, five for dynamic
        cost = 5.0 if options.render_js else 1.0
        return FetchResponse(
            html=response.text,
            metadata=FetchMetadata(
                status_code=response.status_code,
                response_time_ms=elapsed_ms,
                rendered_js=options.render_js,
                cost_units=cost,
                headers=extract_cache_headers(response),
            ),
        )
