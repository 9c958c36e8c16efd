"""
Scrapfly fetch provider.
The API wraps the target response in a JSON envelope with cost accounting.
"""
from typing import Any, Dict, Optional

import httpx

from kondo_scraping.adapters.platform import FetchMetadata, FetchOptions, FetchProvider, FetchResponse
from kondo_scraping.config import config
from kondo_scraping.errors import FetchError, FetchTargetBlockedError

SCRAPFLY_ENDPOINT = "https://api.scrapfly.io/scrape"


class ScrapflyProvider(FetchProvider):
    """Scrapfly adapter with anti-scraping protection and residential proxies."""

    name = "scrapfly"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.api_key = api_key or config.SCRAPFLY_API_KEY

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _build_request(self, url: str, options: FetchOptions):
        params = {
            "key": self.api_key or "",
            "url": url,
            "country": options.country or config.SCRAPING_COUNTRY,
        }
        if options.render_js:
            params["render_js"] = "true"
            params["asp"] = "true"
            if options.wait_ms:
                params["rendering_wait"] = str(options.wait_ms)
        if options.use_proxy:
            params["proxy_pool"] = "public_residential_pool"
        params.update(options.extra_params)
        return SCRAPFLY_ENDPOINT, params, {"Accept": "application/json"}

    def _parse_response(
        self,
        url: str,
        response: httpx.Response,
        options: FetchOptions,
        elapsed_ms: int,
    ) -> FetchResponse:
        try:
            payload: Dict[str, Any] = response.json()
        except ValueError as e:
            raise FetchError(
                f"scrapfly returned a non-JSON body for {url}",
                url=url,
                status_code=response.status_code,
                platform=self.name,
            ) from e

        result = payload.get("result") or {}
        upstream_status = result.get("status_code") or response.status_code
        if upstream_status >= 400:
            raise FetchTargetBlockedError(
                f"target answered HTTP {upstream_status} through scrapfly",
                url=url,
                status_code=upstream_status,
                platform=self.name,
            )

        html = result.get("content") or result.get("body") or ""
        cost = (payload.get("context") or {}).get("cost") or {}
        headers = {
            key.lower(): value
            for key, value in (result.get("response_headers") or {}).items()
            if key.lower() in ("etag", "last-modified")
        }

        return FetchResponse(
            html=html,
            metadata=FetchMetadata(
                status_code=upstream_status,
                response_time_ms=int(result.get("duration", 0) * 1000) or elapsed_ms,
                rendered_js=options.render_js,
                cost_units=cost.get("total"),
                scrape_id=payload.get("uuid"),
                headers=headers,
            ),
        )
