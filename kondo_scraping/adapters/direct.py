"""
Direct HTTP fetch, no third-party API in between.
Cannot render JavaScript; used for development and for cheap probes.
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


class DirectFetchProvider(FetchProvider):
    """Fetches the page itself with browser-like headers."""

    name = "direct"

    def __init__(
        self,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)

    def _build_request(self, url: str, options: FetchOptions):
        if options.render_js:
            self.logger.log_fallback(
                from_source="rendered_fetch",
                to_source="static_fetch",
                reason="direct provider cannot render JavaScript",
                url=url,
            )
        return url, None, self._get_headers()

    def _get_headers(self) -> dict:
        """Get request headers mimicking a browser."""
        return {
            "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.5",
        }

    def _parse_response(
        self,
        url: str,
        response: httpx.Response,
        options: FetchOptions,
        elapsed_ms: int,
    ) -> FetchResponse:
        return FetchResponse(
            html=response.text,
            metadata=FetchMetadata(
                status_code=response.status_code,
                response_time_ms=elapsed_ms,
                rendered_js=False,
                headers=extract_cache_headers(response),
            ),
        )
