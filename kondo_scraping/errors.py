"""
Exception hierarchy for the scraping pipeline.

Fetch failures are split into classes so they can be logged distinctly,
but the retry policy treats every FetchError the same way.
"""
from typing import Optional


class ScrapingError(Exception):
    """Base class for all pipeline errors."""


class FetchError(ScrapingError):
    """A fetch provider could not return HTML for a URL."""

    error_type = "fetch_error"

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        platform: Optional[str] = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.platform = platform


class FetchAuthError(FetchError):
    error_type = "auth_failed"


class FetchRateLimitedError(FetchError):
    error_type = "rate_limited"


class FetchTargetBlockedError(FetchError):
    error_type = "target_blocked"


class FetchNetworkError(FetchError):
    error_type = "network_error"


class FetchServerError(FetchError):
    error_type = "server_error"


class KondoNotFoundError(ScrapingError):
    """No listing exists with the requested id."""

    def __init__(self, kondo_id: int):
        super().__init__(f"Kondo {kondo_id} not found")
        self.kondo_id = kondo_id


class InvalidKondoError(ScrapingError):
    """The listing exists but cannot be scraped (e.g. it has no source URL)."""


class EngineNotFoundError(ScrapingError):
    """A forced engine name is not registered."""
