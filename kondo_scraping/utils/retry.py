"""
Bounded retry with deterministic exponential backoff.
"""
import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from kondo_scraping.config import config
from kondo_scraping.utils.logger import LayerLogger

T = TypeVar("T")


class RetryPolicy:
    """
    Wraps an async operation with bounded attempts.

    The delay before retry N is delay_ms * backoff_multiplier ** (N - 1).
    No jitter is applied and there is no overall deadline; callers that
    need one wrap the call in asyncio.wait_for themselves.
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        delay_ms: Optional[int] = None,
        backoff_multiplier: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_attempts = max_attempts if max_attempts is not None else config.SCRAPING_RETRY_MAX_ATTEMPTS
        self.delay_ms = delay_ms if delay_ms is not None else config.SCRAPING_RETRY_DELAY_MS
        self.backoff_multiplier = (
            backoff_multiplier if backoff_multiplier is not None
            else config.SCRAPING_RETRY_BACKOFF_MULTIPLIER
        )
        self._sleep = sleep
        self.logger = LayerLogger("retry_policy")

    def compute_delay_ms(self, attempt: int) -> float:
        """Delay applied after the given (1-based) failed attempt."""
        return self.delay_ms * (self.backoff_multiplier ** (attempt - 1))

    async def with_retry(
        self,
        fn: Callable[[], Awaitable[T]],
        operation: str = "operation",
        max_attempts: Optional[int] = None,
    ) -> T:
        """
        Invoke fn until it succeeds or attempts run out.

        Args:
            fn: Zero-argument coroutine factory, called once per attempt
            operation: Name used in log entries
            max_attempts: Per-call override of the attempt cap

        Returns:
            Whatever fn returns on its first successful attempt

        Raises:
            The exception raised by the final attempt
        """
        attempts = max(1, max_attempts if max_attempts is not None else self.max_attempts)
        last_error: Optional[BaseException] = None

        for attempt in range(1, attempts + 1):
            try:
                return await fn()
            except Exception as e:
                last_error = e
                if attempt >= attempts:
                    break

                delay_ms = self.compute_delay_ms(attempt)
                self.logger.logger.warning(
                    "retry_scheduled",
                    layer=self.logger.layer_name,
                    operation=operation,
                    attempt=attempt,
                    max_attempts=attempts,
                    delay_ms=delay_ms,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await self._sleep(delay_ms / 1000)

        self.logger.log_error(
            error=str(last_error),
            error_type=type(last_error).__name__,
            operation=operation,
            attempts=attempts,
            message="retries exhausted",
        )
        raise last_error
