import asyncio
import logging
from collections.abc import Awaitable, Callable

# Throttling configuration
REQUEST_DELAY = 0.3  # Pause after every file, in seconds
RETRY_BACKOFF = 2.0  # Wait before retrying a request that failed with HTTP 500
RETRY_STATUS = 500  # The only status that is retried


class RequestThrottle:
    """Fixed pacing between model requests, plus the one-shot retry backoff."""

    def __init__(
        self,
        request_delay: float = REQUEST_DELAY,
        retry_backoff: float = RETRY_BACKOFF,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.request_delay = request_delay
        self.retry_backoff = retry_backoff
        self._sleep = sleep

    @staticmethod
    def should_retry(status_code: int) -> bool:
        # Timeouts, resets and other 5xx codes are not retried
        return status_code == RETRY_STATUS

    async def after_request(self) -> None:
        """Wait between files, whether the last one succeeded or not."""
        if self.request_delay > 0:
            await self._sleep(self.request_delay)

    async def before_retry(self) -> None:
        logging.debug(f"Server returned {RETRY_STATUS}, retrying in {self.retry_backoff:.1f}s")
        if self.retry_backoff > 0:
            await self._sleep(self.retry_backoff)
