"""
Retry policy for a single provider call

Retries transient failures (overloaded / server errors) with exponential
back-off. Rate limits and every other failure are re-raised on the spot.
The policy knows nothing about which provider it wraps.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from c3talk.core.errors import ErrorKind, classify_error, is_retryable
from c3talk.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]

MAX_RETRIES: int = 3          # total attempts, not extra ones
BASE_DELAY_MS: int = 2000     # first back-off delay


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = MAX_RETRIES,
    base_delay_ms: int = BASE_DELAY_MS,
    sleep: Optional[Sleeper] = None,
    label: str = "provider",
) -> T:
    """
    Await operation() up to max_retries times.

    Delay before attempt n+1 is base_delay_ms * 2**n. A rate-limited error is
    never retried. The last error is re-raised once attempts run out.
    """
    sleep = sleep or asyncio.sleep
    attempts = max(1, max_retries)

    for attempt in range(attempts):
        try:
            return await operation()
        except Exception as exc:
            kind = classify_error(exc)

            if kind == ErrorKind.RATE_LIMITED:
                logger.warning(f"{label} rate limited; not retrying: {exc}")
                raise

            if not is_retryable(kind):
                raise

            if attempt >= attempts - 1:
                logger.error(f"{label} still failing after {attempts} attempts: {exc}")
                raise

            delay_ms = base_delay_ms * (2 ** attempt)
            logger.warning(
                f"{label} busy (attempt {attempt + 1}/{attempts}). "
                f"Retrying in {delay_ms}ms..."
            )
            await sleep(delay_ms / 1000)

    # Unreachable: the loop either returns or raises
    raise RuntimeError("Retry loop exited without a result")
