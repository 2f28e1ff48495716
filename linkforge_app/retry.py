"""
Per-call retry with exponential backoff.

There is no shared "health" state: every caller builds (or is handed) a
RetryPolicy and each call starts from attempt 1.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from linkforge_app.config import Settings, settings
from linkforge_app.exceptions import DirectoryError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (DirectoryError, asyncio.TimeoutError)


class RetryPolicy(BaseModel):
    """Bounded attempts with exponential backoff and an optional per-attempt timeout"""
    attempts: int = Field(3, ge=1)
    base_delay: float = Field(0.1, ge=0)
    max_delay: float = Field(2.0, ge=0)
    timeout: Optional[float] = Field(None, gt=0)

    model_config = ConfigDict(frozen=True)

    def delay_for(self, attempt: int) -> float:
        """Backoff before the retry that follows `attempt` (1-based)"""
        return min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    description: str,
    retry_on: Tuple[Type[BaseException], ...] = RETRYABLE_ERRORS,
) -> T:
    """
    Run `operation` until it succeeds or the policy's attempts are used up.

    Only exceptions in `retry_on` are retried; anything else propagates at
    once. The last retryable error is re-raised when attempts run out.
    """
    for attempt in range(1, policy.attempts + 1):
        try:
            if policy.timeout is not None:
                return await asyncio.wait_for(operation(), timeout=policy.timeout)
            return await operation()
        except retry_on as exc:
            if attempt >= policy.attempts:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s failed (attempt %d/%d): %r; retrying in %.2fs",
                description, attempt, policy.attempts, exc, delay,
            )
            await asyncio.sleep(delay)


def lookup_retry_policy(config: Settings = settings) -> RetryPolicy:
    """Retries for the redirect lookup; the resolver's overall deadline still applies"""
    return RetryPolicy(
        attempts=config.lookup_retry_attempts,
        base_delay=config.lookup_retry_base_delay,
        max_delay=config.lookup_timeout_seconds,
    )


def tracking_retry_policy(config: Settings = settings) -> RetryPolicy:
    """Retries for each click-tracking write and for queue publishes"""
    return RetryPolicy(
        attempts=config.tracking_retry_attempts,
        base_delay=config.tracking_retry_base_delay,
        max_delay=config.tracking_retry_max_delay,
        timeout=config.tracking_write_timeout_seconds,
    )
