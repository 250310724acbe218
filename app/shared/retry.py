"""
Bounded retry helper for backend calls.

One explicit policy (fixed number of attempts, fixed backoff) executed
through an injectable sleep, so tests can simulate timeouts without
waiting on the wall clock.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel, Field

from .config import Settings, get_settings
from .exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class RetryPolicy(BaseModel):
    """Fixed-backoff retry policy."""

    attempts: int = Field(default=2, ge=1, description="Total attempts, first call included")
    backoff_seconds: float = Field(default=0.5, ge=0.0, description="Delay between attempts")

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            attempts=settings.retry_attempts,
            backoff_seconds=settings.retry_backoff_seconds,
        )


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Sleep = asyncio.sleep,
    description: str = "backend call",
) -> T:
    """
    Run an async operation under a retry policy.

    Only transient errors are retried. The last error is re-raised once
    the attempts are exhausted; non-transient errors propagate immediately.

    Args:
        operation: Zero-argument coroutine factory
        policy: Attempts and backoff to apply
        sleep: Awaitable sleep, injectable for tests
        description: Label used in log messages

    Returns:
        Whatever the operation returns
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except ExternalServiceError as e:
            if not e.transient or attempt >= policy.attempts:
                raise
            logger.warning(
                f"{description} failed (attempt {attempt}/{policy.attempts}): "
                f"{e.message}; retrying in {policy.backoff_seconds}s"
            )
            await sleep(policy.backoff_seconds)
            attempt += 1
