"""Bounded retry with exponential backoff for external calls.

WHY: Speech timing, narration synthesis, asset generation and uploads all
talk to rate-limited services that fail transiently. A job should survive
a hiccup, but it must never hang on a dead provider either.

HOW: retry_async() awaits the operation up to max_attempts times. Each
attempt is bounded by attempt_timeout_s. Between attempts it sleeps for
initial_delay_s, growing by backoff_factor per attempt and capped at
max_delay_s (the same shape as an API polling loop).

RULES:
- Exhaustion raises ExternalServiceFailure carrying operation and attempts
- JobFailure (including cancellation) is never retried
- The sleep function is injectable so tests run without waiting
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Optional, TypeVar

from reel_composer.config import (
    RETRY_ATTEMPT_TIMEOUT_S,
    RETRY_BACKOFF_FACTOR,
    RETRY_INITIAL_DELAY_S,
    RETRY_MAX_ATTEMPTS,
    RETRY_MAX_DELAY_S,
)
from reel_composer.errors import ExternalServiceFailure, JobFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently to retry one external call."""

    max_attempts: int = RETRY_MAX_ATTEMPTS
    initial_delay_s: float = RETRY_INITIAL_DELAY_S
    backoff_factor: float = RETRY_BACKOFF_FACTOR
    max_delay_s: float = RETRY_MAX_DELAY_S
    attempt_timeout_s: Optional[float] = RETRY_ATTEMPT_TIMEOUT_S

    def delays(self) -> list[float]:
        """Sleep durations between consecutive attempts."""
        result = []
        delay = self.initial_delay_s
        for _ in range(max(1, self.max_attempts) - 1):
            result.append(min(delay, self.max_delay_s))
            delay *= self.backoff_factor
        return result


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    description: str = "external call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``operation()`` until it succeeds or the policy is exhausted.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        policy: Retry budget; defaults from config.
        description: Short human-readable name used in logs and errors.
        sleep: Awaitable sleep, replaced in tests.

    Returns:
        Whatever the operation returns on its first successful attempt.

    Raises:
        ExternalServiceFailure: After the last attempt fails.
        JobFailure: Passed through immediately, never retried.
    """
    policy = policy or RetryPolicy()
    attempts = max(1, policy.max_attempts)
    delays = policy.delays()
    last_error: BaseException | None = None

    for attempt in range(1, attempts + 1):
        try:
            if policy.attempt_timeout_s:
                return await asyncio.wait_for(operation(), timeout=policy.attempt_timeout_s)
            return await operation()
        except JobFailure:
            raise
        except Exception as exc:
            last_error = exc
            if attempt == attempts:
                break
            delay = delays[attempt - 1]
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                description, attempt, attempts, exc, delay,
            )
            await sleep(delay)

    logger.error("%s failed after %d attempt(s): %s", description, attempts, last_error)
    raise ExternalServiceFailure(description, attempts, last_error) from last_error
