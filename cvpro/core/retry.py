"""Bounded retry shared by the LLM wrapper, payment lookups and the balance poller."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from cvpro.core.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

BackoffFn = Callable[[int], float]


def linear_backoff(unit: float) -> BackoffFn:
    """Delay after attempt n (1-based) is n * unit: 1x, 2x, 3x..."""
    return lambda attempt: unit * attempt


def fixed_interval(seconds: float) -> BackoffFn:
    return lambda attempt: seconds


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    backoff: BackoffFn

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


def _always(exc: Exception) -> bool:
    return True


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    should_retry: Callable[[Exception], bool] = _always,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "operation",
) -> T:
    """
    Call fn until it returns, at most policy.max_attempts times.
    Errors for which should_retry is False propagate at once; after the last
    attempt the last error propagates.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await fn()
        except Exception as e:
            if not should_retry(e) or attempt >= policy.max_attempts:
                raise
            delay = policy.backoff(attempt)
            log.debug(
                "retry_scheduled",
                label=label,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay_s=delay,
                error=type(e).__name__,
            )
            await sleep(delay)
