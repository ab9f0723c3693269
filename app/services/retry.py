"""Retry-with-backoff policy for flaky remote calls."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from app.config.settings import GenerationConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]
RetryCallback = Callable[[int, BaseException, float], None]


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff: ``delay(attempt) = initial_delay * multiplier ** attempt``."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay cannot be negative")

    def delay(self, attempt: int) -> float:
        """Delay after the zero-based ``attempt`` fails."""
        return self.initial_delay * (self.backoff_multiplier ** attempt)

    @classmethod
    def from_config(cls, config: GenerationConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.retry_max_attempts,
            initial_delay=config.retry_initial_delay,
            backoff_multiplier=config.retry_backoff_multiplier,
        )


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: SleepFn = asyncio.sleep,
    on_retry: Optional[RetryCallback] = None,
) -> T:
    """Call ``operation`` until it succeeds or ``policy.max_attempts`` is spent.

    ``operation`` is invoked afresh on every attempt. Every failed attempt is
    followed by its backoff wait, the last one included: with the default policy
    three failures wait 1s, 2s and 4s before the last error is re-raised.
    """

    last_error: BaseException | None = None
    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except retry_on as exc:
            last_error = exc
            delay = policy.delay(attempt)
            final = attempt + 1 >= policy.max_attempts
            logger.info(
                "Attempt %s/%s failed (%s); %s in %.2fs",
                attempt + 1,
                policy.max_attempts,
                exc,
                "giving up" if final else "retrying",
                delay,
            )
            if on_retry is not None and not final:
                on_retry(attempt + 1, exc, delay)
            await sleep(delay)

    logger.warning("Giving up after %s attempt(s): %s", policy.max_attempts, last_error)
    raise last_error


__all__ = ["RetryPolicy", "retry_async"]
