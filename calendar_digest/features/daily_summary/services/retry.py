"""
Retry with exponential backoff for calendar reads and mail sends.

Whether an error is worth retrying is decided from its message alone, using a
fixed pattern list. Anything not matching is raised on the first failure.
"""

import asyncio
import random
import re
from collections.abc import Awaitable, Callable
from typing import TypeVar

from calendar_digest.features.daily_summary.services.tracker import ExecutionTracker
from calendar_digest.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 4  # 1 initial + 3 retries
DEFAULT_BASE_DELAY = 1.0  # seconds
DEFAULT_MAX_JITTER = 1.0  # seconds

RETRYABLE_PATTERNS = [
    re.compile(r"service is currently unavailable", re.IGNORECASE),
    re.compile(r"temporary failure", re.IGNORECASE),
    re.compile(r"rate limit", re.IGNORECASE),
    re.compile(r"quota.*exceeded", re.IGNORECASE),
    re.compile(r"timeout", re.IGNORECASE),
    re.compile(r"network.*error", re.IGNORECASE),
    re.compile(r"internal.*error", re.IGNORECASE),
    re.compile(r"service.*error", re.IGNORECASE),
]


def is_retryable_error(error: BaseException) -> bool:
    message = str(error)
    return any(pattern.search(message) for pattern in RETRYABLE_PATTERNS)


class RetryExecutor:
    """
    Runs an async operation, retrying transient failures.

    Delay before retry n (0-based) is base_delay * 2**n plus up to max_jitter
    of random jitter. The sleep is awaited in the caller's flow.
    """

    def __init__(
        self,
        tracker: ExecutionTracker | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_jitter: float = DEFAULT_MAX_JITTER,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[], float] = random.random,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.tracker = tracker
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_jitter = max_jitter
        self._sleep = sleep
        self._jitter = jitter

    def backoff_delay(self, attempt: int) -> float:
        return self.base_delay * (2**attempt) + self._jitter() * self.max_jitter

    async def execute(self, operation: Callable[[], Awaitable[T]], description: str = "operation") -> T:
        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except Exception as e:
                if not is_retryable_error(e) or attempt == self.max_attempts - 1:
                    raise

                delay = self.backoff_delay(attempt)
                logger.warning(
                    "Operation failed, retrying",
                    operation=description,
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    delay_ms=round(delay * 1000),
                    error=str(e),
                )
                if self.tracker is not None:
                    self.tracker.increment_retries()
                await self._sleep(delay)

        raise RuntimeError("Retry loop exhausted")
