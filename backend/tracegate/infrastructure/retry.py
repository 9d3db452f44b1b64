"""Idempotent Retry — bounded exponential backoff for recoverable downstream calls.

Invariants:
    - Only exceptions listed in RetryPolicy.retry_on are retried; anything else propagates at once
    - At most max_attempts calls are made; the last failure is re-raised unchanged
    - Callers must only pass idempotent operations (reads, upserts keyed by request)

Design Decisions:
    - Retries live inside the handler, below the pipeline: only terminal failures
      reach the classifier
    - ±25% jitter on backoff: prevents thundering herd on a shared dependency
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tracegate.core.errors import DependencyUnavailableError
from tracegate.infrastructure.observability import get_logger

log = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_ms: int = 100
    max_delay_ms: int = 2_000
    retry_on: tuple[type[BaseException], ...] = (DependencyUnavailableError,)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def backoff(self, attempt: int) -> int:
        """Delay in ms before retrying after `attempt` (0-based) failed."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311


async def retry_idempotent(
    operation: Callable[[], Awaitable[T]], policy: RetryPolicy,
) -> T:
    """Await `operation()`, retrying transient failures per `policy`."""
    attempt = 0
    while True:
        try:
            return await operation()
        except policy.retry_on as e:
            attempt += 1
            if attempt >= policy.max_attempts:
                log.error(
                    f"Giving up after {attempt} attempt(s): {e}",
                    {"attempt": attempt},
                )
                raise
            delay = policy.backoff(attempt - 1)
            log.warning(
                f"Transient error, retry after {delay}ms: {e}",
                {"attempt": attempt, "delay_ms": delay},
            )
            await asyncio.sleep(delay / 1000)
