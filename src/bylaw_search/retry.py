"""Retry policy shared by the embedding client and the index writer.

Attempt ``n`` (1-based) that fails is followed by a ``backoff(n)`` second
sleep, up to ``max_retries`` retries; the default backoff is ``2 ** n``
(2s, 4s, 8s). After the last retry the original exception propagates.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def exponential_backoff(attempt: int) -> float:
    return float(2**attempt)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry a callable with a pluggable backoff.

    Attributes:
        max_retries: Retries after the first attempt (0 disables retrying).
        backoff: Seconds to wait after failed attempt ``n`` (1-based).
        retry_on: Exception types that trigger a retry; others propagate at once.
        sleep: Sleep function (replaced in tests).
    """

    max_retries: int = 3
    backoff: Callable[[int], float] = exponential_backoff
    retry_on: tuple[type[BaseException], ...] = (Exception,)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    def call(self, fn: Callable[[], T], description: str = "call") -> T:
        """Run *fn* until it succeeds or retries are exhausted."""
        attempt = 0
        while True:
            try:
                return fn()
            except self.retry_on as exc:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error(
                        "%s failed after %d retries: %s", description, self.max_retries, exc
                    )
                    raise
                wait = self.backoff(attempt)
                logger.warning(
                    "%s failed (%s); retrying in %.1fs (attempt %d/%d)",
                    description,
                    exc,
                    wait,
                    attempt,
                    self.max_retries,
                )
                self.sleep(wait)


NO_RETRY = RetryPolicy(max_retries=0)
