"""Bounded polling and retry with exponential backoff.

Every call builds its own delay sequence, so concurrent targets never share
timing state.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TypeVar

from roster_provisioner.errors import HostingError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Attempt budget and backoff curve for a repeated remote call."""

    max_attempts: int = 5
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 15.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay <= 0:
            raise ValueError("initial_delay must be > 0")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")

    def delays(self) -> Iterator[float]:
        """Yield successive delays: initial, initial*factor, ... capped at max_delay."""

        delay = self.initial_delay
        while True:
            yield min(delay, self.max_delay)
            delay *= self.backoff_factor


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, HostingError) and error.retryable


def poll_until(
    probe: Callable[[], bool],
    *,
    timeout: float,
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Call ``probe`` until it returns True or ``timeout`` seconds have passed.

    Returns:
        True if the probe succeeded, False on timeout.
    """

    if timeout <= 0:
        raise ValueError("timeout must be > 0")

    deadline = clock() + timeout
    delays = policy.delays()
    while True:
        if probe():
            return True
        remaining = deadline - clock()
        if remaining <= 0:
            return False
        sleep(min(next(delays), remaining))


def call_with_retry(
    fn: Callable[[], T],
    *,
    policy: RetryPolicy,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "remote call",
) -> T:
    """Run ``fn``, retrying errors accepted by ``should_retry`` up to the policy's budget.

    The last error is re-raised once attempts are exhausted; errors rejected by
    ``should_retry`` are raised immediately.
    """

    delays = policy.delays()
    attempt = 1
    while True:
        try:
            return fn()
        except Exception as e:
            if attempt >= policy.max_attempts or not should_retry(e):
                raise
            delay = next(delays)
            logger.info(
                "Retrying after transient failure",
                extra={
                    "operation": description,
                    "attempt": attempt,
                    "delay_seconds": delay,
                    "error": str(e),
                },
            )
            sleep(delay)
            attempt += 1
