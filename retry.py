"""Bounded retry with a fixed backoff."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Tuple, Type, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try an operation and how long to wait in between."""

    max_attempts: int = 3
    backoff: float = 0.5

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff < 0:
            raise ValueError("backoff must not be negative")


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    description: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run *operation* until it succeeds or the policy is exhausted.

    Only exceptions listed in *retry_on* are retried; anything else
    propagates immediately. When every attempt fails the last error is
    re-raised unchanged.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return operation()
        except retry_on as e:
            log.warning(
                "%s attempt %d/%d failed: %s",
                description, attempt, policy.max_attempts, e,
            )
            if attempt == policy.max_attempts:
                raise
            sleep(policy.backoff)
    raise AssertionError("unreachable")
