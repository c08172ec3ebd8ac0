# Hey future me - this is THE FIX for "database is locked" errors!
#
# Every feed reader writes to the same SQLite file (matched claims, unmatched rows,
# daily counters). SQLite allows ONE writer at a time even in WAL mode, so two feeds
# finishing a track at the same moment can collide. The lock is temporary: wait, retry,
# done.
#
# USAGE:
#   @with_db_retry(max_attempts=3)
#   async def add_unmatched(self, entry: UnmatchedEntry) -> int:
#       ...
#
# IntegrityError is NEVER retried here. The UNIQUE(catalog_id) violation is how the
# ledger learns it lost a race, it has to reach the caller on the first attempt.
"""Database retry utilities for handling SQLite lock errors."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import wraps
from typing import ParamSpec, TypeVar

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


@dataclass
class DatabaseLockMetrics:
    """Process-wide counters of lock retries, logged at shutdown."""

    retries: int = 0
    failures: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"retries": self.retries, "failures": self.failures}

    def reset(self) -> None:
        self.retries = 0
        self.failures = 0


lock_metrics = DatabaseLockMetrics()


def is_lock_error(exception: BaseException) -> bool:
    """Check if an exception is a retryable SQLite lock error.

    Args:
        exception: The exception to check

    Returns:
        True for OperationalError mentioning "locked" or "busy"
    """
    if not isinstance(exception, OperationalError):
        return False

    error_msg = str(exception).lower()
    return "locked" in error_msg or "busy" in error_msg


def with_db_retry(
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
    backoff_factor: float = 2.0,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator for retrying async database operations on lock errors.

    The wait grows 0.5s -> 1s -> 2s (capped at max_delay). Any other error,
    including other OperationalErrors, is raised immediately.

    Args:
        max_attempts: Maximum attempts including the first one
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
        backoff_factor: Multiply delay by this each retry

    Returns:
        Decorated coroutine function
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            delay = initial_delay

            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except OperationalError as e:
                    if not is_lock_error(e):
                        raise

                    if attempt == max_attempts:
                        lock_metrics.failures += 1
                        logger.error(
                            "Database locked after %d attempts, giving up: %s",
                            max_attempts,
                            func.__qualname__,
                        )
                        raise

                    lock_metrics.retries += 1
                    logger.warning(
                        "Database locked (attempt %d/%d), retrying in %.1fs: %s",
                        attempt,
                        max_attempts,
                        delay,
                        func.__qualname__,
                    )
                    await asyncio.sleep(delay)
                    delay = min(delay * backoff_factor, max_delay)

            raise RuntimeError("Unexpected state in retry decorator")

        return wrapper

    return decorator


__all__ = ["DatabaseLockMetrics", "is_lock_error", "lock_metrics", "with_db_retry"]
