"""
Token bucket rate limiter for Spotify Web API calls.

Hey future me - all feeds share ONE Spotify limiter. Four stations changing tracks at
the same time means up to five searches each plus an append, and Spotify answers bursts
with 429 and long Retry-After values.

ALGORITHM: Token Bucket
- Bucket holds max_tokens
- Tokens refill at refill_rate per second
- Every request consumes 1 token
- Empty bucket: wait until a token is available

ADAPTIVE BACKOFF on 429:
- Retry-After header wins if present
- Otherwise 1s, 2s, 4s ... (capped), reset after a successful request

USAGE:
    limiter = get_spotify_limiter()

    async with limiter:
        response = await client.get(url)

    # On 429:
    await limiter.handle_rate_limit_response(retry_after)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter.

    Spotify allows roughly 180 requests per minute. 2 req/sec sustained leaves headroom.
    max_backoff_seconds must stay high: Spotify can send Retry-After of several minutes
    and ignoring it just earns another 429.
    """

    max_tokens: int = 10  # Bucket size
    refill_rate: float = 2.0  # Tokens per second
    max_backoff_seconds: float = 600.0
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0


@dataclass
class RateLimiter:
    """Token bucket rate limiter with adaptive 429 backoff."""

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default_factory=time.monotonic, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        self._tokens = float(self.config.max_tokens)
        self._current_backoff = self.config.initial_backoff_seconds

    @classmethod
    def for_spotify(cls) -> "RateLimiter":
        return cls(
            config=RateLimiterConfig(
                max_tokens=10,
                refill_rate=2.0,
                max_backoff_seconds=600.0,
                initial_backoff_seconds=1.0,
            ),
            name="spotify",
        )

    def _refill_tokens(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(
            float(self.config.max_tokens), self._tokens + elapsed * self.config.refill_rate
        )
        self._last_refill = now

    async def acquire(self) -> None:
        """Acquire one token, waiting if necessary."""
        while True:
            async with self._lock:
                self._refill_tokens()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    logger.debug(
                        "RateLimiter[%s]: token acquired, %.1f remaining",
                        self.name,
                        self._tokens,
                    )
                    return
                wait_time = (1.0 - self._tokens) / self.config.refill_rate

            logger.debug(
                "RateLimiter[%s]: no tokens available, waiting %.2fs",
                self.name,
                wait_time,
            )
            await asyncio.sleep(wait_time)

    async def handle_rate_limit_response(self, retry_after: int | None = None) -> float:
        """Wait after a 429 response.

        Args:
            retry_after: Retry-After header value in seconds

        Returns:
            The wait time actually used
        """
        async with self._lock:
            if retry_after is not None:
                wait_time = float(retry_after)
            else:
                wait_time = self._current_backoff
            wait_time = min(wait_time, self.config.max_backoff_seconds)

            logger.warning(
                "RateLimiter[%s]: 429 rate limited, waiting %.1fs before retry",
                self.name,
                wait_time,
            )

            self._current_backoff = min(
                self._current_backoff * self.config.backoff_multiplier,
                self.config.max_backoff_seconds,
            )
            # Drain the bucket so other feeds wait too
            self._tokens = 0.0

        await asyncio.sleep(wait_time)
        return wait_time

    def reset_backoff(self) -> None:
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object
    ) -> None:
        if exc_type is None:
            self.reset_backoff()

    @property
    def available_tokens(self) -> float:
        self._refill_tokens()
        return self._tokens


_spotify_limiter: RateLimiter | None = None


def get_spotify_limiter() -> RateLimiter:
    """Get the process-wide Spotify rate limiter."""
    global _spotify_limiter
    if _spotify_limiter is None:
        _spotify_limiter = RateLimiter.for_spotify()
    return _spotify_limiter


__all__ = ["RateLimiter", "RateLimiterConfig", "get_spotify_limiter"]
