"""Global sliding-window rate limiting backed by Redis."""

import logging
import time
from typing import Optional

import redis.asyncio as redis

from regional_weather.config import (
    REDIS_URL,
    RATE_LIMIT_REQUESTS_PER_SECOND,
    RATE_LIMIT_REDIS_KEY_PREFIX
)

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window limiter over a Redis sorted set.

    Every request adds a member scored by its timestamp in microseconds;
    members older than the window are pruned before counting. Requests are
    allowed when Redis cannot be reached.
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        max_requests: int = RATE_LIMIT_REQUESTS_PER_SECOND,
        window_size: float = 1.0,
        key_prefix: str = RATE_LIMIT_REDIS_KEY_PREFIX,
        retry_after: int = 2
    ):
        """Initialize rate limiter.

        Args:
            redis_client: Optional Redis client. If None, connects to REDIS_URL lazily.
            max_requests: Requests allowed per window
            window_size: Window length in seconds
            key_prefix: Redis key prefix
            retry_after: Seconds suggested to rejected clients
        """
        self.redis_client = redis_client or redis.from_url(REDIS_URL)
        self.max_requests = max_requests
        self.window_size = window_size
        self.retry_after = retry_after
        self.sorted_set_key = f"{key_prefix}:analysis"

    async def is_allowed(self) -> tuple[bool, int]:
        """Check whether one more request fits in the current window.

        Returns:
            Tuple of (is_allowed, retry_after_seconds); retry is 0 when allowed
        """
        try:
            now = time.time()
            member = int(now * 1_000_000)
            window_start = (now - self.window_size) * 1_000_000

            pipe = self.redis_client.pipeline()
            pipe.zadd(self.sorted_set_key, {str(member): member})
            pipe.zremrangebyscore(self.sorted_set_key, 0, window_start)
            pipe.zcard(self.sorted_set_key)
            pipe.expire(self.sorted_set_key, max(1, int(self.window_size * 2)))
            _, _, request_count, _ = await pipe.execute()

        except Exception as e:
            # Fail open
            logger.error(f"Rate limiter error: {type(e).__name__}: {e}")
            return True, 0

        if request_count > self.max_requests:
            logger.debug(f"Rate limited: count={request_count}, max={self.max_requests}")
            return False, self.retry_after

        return True, 0

    async def close(self):
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
