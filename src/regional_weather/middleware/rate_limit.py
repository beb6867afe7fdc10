"""Rate limiting middleware for the analysis API."""

import logging
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from regional_weather.config import RATE_LIMIT_ENABLED, RATE_LIMIT_REQUESTS_PER_SECOND
from regional_weather.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rejects requests over the global limit with HTTP 429."""

    BYPASS_PATHS = {
        "/analysis/health",
        "/analysis/info",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/favicon.ico",
    }

    def __init__(
        self,
        app,
        calls: int = RATE_LIMIT_REQUESTS_PER_SECOND,
        enabled: bool = RATE_LIMIT_ENABLED,
        rate_limiter: Optional[RateLimiter] = None
    ):
        """Initialize rate limit middleware.

        Args:
            app: ASGI application
            calls: Maximum requests per second
            enabled: Whether limiting is applied at all
            rate_limiter: Limiter to use (built from configuration if None)
        """
        super().__init__(app)
        self.enabled = enabled
        self.rate_limiter = rate_limiter or RateLimiter(max_requests=calls)
        logger.info(f"Rate limit enabled: {self.enabled}, limit: {calls} req/sec")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled or request.url.path in self.BYPASS_PATHS:
            return await call_next(request)

        is_allowed, retry_after = await self.rate_limiter.is_allowed()

        if not is_allowed:
            client_host = request.client.host if request.client else "unknown"
            logger.warning(f"Rate limit exceeded for {client_host} accessing {request.method} {request.url.path}")
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Rate limit exceeded. Please try again later.",
                    "retry_after": retry_after
                },
                headers={"Retry-After": str(retry_after)}
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.rate_limiter.max_requests)
        response.headers["X-RateLimit-Window"] = str(self.rate_limiter.window_size)
        return response
