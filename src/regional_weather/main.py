"""FastAPI application serving regional weather analysis reports."""

import logging
import traceback
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import redis.asyncio as redis
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi_cache import FastAPICache
from fastapi_cache.backends.redis import RedisBackend

from regional_weather.api.endpoints import router as analysis_router
from regional_weather.config import (
    ANALYSIS_VERSION, HOST, PORT, DEBUG, REDIS_URL, CACHE_PREFIX,
    RATE_LIMIT_ENABLED, RATE_LIMIT_REQUESTS_PER_SECOND
)
from regional_weather.logging_config import configure_logging
from regional_weather.middleware.rate_limit import RateLimitMiddleware

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    redis_client = None
    try:
        logger.info(f"Connecting to Redis at {REDIS_URL}")
        redis_client = redis.from_url(REDIS_URL)
        FastAPICache.init(RedisBackend(redis_client), prefix=CACHE_PREFIX)
        logger.info("Cache initialized with Redis backend")

        logger.info("Starting Regional Weather Analysis Service")
        yield
    except Exception as e:
        logger.error(f"Startup error: {e}")
        logger.error(traceback.format_exc())
        raise
    finally:
        logger.info("Shutting down Regional Weather Analysis Service")
        if redis_client is not None:
            try:
                await redis_client.aclose()
            except Exception as e:
                logger.error(f"Shutdown error: {e}")


def create_app(rate_limit_enabled: bool = RATE_LIMIT_ENABLED) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        rate_limit_enabled: Whether the global rate limit middleware enforces limits

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="Regional Weather Analysis Service",
        description="Regional weather analyses with confidence scoring for Singapore",
        version=ANALYSIS_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(
        RateLimitMiddleware,
        calls=RATE_LIMIT_REQUESTS_PER_SECOND,
        enabled=rate_limit_enabled
    )

    app.include_router(analysis_router)

    @app.get("/api", tags=["root"])
    async def api_info() -> dict:
        """API information endpoint."""
        return {
            "message": "Regional Weather Analysis Service",
            "docs": "/docs",
            "redoc": "/redoc",
            "latest": "/analysis/latest",
            "regions": "/analysis/regions",
            "health": "/analysis/health"
        }

    return app


# App instance for uvicorn
app = create_app()


def main() -> None:
    """Entry point for the API server."""
    logger.info(f"Starting server on {HOST}:{PORT}")
    uvicorn.run(
        app,
        host=HOST,
        port=PORT,
        reload=DEBUG,
        log_level="info" if not DEBUG else "debug"
    )


if __name__ == "__main__":
    main()
