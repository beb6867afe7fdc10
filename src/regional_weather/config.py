"""Configuration settings for the regional weather analysis engine."""

import os
from typing import Final
from dotenv import load_dotenv

load_dotenv()

# Text generation API configuration
COHERE_API_KEY: str = os.getenv("COHERE_API_KEY", "")
COHERE_API_URL: Final[str] = os.getenv("COHERE_API_URL", "https://api.cohere.ai/v1/generate")
COHERE_MODEL: str = os.getenv("COHERE_MODEL", "command")
TEXTGEN_MAX_TOKENS: int = int(os.getenv("TEXTGEN_MAX_TOKENS", "1500"))
TEXTGEN_TEMPERATURE: float = float(os.getenv("TEXTGEN_TEMPERATURE", "0.7"))
TEXTGEN_TIMEOUT_SECONDS: float = float(os.getenv("TEXTGEN_TIMEOUT_SECONDS", "30"))
TEXTGEN_CALL_INTERVAL_SECONDS: float = float(os.getenv("TEXTGEN_CALL_INTERVAL_SECONDS", "1.0"))

# Daily API call budget
FORCE_ANALYSIS: bool = os.getenv("FORCE_ANALYSIS", "false").lower() == "true"
MAX_DAILY_CALLS: int = int(os.getenv("MAX_DAILY_CALLS", "100"))

# Input / output snapshots
WEATHER_DATA_FILE: str = os.getenv("WEATHER_DATA_FILE", "data/weather/latest.json")
OUTPUT_DIR: str = os.getenv("OUTPUT_DIR", "data/weather-summary")
OUTPUT_FILE: str = os.getenv("OUTPUT_FILE", os.path.join(OUTPUT_DIR, "enhanced-regional-analysis.json"))
USAGE_TRACKING_FILE: str = os.getenv("USAGE_TRACKING_FILE", os.path.join(OUTPUT_DIR, "usage-tracking.json"))

# Pipeline
ANALYSIS_CONCURRENCY: int = int(os.getenv("ANALYSIS_CONCURRENCY", "1"))
ANALYSIS_VERSION: Final[str] = "2.0"
ENGINE_SOURCE: Final[str] = "Regional Weather Confidence Engine"

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Server configuration
HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = int(os.getenv("PORT", "8000"))
DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

# Redis cache configuration
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")
CACHE_EXPIRE_SECONDS: int = int(os.getenv("CACHE_EXPIRE_SECONDS", "60"))  # 60 seconds default
CACHE_PREFIX: str = os.getenv("CACHE_PREFIX", "regional-weather")

# Rate limiting configuration
RATE_LIMIT_REQUESTS_PER_SECOND: int = int(os.getenv("RATE_LIMIT_REQUESTS_PER_SECOND", "20"))
RATE_LIMIT_REDIS_KEY_PREFIX: str = os.getenv("RATE_LIMIT_REDIS_KEY_PREFIX", "rate_limit")
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
