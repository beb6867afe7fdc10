"""HTTP client for the Cohere text generation API."""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import httpx

from regional_weather.config import (
    COHERE_API_KEY, COHERE_API_URL, COHERE_MODEL,
    TEXTGEN_CALL_INTERVAL_SECONDS, TEXTGEN_MAX_TOKENS,
    TEXTGEN_TEMPERATURE, TEXTGEN_TIMEOUT_SECONDS
)

logger = logging.getLogger(__name__)


class TextGenerationError(Exception):
    """Raised when the text generation call yields no usable text."""
    pass


class TextGenerationClient:
    """Async client for the text generation endpoint.

    Consecutive calls are spaced by ``min_interval`` seconds to respect the
    provider's rate limit, regardless of how many callers share the client.
    """

    def __init__(
        self,
        api_key: str = COHERE_API_KEY,
        base_url: str = COHERE_API_URL,
        model: str = COHERE_MODEL,
        max_tokens: int = TEXTGEN_MAX_TOKENS,
        temperature: float = TEXTGEN_TEMPERATURE,
        min_interval: float = TEXTGEN_CALL_INTERVAL_SECONDS,
        timeout: float = TEXTGEN_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize the text generation client.

        Args:
            api_key: Bearer token for the API
            base_url: Generate endpoint URL
            model: Model name sent with each request
            max_tokens: Output length bound
            temperature: Sampling temperature
            min_interval: Minimum seconds between consecutive calls
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
        """
        if not api_key:
            raise ValueError("api_key is required for the text generation client")

        self.base_url = base_url
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.min_interval = min_interval
        self.client = httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport
        )
        self._pace_lock = asyncio.Lock()
        self._last_call: Optional[float] = None

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "prompt": prompt,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "k": 0,
            "p": 0.85,
            "stop_sequences": [],
            "return_likelihoods": "NONE",
        }

    async def _pace(self) -> None:
        """Wait until ``min_interval`` has passed since the previous call."""
        async with self._pace_lock:
            if self._last_call is not None:
                wait = self.min_interval - (time.monotonic() - self._last_call)
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_call = time.monotonic()

    async def generate(self, prompt: str) -> str:
        """Generate text for a prompt.

        Args:
            prompt: Prompt text

        Returns:
            Generated text (non-empty)

        Raises:
            TextGenerationError: On transport failure, non-2xx status,
                malformed response or empty output
        """
        await self._pace()

        try:
            response = await self.client.post(self.base_url, json=self.build_payload(prompt))
            response.raise_for_status()
            data = response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error from text generation API: {e.response.status_code}")
            raise TextGenerationError(f"API returned status {e.response.status_code}")
        except httpx.RequestError as e:
            logger.error(f"Request error to text generation API: {type(e).__name__}")
            raise TextGenerationError("Text generation API unreachable")
        except ValueError:
            logger.error("Text generation API returned invalid JSON")
            raise TextGenerationError("Invalid JSON in API response")

        try:
            text = data["generations"][0]["text"]
        except (KeyError, IndexError, TypeError):
            logger.error("Text generation API response missing generations[0].text")
            raise TextGenerationError("Malformed API response")

        if not isinstance(text, str) or not text.strip():
            raise TextGenerationError("Empty generation")

        logger.info(f"Received {len(text)} characters from text generation API")
        return text

    async def aclose(self):
        """Close the async HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()
