"""Async HTTP client with retry logic and rate limit handling."""

import asyncio
import logging
from typing import Any, Dict, Optional, cast

import aiohttp

from charter_ledger.lib.config import DEFAULT_HTTP_TIMEOUT
from charter_ledger.lib.errors import APIError, APIRateLimitError

logger = logging.getLogger(__name__)


class APIClient:
    """Async HTTP client used by the FX rate providers.

    Features:
    - Exponential backoff retry on 429 and timeouts (max 3 attempts)
    - Configurable timeout (default 10s)
    - Context manager support

    Example:
        async with APIClient("https://api.frankfurter.app") as client:
            data = await client.get("/2024-03-15", params={"from": "EUR", "to": "THB"})
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        default_timeout: int = DEFAULT_HTTP_TIMEOUT,
        max_retries: int = 3,
    ):
        """Initialize API client.

        Args:
            base_url: Base URL for all API requests (optional, can use full URLs instead)
            default_timeout: Default request timeout in seconds
            max_retries: Maximum number of retry attempts
        """
        self.base_url = base_url.rstrip("/") if base_url else None
        self.default_timeout = default_timeout
        self.max_retries = max_retries
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "APIClient":
        """Enter async context manager."""
        self.session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager and cleanup session."""
        if self.session and not self.session.closed:
            await self.session.close()

    async def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Make GET request with retry logic.

        Args:
            endpoint: API endpoint (appended to base_url)
            params: Query parameters
            headers: Request headers
            timeout: Request timeout in seconds (uses default_timeout if None)

        Returns:
            JSON response as dictionary

        Raises:
            APIRateLimitError: Rate limit exceeded after all retries
            APIError: API request failed
            asyncio.TimeoutError: Request timed out after all retries
        """
        if not self.session:
            raise RuntimeError("APIClient must be used as context manager")

        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                return await self._make_request(
                    endpoint, params, headers, timeout or self.default_timeout
                )

            except aiohttp.ClientResponseError as e:
                if e.status == 429:
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(2**attempt)
                        continue
                    raise APIRateLimitError(
                        f"Rate limit exceeded after {self.max_retries} attempts"
                    ) from e
                # Other HTTP errors - don't retry
                raise APIError(f"API request failed: {e.status} {e.message}") from e

            except asyncio.TimeoutError as e:
                last_error = e
                if attempt < self.max_retries - 1:
                    logger.debug(f"Timeout on {endpoint}, attempt {attempt + 1}")
                    await asyncio.sleep(2**attempt)
                    continue
                raise

            except aiohttp.ClientError as e:
                raise APIError(f"Network error: {str(e)}") from e

        if last_error:
            raise last_error
        raise APIError("Max retries exceeded")

    async def _make_request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]],
        headers: Optional[Dict[str, str]],
        timeout: int,
    ) -> Dict[str, Any]:
        """Make single HTTP request.

        Raises:
            aiohttp.ClientResponseError: HTTP error
            asyncio.TimeoutError: Request timeout
            aiohttp.ClientError: Network error
        """
        url = f"{self.base_url}{endpoint}" if self.base_url else endpoint

        if self.session is None:
            raise RuntimeError("APIClient session not initialized. Use async with context manager.")

        timeout_obj = aiohttp.ClientTimeout(total=timeout)

        async with self.session.get(
            url, params=params, headers=headers, timeout=timeout_obj
        ) as response:
            response.raise_for_status()
            data = await response.json()
            return cast(Dict[str, Any], data)
