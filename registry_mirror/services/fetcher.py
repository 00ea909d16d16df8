"""HTTP client for fetching registry JSON with retry logic"""

import asyncio
import logging
from typing import Any

import httpx

from registry_mirror.config import config

logger = logging.getLogger(__name__)

DEFAULT_RETRIES = 3
DEFAULT_RETRY_DELAY_MS = 1000
DEFAULT_TIMEOUT_MS = 30000


class NetworkError(Exception):
    """Raised when a JSON fetch fails after all attempts"""

    def __init__(self, url: str, attempts: int, cause: Exception | None = None):
        self.url = url
        self.attempts = attempts
        self.cause = cause
        self.message = str(cause) if cause else "Unknown fetch error"
        super().__init__(f"Failed to fetch {url} after {attempts} attempt(s): {self.message}")


def backoff_delay_ms(base_delay: int, attempt: int) -> int:
    """Delay slept before attempt number `attempt` (attempt 0 is immediate)"""
    if attempt <= 0:
        return 0
    return base_delay * 2 ** (attempt - 1)


class RegistryFetcher:
    """HTTP client for registry index and item JSON"""

    def __init__(
        self,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize fetcher

        Args:
            timeout: Transport timeout in seconds (default: config.http_timeout)
            transport: Optional httpx transport (used to stub upstreams)
        """
        self.default_headers = {
            "Accept": "application/json",
            "User-Agent": config.user_agent,
        }
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout or config.http_timeout),
            follow_redirects=True,
            transport=transport,
        )

    def _merge_headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        return {**self.default_headers, **(headers or {})}

    async def _get_json(self, url: str, headers: dict[str, str], **kwargs: Any) -> Any:
        """Single GET; non-2xx and undecodable bodies raise"""
        response = await self.client.get(url, headers=headers, **kwargs)
        response.raise_for_status()
        return response.json()

    async def fetch_json(
        self,
        url: str,
        *,
        retries: int = DEFAULT_RETRIES,
        base_delay: int = DEFAULT_RETRY_DELAY_MS,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        Fetch and decode JSON, retrying with exponential backoff

        Attempt 0 runs immediately; attempt k sleeps base_delay * 2^(k-1) ms first.
        HTTP errors, transport errors and invalid JSON are all retried.

        Args:
            url: URL to fetch
            retries: Retries after the first attempt (retries + 1 attempts total)
            base_delay: Base backoff delay in milliseconds
            headers: Extra request headers

        Returns:
            Decoded JSON value

        Raises:
            NetworkError: With the last attempt's error once all attempts fail
        """
        merged_headers = self._merge_headers(headers)
        attempts = retries + 1
        last_error: Exception | None = None

        for attempt in range(attempts):
            delay_ms = backoff_delay_ms(base_delay, attempt)
            if delay_ms:
                logger.warning(
                    f"Retry {attempt}/{retries} for {url} after {delay_ms}ms: {last_error}"
                )
                await asyncio.sleep(delay_ms / 1000)

            try:
                return await self._get_json(url, merged_headers)
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                logger.debug(f"Attempt {attempt + 1}/{attempts} failed for {url}: {e}")

        logger.error(f"All {attempts} attempts failed for {url}")
        raise NetworkError(url, attempts, last_error) from last_error

    async def fetch_json_with_timeout(
        self,
        url: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        *,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        Fetch and decode JSON in a single attempt bounded by a timeout

        Args:
            url: URL to fetch
            timeout_ms: Timeout for the whole request in milliseconds
            headers: Extra request headers

        Returns:
            Decoded JSON value

        Raises:
            NetworkError: On timeout, HTTP error or invalid JSON (no retry)
        """
        try:
            return await asyncio.wait_for(
                self._get_json(
                    url,
                    self._merge_headers(headers),
                    timeout=httpx.Timeout(timeout_ms / 1000),
                ),
                timeout=timeout_ms / 1000,
            )
        except (httpx.HTTPError, ValueError, asyncio.TimeoutError) as e:
            logger.warning(f"Fetch failed for {url} (timeout {timeout_ms}ms): {e!r}")
            raise NetworkError(url, 1, e) from e

    async def close(self) -> None:
        """Close HTTP client"""
        await self.client.aclose()

    async def __aenter__(self) -> "RegistryFetcher":
        """Context manager entry"""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit - closes client"""
        await self.close()
