"""
Base client for AI operations.
Provides common HTTP plumbing for the Gemini and keyless image clients.
"""
from typing import Dict, Any, Optional
import httpx
from toywonder.core.config import Settings, get_settings
from toywonder.core.logging import get_logger

logger = get_logger("core.base_client")

class BaseAIClient:
    """Base client for interacting with AI providers."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport
        self.timeout = self.settings.gemini_timeout_seconds

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout if timeout is not None else self.timeout,
            transport=self.transport,
            follow_redirects=True,
        )

    async def _make_request(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        log_prefix: str = "AI Client"
    ) -> Dict[str, Any]:
        """
        Make a generic HTTP POST request to the AI provider.

        Args:
            url: The full API endpoint URL.
            payload: The JSON payload to send.
            headers: Extra request headers (e.g. the API key).
            log_prefix: Prefix for log messages.

        Returns:
            The parsed JSON response.

        Raises:
            httpx.HTTPStatusError: If the API returns an error status.
        """
        logger.debug(f"[{log_prefix}] Calling {url}")

        async with self._client() as client:
            response = await client.post(url, json=payload, headers=headers)

            logger.debug(f"[{log_prefix}] Response status: {response.status_code}")
            if response.status_code != 200:
                logger.error(f"[{log_prefix}] Error response: {response.text[:500]}")

            response.raise_for_status()
            return response.json()

    async def _fetch(
        self,
        url: str,
        timeout: Optional[float] = None,
        log_prefix: str = "AI Client"
    ) -> httpx.Response:
        """GET a resource and return the raw response after a status check."""
        logger.debug(f"[{log_prefix}] Fetching {url}")

        async with self._client(timeout) as client:
            response = await client.get(url)
            logger.debug(f"[{log_prefix}] Response status: {response.status_code}")
            response.raise_for_status()
            return response
