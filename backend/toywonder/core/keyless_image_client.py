"""
Client for the public keyless image-rendering service.
The service renders an image for whatever prompt is encoded in the URL, so the
only success signal is that the URL actually resolves to image bytes.
"""
import asyncio
from urllib.parse import quote, urlencode

import httpx

from toywonder.core.base_client import BaseAIClient
from toywonder.core.constants import ImageConstants
from toywonder.core.errors import ProviderFailure
from toywonder.core.logging import get_logger

logger = get_logger("core.keyless_image_client")


class KeylessImageClient(BaseAIClient):
    """Client for the Pollinations-style image-by-URL service."""

    def build_url(self, prompt: str, size: str = ImageConstants.DEFAULT_SIZE) -> str:
        """Deterministic render URL for a prompt and size."""
        width, _, height = size.partition("x")
        query = urlencode({"width": width, "height": height or width, "nologo": "true"})
        base = self.settings.keyless_image_base_url.rstrip("/")
        return f"{base}/{quote(prompt, safe='')}?{query}"

    async def render(self, prompt: str, size: str = ImageConstants.DEFAULT_SIZE) -> str:
        """
        Build the render URL and confirm it loads as an image.

        Returns:
            The confirmed URL

        Raises:
            ProviderFailure: On timeout, error status or a non-image body
        """
        url = self.build_url(prompt, size)
        timeout = self.settings.keyless_image_timeout_seconds
        try:
            # httpx timeouts apply per read; wait_for bounds the whole download
            response = await asyncio.wait_for(
                self._fetch(url, timeout=timeout, log_prefix="Keyless Image"),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise ProviderFailure(f"Image did not load within {timeout:g}s")

        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("image/") or not response.content:
            raise ProviderFailure(f"URL did not resolve to an image (content-type={content_type or 'none'})")

        logger.debug(f"[Keyless Image] Loaded {len(response.content)} bytes of {content_type}")
        return url
