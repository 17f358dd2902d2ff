"""
Binary Fetch - downloads image content behind a URL.

The engine only needs "URL in, bytes out". HttpBinaryFetcher covers public and
signed blob URLs; InMemoryFetcher serves registered payloads for development
and tests.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import httpx

from animation_engine.config import settings

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Content behind a URL could not be retrieved."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class BinaryFetcher(ABC):
    """Abstract base class for binary content sources."""

    @abstractmethod
    async def fetch(self, url: str) -> bytes:
        """Return the content behind url or raise FetchError."""
        pass


class HttpBinaryFetcher(BinaryFetcher):
    """Fetch content over HTTP(S)."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.FETCH_TIMEOUT_SECONDS
        self._client = client

    async def fetch(self, url: str) -> bytes:
        if self._client is not None:
            return await self._get(self._client, url)

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            return await self._get(client, url)

    async def _get(self, client: httpx.AsyncClient, url: str) -> bytes:
        try:
            response = await client.get(url)
        except httpx.InvalidURL as e:
            raise FetchError(url, f"Invalid URL: {url}") from e

        if response.status_code != 200:
            logger.error(f"Fetch failed: {response.status_code} for {url}")
            raise FetchError(
                url,
                f"HTTP {response.status_code} while fetching {url}",
                status_code=response.status_code,
            )

        content = response.content
        logger.info(f"Fetched {len(content)} bytes from {url}")
        return content


class InMemoryFetcher(BinaryFetcher):
    """Serve pre-registered payloads by URL."""

    def __init__(self, payloads: Optional[Dict[str, bytes]] = None):
        self.payloads: Dict[str, bytes] = dict(payloads or {})

    def register(self, url: str, content: bytes) -> None:
        self.payloads[url] = content

    async def fetch(self, url: str) -> bytes:
        if url not in self.payloads:
            raise FetchError(url, f"No content registered for {url}", status_code=404)
        return self.payloads[url]
