"""KWOTD Notifier — Feed HTTP Client.

Performs the one bounded network read of a run. Built on
httpx.AsyncClient with:
  - Explicit connect/read timeouts
  - Streaming line-by-line read, stopped once the length cap is reached
  - A single attempt: retrying is the scheduler's job, not the client's
"""

from __future__ import annotations

from typing import Optional

import httpx

from kwotd.config import FeedConfig
from kwotd.errors import NetworkError
from kwotd.utils.logger import get_logger

logger = get_logger(__name__)


class FeedClient:
    """Async HTTP client for the word-of-the-day feed.

    Attributes:
        config: Feed configuration from settings.yaml.
        total_requests: Running count of successful reads this session.
    """

    def __init__(
        self,
        config: FeedConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client from a FeedConfig.

        Args:
            config: FeedConfig instance loaded from settings.yaml.
            transport: Optional httpx transport, used to stub the network.
        """
        self.config = config
        self.total_requests: int = 0
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Lazily create the httpx.AsyncClient."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={
                    "User-Agent": self.config.user_agent,
                    "Accept": "application/json, application/rss+xml, text/plain;q=0.9, */*;q=0.8",
                },
                follow_redirects=True,
                timeout=httpx.Timeout(
                    self.config.read_timeout_seconds,
                    connect=self.config.connect_timeout_seconds,
                ),
                transport=self._transport,
            )
        return self._client

    async def fetch(self, url: Optional[str] = None) -> str:
        """Read the feed into a bounded, newline-terminated payload.

        Lines are appended, each followed by "\\n", for as long as the
        accumulated text is shorter than the configured cap. A line that
        arrives once the cap is reached is dropped, so the payload may
        exceed the cap by at most one line.

        Args:
            url: Endpoint to read. Defaults to the configured active URL.

        Returns:
            The raw payload text.

        Raises:
            NetworkError: On connection, timeout, read or HTTP status failure.
        """
        url = url or self.config.active_url
        cap = self.config.max_payload_chars
        logger.info("Fetching feed: %s", url)

        client = self._get_client()
        parts: list[str] = []
        length = 0
        try:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if length >= cap:
                        break
                    parts.append(line)
                    parts.append("\n")
                    length += len(line) + 1
        except httpx.HTTPStatusError as e:
            raise NetworkError(url, f"HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise NetworkError(url, f"timeout ({type(e).__name__})") from e
        except httpx.HTTPError as e:
            raise NetworkError(url, str(e) or type(e).__name__) from e

        self.total_requests += 1
        payload = "".join(parts)
        logger.debug("Read %d chars from %s", len(payload), url)
        return payload

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("HTTP client closed (total requests: %d)", self.total_requests)

    async def __aenter__(self) -> "FeedClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
