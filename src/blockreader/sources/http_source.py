"""
HTTP range block source.

Fetches blocks from an HTTP(S) URL with ``Range: bytes=a-b`` requests.

- open() issues a HEAD request to learn Content-Length and a validator
  (ETag or Last-Modified) that becomes part of every cache key
- Transport errors, timeouts, 429 and 5xx responses are retried with
  exponential backoff; other failures raise BlockFetchError immediately
- Servers that ignore Range and answer 200 get their body sliced
"""

from __future__ import annotations

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from blockreader.config import DEFAULT_BLOCK_SIZE
from blockreader.exceptions import BlockFetchError
from blockreader.logging import get_logger

logger = get_logger(__name__)

USER_AGENT = "blockreader/0.1"


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


class HttpBlockSource:
    """Block source reading an HTTP resource through range requests."""

    def __init__(
        self,
        url: str,
        block_size: int = DEFAULT_BLOCK_SIZE,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff: float = 0.5,
    ) -> None:
        """Initialize the source.

        Args:
            url: Resource URL.
            block_size: Block size the cache keys are computed for.
            client: Client to use. The source does not close injected clients.
            timeout: Request timeout in seconds, for clients the source creates.
            max_retries: Attempts per request.
            backoff: Multiplier for exponential backoff between attempts, in seconds.
        """
        self.url = url
        self.block_size = block_size
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self._client = client
        self._owns_client = client is None
        self._size: int | None = None
        self._validator = ""
        self._opened = False

    @property
    def size(self) -> int | None:
        return self._size

    def cache_key(self, block_number: int) -> str:
        """Key for one block of the current version of the resource.

        Raises:
            BlockFetchError: If open() has not learnt the resource's validator yet.
        """
        if not self._opened:
            raise BlockFetchError(
                "HTTP source must be opened before computing cache keys",
                context={"url": self.url},
            )
        return f"http:{self.url}:{self._validator}:{self.block_size}:{block_number}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            )
        return self._client

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff, max=10),
            reraise=True,
        )

    async def open(self) -> None:
        """Learn the resource's size and validator with a HEAD request."""
        if self._opened:
            return
        client = await self._get_client()

        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await client.head(self.url)
                    response.raise_for_status()
        except httpx.HTTPError as e:
            raise BlockFetchError(
                f"HEAD {self.url} failed", context={"error": str(e)}
            ) from e

        length = response.headers.get("Content-Length")
        if length is not None and length.isdigit():
            self._size = int(length)
        self._validator = (
            response.headers.get("ETag") or response.headers.get("Last-Modified") or ""
        )
        self._opened = True
        logger.debug("Opened HTTP source", url=self.url, size=self._size)

    async def _get_range(self, block_start: int, block_end: int) -> bytes:
        client = await self._get_client()
        response = await client.get(
            self.url, headers={"Range": f"bytes={block_start}-{block_end}"}
        )
        response.raise_for_status()

        if response.status_code == 206:
            return response.content
        if response.status_code == 200:
            logger.warning("Server ignored Range header", url=self.url)
            return response.content[block_start : block_end + 1]

        raise BlockFetchError(
            f"Unexpected status {response.status_code} for range request",
            context={"url": self.url, "block_start": block_start, "block_end": block_end},
        )

    async def fetch_block(self, block_start: int, block_end: int) -> bytes:
        try:
            async for attempt in self._retrying():
                with attempt:
                    return await self._get_range(block_start, block_end)
        except httpx.HTTPError as e:
            raise BlockFetchError(
                f"Failed to fetch {self.url}",
                context={
                    "block_start": block_start,
                    "block_end": block_end,
                    "error": str(e),
                },
            ) from e
        # AsyncRetrying either returns from the block or raises
        raise AssertionError("unreachable")

    async def aclose(self) -> None:
        """Close the HTTP client if this source created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    def __repr__(self) -> str:
        return f"HttpBlockSource({self.url!r}, block_size={self.block_size})"
