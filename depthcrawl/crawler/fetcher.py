"""
Web page fetcher built on a shared aiohttp session.
"""

import asyncio
import logging
import time
from typing import Dict, Optional

import aiohttp
from aiohttp import ClientError, ClientSession, ClientTimeout


class ExtractionError(Exception):
    """Base class for failures while turning a URL into links."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{url}: {message}")
        self.url = url
        self.message = message


class FetchError(ExtractionError):
    """Network failure, timeout or unsuccessful HTTP status."""

    def __init__(self, url: str, message: str, status: Optional[int] = None):
        super().__init__(url, message)
        self.status = status


TEXT_CONTENT_TYPES = (
    'text/html',
    'text/plain',
    'text/xml',
    'application/xml',
    'application/xhtml+xml',
)


class WebFetcher:
    """
    Fetches pages with a per-request timeout.

    `fetch()` either returns the decoded body of a 2xx text response or
    raises FetchError.
    """

    def __init__(self, user_agent: str = 'depthcrawl/1.0', request_timeout: float = 10,
                 max_connections: int = 100, max_content_size: int = 10 * 1024 * 1024):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_connections = max_connections
        self.max_content_size = max_content_size
        self.logger = logging.getLogger(__name__)
        self.session: Optional[ClientSession] = None

        self.stats: Dict[str, int] = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Open the HTTP session."""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=ClientTimeout(total=self.request_timeout),
                headers={'User-Agent': self.user_agent},
                connector=aiohttp.TCPConnector(limit=self.max_connections, ttl_dns_cache=300)
            )
            self.logger.debug("WebFetcher session started")

    async def close(self):
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug("WebFetcher session closed")

    async def fetch(self, url: str) -> str:
        """
        GET a page and return its body as text.

        Args:
            url: Absolute URL to fetch

        Returns:
            Decoded response body

        Raises:
            FetchError: on network errors, timeouts, non-2xx statuses,
                non-text content or oversized bodies
        """
        if self.session is None:
            await self.start()

        start_time = time.time()
        self.stats['total_requests'] += 1

        try:
            async with self.session.get(url) as response:
                if not 200 <= response.status < 300:
                    raise FetchError(url, f"status error: {response.status}", status=response.status)

                content_type = response.headers.get('content-type', '').lower()
                if not any(text_type in content_type for text_type in TEXT_CONTENT_TYPES):
                    raise FetchError(url, f"non-text content type: {content_type or 'missing'}",
                                     status=response.status)

                content_bytes = await self._read_limited(url, response)
                text = self._decode(content_bytes, response.charset)

        except FetchError:
            self.stats['failed_requests'] += 1
            raise
        except asyncio.TimeoutError as e:
            self.stats['failed_requests'] += 1
            raise FetchError(url, f"request timed out after {self.request_timeout}s") from e
        except (ClientError, ValueError) as e:
            self.stats['failed_requests'] += 1
            raise FetchError(url, f"client error: {e}") from e

        self.stats['successful_requests'] += 1
        self.stats['total_bytes_downloaded'] += len(content_bytes)
        self.logger.debug(f"Fetched {url} ({len(content_bytes)} bytes in {time.time() - start_time:.2f}s)")
        return text

    async def _read_limited(self, url: str, response: aiohttp.ClientResponse) -> bytes:
        """Read the body in chunks, refusing anything over max_content_size."""
        content_length = response.headers.get('content-length')
        if content_length and content_length.isdigit() and int(content_length) > self.max_content_size:
            raise FetchError(url, f"content too large ({content_length} bytes)", status=response.status)

        chunks = []
        size = 0
        async for chunk in response.content.iter_chunked(8192):
            size += len(chunk)
            if size > self.max_content_size:
                raise FetchError(url, "content exceeded size limit during reading", status=response.status)
            chunks.append(chunk)
        return b''.join(chunks)

    @staticmethod
    def _decode(content_bytes: bytes, charset: Optional[str]) -> str:
        for encoding in (charset, 'utf-8', 'latin-1'):
            if not encoding:
                continue
            try:
                return content_bytes.decode(encoding)
            except (UnicodeDecodeError, LookupError):
                continue
        return content_bytes.decode('utf-8', errors='ignore')

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()
