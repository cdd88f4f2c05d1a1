"""
Storage backends for shared crawl state.
Supports Redis for distributed crawls and an in-process store for single-process runs.
"""

import asyncio
import logging
from typing import Optional, Set, Union

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..utils.config import Config, RedisConfig


Payload = Union[str, bytes]


class StoreError(Exception):
    """Raised when the backing store cannot complete an operation."""
    pass


class CrawlStore:
    """
    Abstract base class for crawl state stores.

    A store holds two structures: a list-like frontier supporting append and
    blocking pop, and a set-like visited store supporting atomic insert.
    """

    async def initialize(self):
        """Connect to / prepare the backing store."""
        raise NotImplementedError

    async def push(self, payload: str):
        """Append a serialized task to the frontier."""
        raise NotImplementedError

    async def pop(self, timeout: float = 0) -> Optional[Payload]:
        """
        Pop a serialized task, blocking up to `timeout` seconds.
        A timeout of 0 blocks forever. Returns None on timeout.
        """
        raise NotImplementedError

    async def add_visited(self, url: str) -> bool:
        """Atomically add url to the visited set. Returns True if it was not present."""
        raise NotImplementedError

    async def visited_count(self) -> int:
        """Number of entries in the visited set."""
        raise NotImplementedError

    async def queue_size(self) -> int:
        """Number of tasks waiting in the frontier."""
        raise NotImplementedError

    async def clear(self):
        """Remove all frontier and visited state."""
        raise NotImplementedError

    async def close(self):
        """Release connections."""
        raise NotImplementedError


class RedisCrawlStore(CrawlStore):
    """Redis-backed store: LPUSH/BRPOP list for the frontier, SADD/SCARD set for visited URLs."""

    def __init__(self, config: RedisConfig, client: Optional[redis.Redis] = None):
        self.config = config
        self.frontier_key = config.frontier_key
        self.visited_key = config.visited_key
        self.logger = logging.getLogger(__name__)
        self.client = client

    async def initialize(self):
        if self.client is None:
            self.client = redis.Redis(
                host=self.config.host,
                port=self.config.port,
                db=self.config.db,
                password=self.config.password,
                decode_responses=False
            )

        try:
            await self.client.ping()
        except RedisError as e:
            raise StoreError(f"Cannot connect to Redis at {self.config.host}:{self.config.port}: {e}") from e

        self.logger.info(f"Redis connection established ({self.config.host}:{self.config.port}/{self.config.db})")

    async def push(self, payload: str):
        try:
            await self.client.lpush(self.frontier_key, payload)
        except RedisError as e:
            raise StoreError(f"LPUSH {self.frontier_key} failed: {e}") from e

    async def pop(self, timeout: float = 0) -> Optional[Payload]:
        try:
            result = await self.client.brpop([self.frontier_key], timeout=timeout)
        except RedisError as e:
            raise StoreError(f"BRPOP {self.frontier_key} failed: {e}") from e

        if result is None:
            return None

        # BRPOP replies with (key, value)
        return result[1]

    async def add_visited(self, url: str) -> bool:
        try:
            added = await self.client.sadd(self.visited_key, url)
        except RedisError as e:
            raise StoreError(f"SADD {self.visited_key} failed: {e}") from e
        return added == 1

    async def visited_count(self) -> int:
        try:
            return int(await self.client.scard(self.visited_key))
        except RedisError as e:
            raise StoreError(f"SCARD {self.visited_key} failed: {e}") from e

    async def queue_size(self) -> int:
        try:
            return int(await self.client.llen(self.frontier_key))
        except RedisError as e:
            raise StoreError(f"LLEN {self.frontier_key} failed: {e}") from e

    async def clear(self):
        try:
            await self.client.delete(self.frontier_key, self.visited_key)
        except RedisError as e:
            raise StoreError(f"Failed to clear crawl state: {e}") from e
        self.logger.info(f"Cleared Redis keys {self.frontier_key}, {self.visited_key}")

    async def close(self):
        if self.client is not None:
            await self.client.aclose()
            self.client = None
            self.logger.info("Redis connection closed")


class MemoryCrawlStore(CrawlStore):
    """In-process store for single-process crawls and tests."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.visited: Set[str] = set()
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger(__name__)

    async def initialize(self):
        self.logger.info("Using in-memory crawl store")

    async def push(self, payload: str):
        self.queue.put_nowait(payload)

    async def pop(self, timeout: float = 0) -> Optional[Payload]:
        if not timeout:
            return await self.queue.get()
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def add_visited(self, url: str) -> bool:
        async with self._lock:
            if url in self.visited:
                return False
            self.visited.add(url)
            return True

    async def visited_count(self) -> int:
        return len(self.visited)

    async def queue_size(self) -> int:
        return self.queue.qsize()

    async def clear(self):
        async with self._lock:
            self.visited.clear()
        while not self.queue.empty():
            self.queue.get_nowait()

    async def close(self):
        pass


def create_store(config: Config) -> CrawlStore:
    """Create the crawl store selected by the configuration."""
    if config.store == 'redis':
        return RedisCrawlStore(config.redis)
    if config.store == 'memory':
        return MemoryCrawlStore()
    raise ValueError(f"Unknown store type: {config.store}")
