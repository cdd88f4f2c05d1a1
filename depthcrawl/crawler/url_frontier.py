"""
URL frontier: the durable queue of crawl tasks waiting to be processed.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Optional, Union

from ..storage.backends import CrawlStore, StoreError


class MalformedTaskError(Exception):
    """Raised when a frontier payload cannot be decoded into a CrawlTask."""
    pass


@dataclass(frozen=True)
class CrawlTask:
    """A URL paired with its remaining depth budget."""
    url: str
    depth: int

    def child(self, url: str) -> 'CrawlTask':
        """Task for a link discovered on this page, one hop shallower."""
        return CrawlTask(url=url, depth=self.depth - 1)

    def to_json(self) -> str:
        """Serialize for the frontier."""
        return json.dumps({'url': self.url, 'depth': self.depth})

    @classmethod
    def from_json(cls, payload: Union[str, bytes]) -> 'CrawlTask':
        """Decode a frontier payload."""
        try:
            data = json.loads(payload)
        except (ValueError, TypeError) as e:
            raise MalformedTaskError(f"Invalid task payload {payload!r}: {e}") from e

        if not isinstance(data, dict):
            raise MalformedTaskError(f"Task payload is not an object: {payload!r}")

        url = data.get('url')
        depth = data.get('depth')
        if not isinstance(url, str) or not url:
            raise MalformedTaskError(f"Task payload has no url: {payload!r}")
        # bool is an int subclass
        if not isinstance(depth, int) or isinstance(depth, bool):
            raise MalformedTaskError(f"Task payload has no integer depth: {payload!r}")

        return cls(url=url, depth=depth)


class URLFrontier:
    """
    Queue of CrawlTasks on top of a CrawlStore.

    Pushes that hit a store error are retried with exponential backoff;
    once the attempts are used up the error is raised to the caller, which
    owns the pending-counter bookkeeping for the task.
    """

    def __init__(self, store: CrawlStore, retry_attempts: int = 3, retry_delay: float = 0.5):
        self.store = store
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.logger = logging.getLogger(__name__)

    async def push(self, task: CrawlTask):
        """Append task to the frontier, retrying store failures."""
        payload = task.to_json()
        delay = self.retry_delay

        for attempt in range(1, self.retry_attempts + 1):
            try:
                await self.store.push(payload)
                self.logger.debug(f"Queued [depth {task.depth}] {task.url}")
                return
            except StoreError as e:
                if attempt == self.retry_attempts:
                    self.logger.error(f"Giving up on push of {task.url} after {attempt} attempts: {e}")
                    raise
                self.logger.warning(f"Push of {task.url} failed (attempt {attempt}/{self.retry_attempts}), "
                                    f"retrying in {delay:.2f}s: {e}")
                await asyncio.sleep(delay)
                delay *= 2

    async def pop(self, timeout: float = 0) -> Optional[CrawlTask]:
        """
        Take the next task, blocking up to `timeout` seconds (0 = forever).

        Returns None on timeout. Raises MalformedTaskError for undecodable
        payloads and StoreError when the store is unreachable.
        """
        payload = await self.store.pop(timeout)
        if payload is None:
            return None
        return CrawlTask.from_json(payload)

    async def size(self) -> int:
        """Number of tasks waiting in the frontier."""
        return await self.store.queue_size()
