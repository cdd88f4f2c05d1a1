"""
Visited set: the shared record of URLs already claimed by some worker.
"""

import logging

from .backends import CrawlStore, StoreError


class VisitedSet:
    """
    Atomic check-and-mark over the store's visited set.

    A URL is reported as new to at most one caller. When the store is
    unreachable every URL is reported as already seen, so a storage outage
    shrinks the crawl instead of re-queuing the same pages forever.
    """

    def __init__(self, store: CrawlStore):
        self.store = store
        self.logger = logging.getLogger(__name__)

    async def check_and_mark(self, url: str) -> bool:
        """Mark url as visited. Returns False if it was new, True if already seen."""
        try:
            added = await self.store.add_visited(url)
        except StoreError as e:
            self.logger.error(f"Visited set unavailable, treating {url} as visited: {e}")
            return True
        return not added

    async def count(self) -> int:
        """Number of unique URLs visited so far."""
        return await self.store.visited_count()
