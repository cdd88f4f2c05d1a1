"""
Crawl worker: drains the frontier and schedules discovered links.
"""

import asyncio

from ..storage.backends import StoreError
from ..storage.visited_set import VisitedSet
from ..utils.logger import get_crawler_logger
from ..utils.monitoring import CrawlMonitor
from .fetcher import FetchError
from .link_extractor import LinkExtractor
from .parser import ParseError
from .pending import PendingCounter
from .url_frontier import CrawlTask, MalformedTaskError, URLFrontier


class CrawlWorker:
    """
    Pulls tasks from the frontier until the stop event is set.

    Every task popped from the frontier is settled with exactly one
    decrement of the pending counter, whatever the outcome. Children of a
    task are counted before they are pushed, and the task's own decrement
    comes last.
    """

    def __init__(self, worker_id: str, frontier: URLFrontier, visited: VisitedSet,
                 extractor: LinkExtractor, pending: PendingCounter, monitor: CrawlMonitor,
                 stop_event: asyncio.Event, pop_timeout: float = 1.0, pop_retry_delay: float = 1.0):
        self.worker_id = worker_id
        self.frontier = frontier
        self.visited = visited
        self.extractor = extractor
        self.pending = pending
        self.monitor = monitor
        self.stop_event = stop_event
        self.pop_timeout = pop_timeout
        self.pop_retry_delay = pop_retry_delay
        self.logger = get_crawler_logger(__name__, worker=worker_id)

    async def run(self):
        """Worker loop."""
        self.logger.debug(f"Worker {self.worker_id} started")

        while not self.stop_event.is_set():
            try:
                task = await self.frontier.pop(self.pop_timeout)
            except MalformedTaskError as e:
                self.logger.error(f"Dropping malformed task: {e}")
                self.monitor.record_error('malformed')
                self.pending.decrement()
                continue
            except StoreError as e:
                # No task was taken, so the counter is untouched
                self.logger.error(f"Frontier error: {e}")
                await asyncio.sleep(self.pop_retry_delay)
                continue

            if task is None:
                continue

            self.monitor.worker_busy()
            try:
                await self.process(task)
            except Exception as e:
                self.logger.error(f"Unexpected error processing {task.url}: {e}", exc_info=True)
                self.monitor.record_error('unexpected')
            finally:
                self.monitor.worker_idle()
                self.pending.decrement()

        self.logger.debug(f"Worker {self.worker_id} stopped")

    async def process(self, task: CrawlTask):
        """Visit one task and queue its children. Does not settle the task itself."""
        if task.depth <= 0:
            self.monitor.record_skipped('depth')
            return

        if await self.visited.check_and_mark(task.url):
            self.monitor.record_skipped('visited')
            return

        self.logger.info(f"[Depth {task.depth}] Crawling: {task.url}", extra={'url': task.url, 'depth': task.depth})

        try:
            links = await self.extractor.extract(task.url)
        except FetchError as e:
            self.logger.warning(f"Fetch failed: {e}")
            self.monitor.record_error('fetch')
            return
        except ParseError as e:
            self.logger.warning(f"Parse failed: {e}")
            self.monitor.record_error('parse')
            return

        self.monitor.record_page_crawled()

        for link in links:
            await self._schedule(task.child(link))

    async def _schedule(self, child: CrawlTask):
        self.pending.increment()
        try:
            await self.frontier.push(child)
        except StoreError as e:
            self.pending.decrement()
            self.monitor.record_error('push')
            self.logger.error(f"Dropped {child.url}: {e}")
        else:
            self.monitor.record_link_enqueued()
