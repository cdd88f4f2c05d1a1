"""
Crawler scheduler that seeds the frontier, runs the worker pool and detects completion.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..storage.backends import CrawlStore, StoreError, create_store
from ..storage.visited_set import VisitedSet
from ..utils.config import Config
from ..utils.monitoring import CrawlMonitor
from .fetcher import WebFetcher
from .link_extractor import LinkExtractor
from .parser import LinkParser
from .pending import PendingCounter
from .url_frontier import CrawlTask, URLFrontier
from .worker import CrawlWorker


@dataclass
class CrawlSummary:
    """Outcome of a finished crawl."""
    seed_url: str
    max_depth: int
    workers: int
    elapsed: float
    visited_count: Optional[int]
    stats: Dict[str, Any] = field(default_factory=dict)


class CrawlerScheduler:
    """
    Coordinates a crawl: store, frontier, visited set, fetcher and workers.

    Completion is detected through a PendingCounter rather than by watching
    the queue, since an empty queue says nothing about workers that are
    still about to push more links. The counter is local to this process,
    so one scheduler at a time may drive a given pair of store keys.
    """

    def __init__(self, config: Config, store: Optional[CrawlStore] = None,
                 fetcher: Optional[WebFetcher] = None, monitor: Optional[CrawlMonitor] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.store = store
        self.fetcher = fetcher
        self.monitor = monitor or CrawlMonitor(
            enable_server=config.monitoring.metrics_enabled,
            prometheus_port=config.monitoring.prometheus_port
        )

        self.frontier: Optional[URLFrontier] = None
        self.visited: Optional[VisitedSet] = None
        self.extractor: Optional[LinkExtractor] = None
        self._initialized = False

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        """Connect the store and open the HTTP session."""
        if self._initialized:
            return

        crawler_config = self.config.crawler

        if self.store is None:
            self.store = create_store(self.config)
        await self.store.initialize()

        if self.fetcher is None:
            self.fetcher = WebFetcher(
                user_agent=crawler_config.user_agent,
                request_timeout=crawler_config.request_timeout
            )
        await self.fetcher.start()

        self.frontier = URLFrontier(
            self.store,
            retry_attempts=crawler_config.push_retry_attempts,
            retry_delay=crawler_config.push_retry_delay
        )
        self.visited = VisitedSet(self.store)
        self.extractor = LinkExtractor(self.fetcher, LinkParser(max_links=crawler_config.max_links_per_page))

        self.monitor.start_server()
        self._initialized = True
        self.logger.info("Crawler scheduler initialized")

    async def run(self, seed_url: str, max_depth: Optional[int] = None,
                  worker_count: Optional[int] = None) -> CrawlSummary:
        """
        Crawl from seed_url until no work remains.

        Args:
            seed_url: Address of the first page
            max_depth: Depth budget of the seed task (defaults to config)
            worker_count: Number of concurrent workers (defaults to config)

        Returns:
            CrawlSummary with elapsed time and visited-set cardinality

        Raises:
            ValueError: invalid arguments, raised before any work starts
            StoreError: the frontier could not be read or the seed task could not be queued
        """
        if max_depth is None:
            max_depth = self.config.crawler.max_depth
        if worker_count is None:
            worker_count = self.config.crawler.workers

        if not seed_url:
            raise ValueError("seed_url is required")
        if max_depth <= 0:
            raise ValueError("max_depth must be greater than 0")
        if worker_count <= 0:
            raise ValueError("worker_count must be greater than 0")

        await self.initialize()

        if self.config.crawler.reset_state:
            await self.store.clear()

        self.monitor.reset()
        pending = PendingCounter(on_change=self.monitor.set_pending)
        stop_event = asyncio.Event()
        start_time = time.time()

        watcher = asyncio.create_task(pending.wait_for_zero())

        # Entries left in the frontier by an earlier run are popped and
        # settled by this run's workers, so they must be counted up front.
        try:
            leftover = await self.frontier.size()
        except StoreError:
            watcher.cancel()
            raise
        if leftover:
            self.logger.info(f"Resuming with {leftover} tasks already in the frontier")

        pending.increment(leftover + 1)
        try:
            await self.frontier.push(CrawlTask(url=seed_url, depth=max_depth))
        except StoreError:
            pending.decrement(leftover + 1)
            watcher.cancel()
            raise

        workers = self._start_workers(worker_count, pending, stop_event)
        self.logger.info(f"Started crawling {seed_url} with {worker_count} workers (max depth {max_depth})")

        try:
            await watcher
        finally:
            stop_event.set()
            await self._stop_workers(workers)

        elapsed = time.time() - start_time
        try:
            visited_count = await self.visited.count()
        except StoreError as e:
            self.logger.error(f"Could not read visited count: {e}")
            visited_count = None

        summary = CrawlSummary(
            seed_url=seed_url,
            max_depth=max_depth,
            workers=worker_count,
            elapsed=elapsed,
            visited_count=visited_count,
            stats=self.monitor.stats.to_dict()
        )
        self._log_summary(summary)
        return summary

    def _start_workers(self, worker_count: int, pending: PendingCounter,
                       stop_event: asyncio.Event) -> List[asyncio.Task]:
        crawler_config = self.config.crawler
        workers = []
        for i in range(worker_count):
            worker = CrawlWorker(
                worker_id=f"worker-{i}",
                frontier=self.frontier,
                visited=self.visited,
                extractor=self.extractor,
                pending=pending,
                monitor=self.monitor,
                stop_event=stop_event,
                pop_timeout=crawler_config.pop_timeout,
                pop_retry_delay=crawler_config.pop_retry_delay
            )
            workers.append(asyncio.create_task(worker.run(), name=worker.worker_id))
        return workers

    async def _stop_workers(self, workers: List[asyncio.Task]):
        """Give workers one poll interval to notice the stop event, then cancel the rest."""
        grace = self.config.crawler.pop_timeout + 1.0 if self.config.crawler.pop_timeout else 0
        if grace:
            _, still_running = await asyncio.wait(workers, timeout=grace)
        else:
            still_running = [w for w in workers if not w.done()]

        for worker in still_running:
            worker.cancel()

        results = await asyncio.gather(*workers, return_exceptions=True)
        for worker, result in zip(workers, results):
            if isinstance(result, Exception):
                self.logger.error(f"{worker.get_name()} exited with error: {result}")

        self.logger.debug(f"Stopped {len(workers)} workers ({len(still_running)} cancelled)")

    def _log_summary(self, summary: CrawlSummary):
        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Duration: {summary.elapsed:.2f}s")
        self.logger.info(f"Unique Pages Found: {summary.visited_count}")
        self.logger.info(
            f"Crawled={summary.stats.get('pages_crawled', 0)}, "
            f"Enqueued={summary.stats.get('links_enqueued', 0)}, "
            f"FetchErrors={summary.stats.get('fetch_errors', 0)}, "
            f"ParseErrors={summary.stats.get('parse_errors', 0)}, "
            f"Dropped={summary.stats.get('dropped_tasks', 0)}"
        )

    async def close(self):
        """Close the HTTP session and the store connection."""
        if self.fetcher:
            await self.fetcher.close()
        if self.store:
            await self.store.close()
        self._initialized = False
        self.logger.info("Crawler scheduler closed")
