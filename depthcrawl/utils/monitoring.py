"""
Monitoring and metrics collection for the crawler.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict

from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server


@dataclass
class CrawlStats:
    """Statistics for one crawl run."""
    pages_crawled: int = 0
    links_enqueued: int = 0
    fetch_errors: int = 0
    parse_errors: int = 0
    skipped_visited: int = 0
    skipped_depth: int = 0
    malformed_tasks: int = 0
    dropped_tasks: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CrawlMonitor:
    """
    Records crawl events into run statistics and Prometheus metrics.

    Each monitor owns its registry so several crawls (or tests) in one
    process do not collide on metric names.
    """

    def __init__(self, enable_server: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.enable_server = enable_server
        self.prometheus_port = prometheus_port
        self.stats = CrawlStats()

        self.registry = CollectorRegistry()
        self.pages_crawled = Counter(
            'crawler_pages_crawled_total',
            'Pages fetched and parsed successfully',
            registry=self.registry
        )
        self.links_enqueued = Counter(
            'crawler_links_enqueued_total',
            'Child tasks pushed to the frontier',
            registry=self.registry
        )
        self.errors = Counter(
            'crawler_errors_total',
            'Task errors by type',
            ['error_type'],
            registry=self.registry
        )
        self.skipped = Counter(
            'crawler_tasks_skipped_total',
            'Tasks settled without fetching',
            ['reason'],
            registry=self.registry
        )
        self.pending_tasks = Gauge(
            'crawler_pending_tasks',
            'Tasks enqueued or in flight',
            registry=self.registry
        )
        self.active_workers = Gauge(
            'crawler_active_workers',
            'Workers currently processing a task',
            registry=self.registry
        )

    def start_server(self):
        """Start the Prometheus exposition server if enabled."""
        if not self.enable_server:
            return
        start_http_server(self.prometheus_port, registry=self.registry)
        self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")

    def reset(self):
        """Start a fresh statistics window for a new run."""
        self.stats = CrawlStats()

    def record_page_crawled(self):
        self.stats.pages_crawled += 1
        self.pages_crawled.inc()

    def record_link_enqueued(self):
        self.stats.links_enqueued += 1
        self.links_enqueued.inc()

    def record_error(self, error_type: str):
        """Record a task error: fetch, parse, malformed or push."""
        if error_type == 'fetch':
            self.stats.fetch_errors += 1
        elif error_type == 'parse':
            self.stats.parse_errors += 1
        elif error_type == 'malformed':
            self.stats.malformed_tasks += 1
        elif error_type == 'push':
            self.stats.dropped_tasks += 1
        self.errors.labels(error_type=error_type).inc()

    def record_skipped(self, reason: str):
        """Record a task settled without a fetch ('visited' or 'depth')."""
        if reason == 'visited':
            self.stats.skipped_visited += 1
        elif reason == 'depth':
            self.stats.skipped_depth += 1
        self.skipped.labels(reason=reason).inc()

    def set_pending(self, value: int):
        self.pending_tasks.set(value)

    def worker_busy(self):
        self.active_workers.inc()

    def worker_idle(self):
        self.active_workers.dec()
