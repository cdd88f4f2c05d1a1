#!/usr/bin/env python3
"""
Main entry point for the crawler.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from depthcrawl import __version__
from depthcrawl.crawler.scheduler import CrawlerScheduler, CrawlSummary
from depthcrawl.storage.backends import StoreError
from depthcrawl.utils.config import Config, load_config, parse_redis_addr
from depthcrawl.utils.logger import setup_logging


class CrawlerApp:
    """Main application class for the crawler."""

    def __init__(self, config: Config):
        self.config = config
        self.scheduler: Optional[CrawlerScheduler] = None
        self.logger = logging.getLogger(__name__)
        self._shutdown_event = asyncio.Event()

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._shutdown_event.set)
            except NotImplementedError:
                # add_signal_handler is unavailable on Windows event loops
                pass

    async def run(self, seed_url: str) -> int:
        """Run one crawl and return the process exit code."""
        self.setup_signal_handlers()
        self.scheduler = CrawlerScheduler(self.config)

        try:
            await self.scheduler.initialize()

            crawl_task = asyncio.create_task(self.scheduler.run(seed_url))
            shutdown_task = asyncio.create_task(self._shutdown_event.wait())

            done, pending = await asyncio.wait(
                [crawl_task, shutdown_task],
                return_when=asyncio.FIRST_COMPLETED
            )

            for task in pending:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

            if crawl_task not in done:
                self.logger.info("Shutdown requested, crawl interrupted")
                return 130

            self.print_summary(crawl_task.result())
            return 0

        except StoreError as e:
            self.logger.error(f"Crawl store error: {e}")
            return 1

        finally:
            await self.scheduler.close()

    @staticmethod
    def print_summary(summary: CrawlSummary):
        print("\n--- Crawl Complete ---")
        print(f"Duration: {summary.elapsed:.3f}s")
        print(f"Unique Pages Found: {summary.visited_count if summary.visited_count is not None else 'unknown'}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Depth-bounded web crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --url https://example.com
  python main.py --url https://example.com --depth 2 --workers 20
  python main.py --url https://example.com --redis-addr redis:6379
  python main.py --url https://example.com --store memory
        """
    )

    parser.add_argument('--url', default='', help='Seed URL to start crawling (required)')
    parser.add_argument('--depth', type=int, help='Maximum crawl depth (default: 3)')
    parser.add_argument('--workers', type=int, help='Number of concurrent workers (default: 10)')
    parser.add_argument('--redis-addr', help='Redis server address (default: localhost:6379)')
    parser.add_argument('--config', help='Optional YAML configuration file')
    parser.add_argument('--store', choices=['redis', 'memory'], help='Crawl state backend (default: redis)')
    parser.add_argument('--keep-state', action='store_true',
                        help='Do not clear the frontier and visited set before crawling')
    parser.add_argument('--json-logs', action='store_true', help='Emit logs as JSON')
    parser.add_argument('--version', action='version', version=f'depthcrawl {__version__}')
    return parser


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Apply command-line flags on top of the loaded configuration."""
    if args.depth is not None:
        config.crawler.max_depth = args.depth
    if args.workers is not None:
        config.crawler.workers = args.workers
    if args.redis_addr:
        config.redis.host, config.redis.port = parse_redis_addr(args.redis_addr)
    if args.store:
        config.store = args.store
    if args.keep_state:
        config.crawler.reset_state = False
    return config


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.url:
        print("Error: --url flag is required")
        parser.print_usage()
        return 2

    try:
        config = apply_overrides(load_config(args.config), args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return 2

    if config.crawler.max_depth <= 0:
        print("Error: --depth must be greater than 0")
        parser.print_usage()
        return 2

    if config.crawler.workers <= 0:
        print("Error: --workers must be greater than 0")
        parser.print_usage()
        return 2

    setup_logging(config.logging, enable_json=args.json_logs)

    print("Starting crawler...")
    print(f"URL: {args.url}")
    print(f"Max Depth: {config.crawler.max_depth}")
    print(f"Workers: {config.crawler.workers}")
    if config.store == 'redis':
        print(f"Redis: {config.redis.host}:{config.redis.port}\n")
    else:
        print(f"Store: {config.store}\n")

    try:
        return asyncio.run(CrawlerApp(config).run(args.url))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130


if __name__ == '__main__':
    sys.exit(main())
