"""
Crawl engine: frontier, workers, link extraction and completion detection.
"""

from .url_frontier import URLFrontier, CrawlTask, MalformedTaskError
from .fetcher import WebFetcher, FetchError, ExtractionError
from .parser import LinkParser, ParseError
from .link_extractor import LinkExtractor
from .pending import PendingCounter
from .worker import CrawlWorker
from .scheduler import CrawlerScheduler, CrawlSummary

__all__ = [
    'URLFrontier', 'CrawlTask', 'MalformedTaskError',
    'WebFetcher', 'FetchError', 'ExtractionError',
    'LinkParser', 'ParseError', 'LinkExtractor',
    'PendingCounter', 'CrawlWorker', 'CrawlerScheduler', 'CrawlSummary',
]
