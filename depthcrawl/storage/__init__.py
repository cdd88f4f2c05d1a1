"""
Storage layer for crawl state (frontier queue and visited set).
"""

from .backends import CrawlStore, MemoryCrawlStore, RedisCrawlStore, StoreError, create_store
from .visited_set import VisitedSet

__all__ = ['CrawlStore', 'MemoryCrawlStore', 'RedisCrawlStore', 'StoreError', 'create_store', 'VisitedSet']
