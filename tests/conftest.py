"""Shared fixtures and fakes for the crawler tests."""

import asyncio
from typing import Dict, Iterable, List, Optional

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from depthcrawl.utils.config import Config, CrawlerConfig
from depthcrawl.utils.monitoring import CrawlMonitor


@pytest.fixture
def config() -> Config:
    """In-memory configuration with short poll and retry intervals."""
    return Config(
        store='memory',
        crawler=CrawlerConfig(
            max_depth=2,
            workers=3,
            request_timeout=2,
            pop_timeout=0.05,
            pop_retry_delay=0.01,
            push_retry_attempts=2,
            push_retry_delay=0,
        ),
    )


@pytest.fixture
def monitor() -> CrawlMonitor:
    return CrawlMonitor()


class FakeExtractor:
    """Link extractor over an in-memory link graph."""

    def __init__(self, graph: Dict[str, Iterable[str]], errors: Optional[Dict[str, Exception]] = None):
        self.graph = graph
        self.errors = errors or {}
        self.calls: List[str] = []

    async def extract(self, url: str) -> List[str]:
        self.calls.append(url)
        await asyncio.sleep(0)
        if url in self.errors:
            raise self.errors[url]
        return list(self.graph.get(url, []))


def anchors(*hrefs: str) -> str:
    """Build an HTML page linking to each href."""
    links = ''.join(f'<a href="{href}">link</a>' for href in hrefs)
    return f'<html><body>{links}</body></html>'


async def start_site(pages: Dict[str, str], slow: Optional[Dict[str, float]] = None) -> TestServer:
    """Serve HTML pages from a local test server. Paths in `slow` sleep before answering."""
    slow = slow or {}

    async def handler(request: web.Request) -> web.Response:
        path = request.path
        if path in slow:
            await asyncio.sleep(slow[path])
        if path not in pages:
            raise web.HTTPNotFound()
        return web.Response(text=pages[path], content_type='text/html')

    app = web.Application()
    app.router.add_get('/{tail:.*}', handler)
    server = TestServer(app)
    await server.start_server()
    return server
