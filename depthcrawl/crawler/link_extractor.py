"""
Link extraction: fetch a page and return the links it points to.
"""

from typing import List

from .fetcher import WebFetcher
from .parser import LinkParser


class LinkExtractor:
    """Fetches a page and parses a bounded list of absolute links out of it."""

    def __init__(self, fetcher: WebFetcher, parser: LinkParser):
        self.fetcher = fetcher
        self.parser = parser

    async def extract(self, url: str) -> List[str]:
        """
        Raises FetchError or ParseError (both ExtractionError) when the page
        cannot be turned into links.
        """
        html_content = await self.fetcher.fetch(url)
        return self.parser.extract(url, html_content)
