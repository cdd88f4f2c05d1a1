"""
HTML link parser.
"""

import logging
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .fetcher import ExtractionError


MAX_LINKS_PER_PAGE = 10


class ParseError(ExtractionError):
    """Raised when page content cannot be parsed into a node tree."""
    pass


def resolve_url(base_url: str, href: str) -> Optional[str]:
    """Resolve href against base_url. Returns None if it cannot be resolved."""
    try:
        return urljoin(base_url, href.strip())
    except ValueError:
        return None


class LinkParser:
    """
    Extracts anchor targets from an HTML document.

    The node tree is walked with an explicit stack rather than recursion so
    deeply nested documents cannot exhaust the interpreter stack. Children
    are pushed in document order and popped last-first, so links are not
    returned in document order. Extraction stops once `max_links` links are
    collected; the result is a bounded sample, not the page's full link set.
    """

    def __init__(self, max_links: int = MAX_LINKS_PER_PAGE, features: str = 'lxml'):
        self.max_links = max_links
        self.features = features
        self.logger = logging.getLogger(__name__)

    def parse_tree(self, url: str, html_content: str) -> BeautifulSoup:
        """Parse markup into a node tree."""
        try:
            return BeautifulSoup(html_content, self.features)
        except Exception as e:
            raise ParseError(url, f"cannot parse content: {e}") from e

    def extract(self, base_url: str, html_content: str) -> List[str]:
        """Return up to max_links absolute URLs found in anchors of the page."""
        soup = self.parse_tree(base_url, html_content)
        return self.extract_from_tree(base_url, soup)

    def extract_from_tree(self, base_url: str, root: Tag) -> List[str]:
        links: List[str] = []
        stack = [root]

        while stack:
            node = stack.pop()

            if not isinstance(node, Tag):
                continue

            if node.name == 'a':
                href = node.get('href')
                if isinstance(href, str):
                    resolved = resolve_url(base_url, href)
                    if resolved:
                        links.append(resolved)
                        if len(links) >= self.max_links:
                            break

            stack.extend(node.contents)

        self.logger.debug(f"Extracted {len(links)} links from {base_url}")
        return links
