"""
depthcrawl - depth-bounded web crawler with a shared Redis frontier.
"""

__version__ = "1.0.0"
