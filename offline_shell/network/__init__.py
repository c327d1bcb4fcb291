"""
Network Layer.

This package performs the actual HTTP requests on behalf of the strategies.
"""

from .fetcher import HttpFetcher

__all__ = ["HttpFetcher"]
