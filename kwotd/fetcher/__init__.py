"""KWOTD Notifier — Fetcher Package.

Bounded network read of the word-of-the-day feed.
"""

from kwotd.fetcher.client import FeedClient

__all__ = ["FeedClient"]
