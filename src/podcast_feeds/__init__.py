"""
Podcast Feed Aggregator

Periodically fetches remote RSS feeds, normalizes them into channel and
item records, and keeps them in a document store so the catalogue can be
listed and the episode media proxied.
"""

__version__ = "0.1.0"
__author__ = "Podcast Feeds Team"

from podcast_feeds.config import Config

__all__ = ["Config", "__version__"]
