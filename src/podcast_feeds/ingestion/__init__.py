"""
Ingestion module for feed retrieval and normalization.

Provides identity derivation, HTTP fetching, XML tree parsing and the
RSS normalizer used by the synchronizer, plus enclosure media access.
"""

from podcast_feeds.ingestion.identity import derive_id
from podcast_feeds.ingestion.fetcher import FeedFetcher, fetch_feed
from podcast_feeds.ingestion.xml_tree import parse_xml
from podcast_feeds.ingestion.normalizer import normalize_feed

__all__ = ["derive_id", "FeedFetcher", "fetch_feed", "parse_xml", "normalize_feed"]
