"""
Data models and document storage.

Provides Pydantic models for channels, items and enclosures, and the
SQLite-backed document store that persists them.
"""

from podcast_feeds.models.database import DocumentStore
from podcast_feeds.models.schema import create_all_tables, get_table_names, SCHEMA_SQL
from podcast_feeds.models.entities import (
    Channel,
    Enclosure,
    Item,
    NormalizedFeed,
    NormalizedItem,
)

__all__ = [
    "DocumentStore",
    "create_all_tables",
    "get_table_names",
    "SCHEMA_SQL",
    "Channel",
    "Enclosure",
    "Item",
    "NormalizedFeed",
    "NormalizedItem",
]
