"""
Shared test fixtures.

Provides pytest fixtures for common test resources including:
- Temporary configuration and document store
- A store that records writes and can fail chosen keys
- An RSS document builder
- An in-memory feed fetcher (no network)
"""

import threading
from pathlib import Path
from typing import Dict, List, Optional, Set
from xml.sax.saxutils import escape, quoteattr

import pytest

from podcast_feeds.config import Config
from podcast_feeds.errors import FetchError, StoreError
from podcast_feeds.models.database import DocumentStore


class RecordingStore(DocumentStore):
    """DocumentStore that records every successful put and can fail chosen keys."""

    def __init__(self, db_path: Path):
        super().__init__(db_path)
        self.writes: List[str] = []
        self.fail_keys: Set[str] = set()
        self._lock = threading.Lock()

    def put(self, doc):
        if doc.get("_id") in self.fail_keys:
            raise StoreError(f"disk full while writing {doc['_id']}")
        rev = super().put(doc)
        with self._lock:
            self.writes.append(doc["_id"])
        return rev

    def reset_writes(self) -> None:
        with self._lock:
            self.writes = []


class FakeFetcher:
    """Serves feed bytes from a dict; unknown URLs raise FetchError."""

    def __init__(self):
        self.feeds: Dict[str, bytes] = {}
        self.calls: List[str] = []

    def __call__(self, url: str) -> bytes:
        self.calls.append(url)
        if url not in self.feeds:
            raise FetchError(url, "connection refused")
        return self.feeds[url]


def build_rss(
    title: str = "Talking Machines",
    description: str = "Conversations about machine learning.",
    items: Optional[List[dict]] = None,
    image: Optional[str] = None,
) -> bytes:
    """
    Build an RSS 2.0 document.

    Each item dict may contain ``guid``, ``title``, ``pub_date`` and
    ``enclosure`` (a dict of attributes, or None for no enclosure).
    ``image`` adds an ``<image><url>`` element to the channel.
    """
    item_xml = []
    for item in items or []:
        parts = []
        if "guid" in item:
            parts.append(f"<guid isPermaLink=\"false\">{escape(item['guid'])}</guid>")
        if item.get("title") is not None:
            parts.append(f"<title>{escape(item['title'])}</title>")
        if item.get("pub_date") is not None:
            parts.append(f"<pubDate>{escape(item['pub_date'])}</pubDate>")
        enclosure = item.get("enclosure")
        if enclosure is not None:
            attrs = " ".join(f"{k}={quoteattr(v)}" for k, v in enclosure.items())
            parts.append(f"<enclosure {attrs}/>")
        item_xml.append(f"<item>{''.join(parts)}</item>")

    image_xml = f"<image><url>{escape(image)}</url></image>" if image else ""

    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<rss version="2.0" xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd">'
        "<channel>"
        f"<title>{escape(title)}</title>"
        f"<description>{escape(description)}</description>"
        f"{image_xml}"
        f"{''.join(item_xml)}"
        "</channel></rss>"
    ).encode("utf-8")


def make_item(guid: str, title: str = None, **overrides) -> dict:
    """Item dict for build_rss with an mp3 enclosure by default."""
    item = {
        "guid": guid,
        "title": title if title is not None else f"Episode {guid}",
        "pub_date": "Mon, 01 Jan 2024 12:00:00 GMT",
        "enclosure": {
            "url": f"https://cdn.example.com/{guid}.mp3",
            "type": "audio/mpeg",
            "length": "52428800",
        },
    }
    item.update(overrides)
    return item


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """
    Temporary directory for test files.

    Returns:
        Path: Temporary directory path
    """
    return tmp_path


@pytest.fixture
def test_config(temp_dir: Path) -> Config:
    """
    Configuration pointing at temporary paths.

    Args:
        temp_dir: Temporary directory fixture

    Returns:
        Config: Test configuration
    """
    return Config(
        db_path=temp_dir / "db" / "test.db",
        fetch_timeout=5,
        sync_interval_seconds=60,
        item_workers=4,
    )


@pytest.fixture
def store(test_config: Config) -> RecordingStore:
    """
    Initialized document store that records writes.

    Returns:
        RecordingStore: Empty store
    """
    db = RecordingStore(test_config.db_path)
    db.initialize()
    return db


@pytest.fixture
def fetcher() -> FakeFetcher:
    """In-memory fetcher; populate ``fetcher.feeds[url] = bytes``."""
    return FakeFetcher()


@pytest.fixture
def rss():
    """The build_rss helper."""
    return build_rss


@pytest.fixture
def item():
    """The make_item helper."""
    return make_item
