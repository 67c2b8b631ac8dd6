"""
Feed synchronization.

Drives one full synchronization of one feed:

    fetch -> parse -> normalize -> upsert channel -> upsert every item

Fetch, parse and normalization failures abort before anything is
written. Upserts are create-first: when the store reports a conflict the
existing record is read, merged, and written back only if a mergeable
field changed, so re-synchronizing an unchanged feed performs no writes.
Item upserts run concurrently and independently; item failures are
collected and raised together once every item has settled.

Example:
    >>> store = DocumentStore(config.db_path)
    >>> store.initialize()
    >>> synchronizer = FeedSynchronizer.from_config(config, store)
    >>> result = synchronizer.synchronize("https://rss.art19.com/talking-machines")
    >>> print(result.to_json())
"""

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from podcast_feeds.errors import ConflictError, ItemSyncError
from podcast_feeds.ingestion.fetcher import FeedFetcher
from podcast_feeds.ingestion.normalizer import normalize_feed
from podcast_feeds.ingestion.xml_tree import parse_xml
from podcast_feeds.models.entities import Channel, Item, NormalizedFeed
from podcast_feeds.sync.merge import (
    CHANNEL_MERGEABLE_FIELDS,
    ITEM_MERGEABLE_FIELDS,
    merge_fields,
)

logger = logging.getLogger(__name__)


class UpsertOutcome(str, Enum):
    """What an upsert did to the store."""
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class SyncResult:
    """
    Result of synchronizing one feed.

    Attributes:
        url: Feed URL
        channel_id: Derived channel id
        channel_outcome: What happened to the channel record
        items_created: Items written for the first time
        items_updated: Existing items rewritten with changed fields
        items_unchanged: Existing items left untouched
        items_failed: Items whose upsert raised
        errors: One message per failed item
        synced_at: ISO-8601 timestamp of when the pass finished
    """

    url: str
    channel_id: str
    channel_outcome: Optional[UpsertOutcome] = None
    items_created: int = 0
    items_updated: int = 0
    items_unchanged: int = 0
    items_failed: int = 0
    errors: List[str] = field(default_factory=list)
    synced_at: str = ""

    @property
    def writes(self) -> int:
        """Number of store writes performed by the pass."""
        channel_writes = 0 if self.channel_outcome in (None, UpsertOutcome.UNCHANGED) else 1
        return channel_writes + self.items_created + self.items_updated

    def record_item(self, outcome: UpsertOutcome) -> None:
        if outcome is UpsertOutcome.CREATED:
            self.items_created += 1
        elif outcome is UpsertOutcome.UPDATED:
            self.items_updated += 1
        else:
            self.items_unchanged += 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "url": self.url,
            "channel_id": self.channel_id,
            "channel_outcome": self.channel_outcome.value if self.channel_outcome else None,
            "items_created": self.items_created,
            "items_updated": self.items_updated,
            "items_unchanged": self.items_unchanged,
            "items_failed": self.items_failed,
            "writes": self.writes,
            "errors": self.errors,
            "synced_at": self.synced_at,
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


class KeyedLock:
    """One mutex per key, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    @contextmanager
    def hold(self, key: str):
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            yield


class FeedSynchronizer:
    """
    Synchronizes feeds into a document store.

    The fetch, parse and normalize steps are injectable callables, which
    keeps the network out of tests. Synchronizations of the same channel
    in this process are serialized; different channels run freely.

    Args:
        store: Document store (``get``/``put`` with conflict signaling)
        fetcher: ``url -> bytes``; defaults to a FeedFetcher
        parser: ``bytes -> tree``; defaults to ``parse_xml``
        normalizer: ``tree -> NormalizedFeed``; defaults to ``normalize_feed``
        item_workers: Maximum concurrent item upserts per feed
    """

    def __init__(
        self,
        store,
        fetcher: Optional[Callable[[str], bytes]] = None,
        parser: Callable[[bytes], Dict[str, Any]] = parse_xml,
        normalizer: Callable[[Dict[str, Any]], NormalizedFeed] = normalize_feed,
        item_workers: int = 8,
    ):
        self.store = store
        self.fetcher = fetcher or FeedFetcher()
        self.parser = parser
        self.normalizer = normalizer
        self.item_workers = max(1, item_workers)
        self._channel_locks = KeyedLock()

    @classmethod
    def from_config(cls, config, store) -> "FeedSynchronizer":
        """Build a synchronizer using the fetch and worker settings of ``config``."""
        return cls(
            store,
            fetcher=FeedFetcher(timeout=config.fetch_timeout, user_agent=config.user_agent),
            item_workers=config.item_workers,
        )

    def synchronize(self, url: str) -> SyncResult:
        """
        Run one full synchronization of the feed at ``url``.

        Args:
            url: Feed URL; the channel id is derived from it

        Returns:
            SyncResult with per-record outcomes

        Raises:
            FetchError: Feed could not be retrieved (nothing written)
            ParseError: Feed is not well-formed XML or has no channel
            MalformedItemError: An item has no GUID (nothing written)
            StoreError: The channel record could not be stored
            ItemSyncError: One or more items failed; the others were
                still attempted and their outcomes are on ``.result``
        """
        raw = self.fetcher(url)
        tree = self.parser(raw)
        feed = self.normalizer(tree)

        channel = Channel.from_feed(url, feed)
        result = SyncResult(url=url, channel_id=channel.id)

        with self._channel_locks.hold(channel.id):
            result.channel_outcome = self.upsert(channel.to_document(), CHANNEL_MERGEABLE_FIELDS)
            logger.info("Channel %s (%s): %s", channel.id[:12], url, result.channel_outcome.value)

            items = [Item.from_normalized(channel.id, entry) for entry in feed.items]
            failures = self._upsert_items(items, result)

        result.synced_at = datetime.now(timezone.utc).isoformat()
        logger.info(
            "Synchronized %s: %d created, %d updated, %d unchanged, %d failed",
            url,
            result.items_created,
            result.items_updated,
            result.items_unchanged,
            result.items_failed,
        )

        if failures:
            raise ItemSyncError(channel.id, failures, result)
        return result

    def upsert(self, doc: Dict[str, Any], mergeable_fields: Iterable[str]) -> UpsertOutcome:
        """
        Create a record, or merge it into the stored one on conflict.

        The read-merge-write runs once; a second conflict while writing
        the merged record propagates.

        Args:
            doc: New document including ``_id``
            mergeable_fields: Fields that may be overwritten on merge

        Returns:
            UpsertOutcome
        """
        try:
            self.store.put(doc)
            return UpsertOutcome.CREATED
        except ConflictError:
            logger.debug("%s exists, merging", doc["_id"])

        existing = self.store.get(doc["_id"])
        merge = merge_fields(existing, doc, mergeable_fields)
        if not merge.changed:
            return UpsertOutcome.UNCHANGED

        self.store.put(merge.merged)
        return UpsertOutcome.UPDATED

    def _upsert_items(self, items: List[Item], result: SyncResult) -> Dict[str, Exception]:
        failures: Dict[str, Exception] = {}
        if not items:
            return failures

        workers = min(self.item_workers, len(items))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="item-upsert") as pool:
            futures = {
                pool.submit(self.upsert, item.to_document(), ITEM_MERGEABLE_FIELDS): item
                for item in items
            }
            for future in as_completed(futures):
                item = futures[future]
                try:
                    outcome = future.result()
                except Exception as exc:
                    failures[item.key] = exc
                    result.items_failed += 1
                    result.errors.append(f"{item.key}: {exc}")
                    logger.error("Failed to upsert item %s: %s", item.key, exc)
                    continue

                result.record_item(outcome)
                logger.debug("Item %s: %s", item.key, outcome.value)

        return failures
