"""
Catalogue queries and channel registration.

The read side lists and fetches channel and item records from the store;
the write side registers a feed by synchronizing it once. Responses are
plain dicts shaped for an HTTP or CLI front end: ``{"ok": True, ...}``
on success and ``{"error": "..."}`` on failure. Store-internal fields
(``_id``, ``_rev``) never leave this module.
"""

import logging
from typing import Any, Dict, List

from podcast_feeds.errors import FeedSyncError, ItemSyncError
from podcast_feeds.ingestion.identity import (
    CHANNEL_PREFIX,
    channel_key,
    derive_id,
    item_key,
    items_prefix,
)

logger = logging.getLogger(__name__)


def strip_internal_keys(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Drop store bookkeeping fields (those starting with ``_``)."""
    return {k: v for k, v in doc.items() if not k.startswith("_")}


class Catalogue:
    """
    Catalogue operations over a document store.

    Args:
        store: Document store with ``get`` and ``prefix_scan``
        synchronizer: FeedSynchronizer used by ``add_channel``
    """

    def __init__(self, store, synchronizer=None):
        self.store = store
        self.synchronizer = synchronizer

    def list_channels(self) -> List[Dict[str, Any]]:
        docs = self.store.prefix_scan(CHANNEL_PREFIX)
        logger.info("Got %d channels", len(docs))
        return [strip_internal_keys(doc) for doc in docs]

    def get_channel(self, channel_id: str) -> Dict[str, Any]:
        return strip_internal_keys(self.store.get(channel_key(channel_id)))

    def list_items(self, channel_id: str) -> List[Dict[str, Any]]:
        docs = self.store.prefix_scan(items_prefix(channel_id))
        logger.info("Got %d items for channel '%s'", len(docs), channel_id)
        return [strip_internal_keys(doc) for doc in docs]

    def get_item(self, channel_id: str, item_id: str) -> Dict[str, Any]:
        return strip_internal_keys(self.store.get(item_key(channel_id, item_id)))

    def add_channel(self, url: str) -> Dict[str, Any]:
        """
        Register a feed by synchronizing it once.

        Args:
            url: Feed URL

        Returns:
            ``{"ok": True, "id": <channel id>, "result": {...}}`` or
            ``{"error": <message>}``
        """
        if not url or not url.strip():
            return {"error": "A feed URL is required"}
        if self.synchronizer is None:
            raise RuntimeError("Catalogue has no synchronizer; cannot add channels")

        url = url.strip()
        logger.info("Adding channel at URL '%s'", url)
        try:
            result = self.synchronizer.synchronize(url)
        except ItemSyncError as exc:
            logger.error("Channel at URL '%s' added with failures: %s", url, exc)
            payload: Dict[str, Any] = {"error": str(exc), "id": exc.channel_id}
            if exc.result is not None:
                payload["result"] = exc.result.to_dict()
            return payload
        except FeedSyncError as exc:
            logger.error("Could not add channel at URL '%s': %s", url, exc)
            return {"error": str(exc)}

        logger.info("Channel at URL '%s' added", url)
        return {"ok": True, "id": derive_id(url), "result": result.to_dict()}

    def respond(self, operation: str, *args: str) -> Dict[str, Any]:
        """
        Run a read operation and wrap it in a response payload.

        Example:
            >>> catalogue.respond("list_items", channel_id)
            {'ok': True, 'items': [...]}
        """
        payload_keys = {
            "list_channels": "channels",
            "get_channel": "channel",
            "list_items": "items",
            "get_item": "item",
        }
        if operation not in payload_keys:
            raise ValueError(f"Unknown catalogue operation '{operation}'")

        try:
            data = getattr(self, operation)(*args)
        except FeedSyncError as exc:
            logger.error("%s failed: %s", operation, exc)
            return {"error": str(exc)}
        return {"ok": True, payload_keys[operation]: data}
