"""
Error taxonomy for feed synchronization.

Feed-level errors (fetch, parse, malformed item) abort the whole
synchronization of one feed before anything is written. Store errors
are scoped to a single channel or item upsert; a conflict is the
store's optimistic-concurrency signal and is resolved by merging.
"""

from typing import Any, Dict, Optional


class FeedSyncError(Exception):
    """Base class for every error raised by the aggregator."""


class FetchError(FeedSyncError):
    """The feed could not be retrieved over the network."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Failed to fetch '{url}': {message}")


class ParseError(FeedSyncError):
    """The fetched bytes are not well-formed XML."""


class MalformedItemError(FeedSyncError):
    """A feed item has no usable GUID; the whole feed is rejected."""

    def __init__(self, index: int, message: str = "Could not find GUID of item."):
        self.index = index
        super().__init__(f"Item #{index}: {message}")


class StoreError(FeedSyncError):
    """Any document store failure other than a conflict or a missing key."""


class NotFoundError(StoreError):
    """No document is stored under the requested key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Document '{key}' not found")


class ConflictError(StoreError):
    """The key already exists or was modified since it was read."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Document update conflict on '{key}'")


class ItemSyncError(FeedSyncError):
    """
    One or more item upserts failed after every item was attempted.

    Attributes:
        channel_id: Channel whose items were being synchronized
        failures: Mapping of item store key to the error it raised
        result: The partial SyncResult for the items that did settle
    """

    def __init__(self, channel_id: str, failures: Dict[str, Exception], result: Any = None):
        self.channel_id = channel_id
        self.failures = failures
        self.result = result
        super().__init__(
            f"{len(failures)} item(s) of channel {channel_id} failed to synchronize"
        )
