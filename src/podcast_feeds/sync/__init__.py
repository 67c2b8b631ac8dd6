"""
Synchronization engine: merge resolution and per-feed orchestration.
"""

from podcast_feeds.sync.merge import (
    CHANNEL_MERGEABLE_FIELDS,
    ITEM_MERGEABLE_FIELDS,
    MergeResult,
    merge_fields,
)
from podcast_feeds.sync.synchronizer import FeedSynchronizer, SyncResult, UpsertOutcome

__all__ = [
    "CHANNEL_MERGEABLE_FIELDS",
    "ITEM_MERGEABLE_FIELDS",
    "MergeResult",
    "merge_fields",
    "FeedSynchronizer",
    "SyncResult",
    "UpsertOutcome",
]
