"""
Trigger system for periodic feed synchronization.

Provides the scheduler that re-synchronizes every known channel on a
fixed interval (daily by default).

Configuration via podcast.yaml:
    sync:
      interval_seconds: 86400
      item_workers: 8
"""

from podcast_feeds.triggers.scheduler import PassResult, SyncScheduler, TriggerState

__all__ = [
    "PassResult",
    "SyncScheduler",
    "TriggerState",
]
