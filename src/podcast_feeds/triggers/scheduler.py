"""
Periodic synchronization of every known channel.

Each pass enumerates the channel records in the store and synchronizes
all of their feeds concurrently. A failing channel is logged and counted
but never stops the others or the pass. The scheduler is an owned object:
``run_once()`` performs a single pass synchronously (what tests drive),
while ``start()``/``stop()`` manage a background thread that repeats the
pass every ``interval_seconds``.

Example:
    >>> scheduler = SyncScheduler(synchronizer, store, interval_seconds=3600)
    >>> scheduler.start(run_immediately=True)
    >>> ...
    >>> scheduler.stop()
"""

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from podcast_feeds.config import ONE_DAY_SECONDS
from podcast_feeds.errors import StoreError
from podcast_feeds.ingestion.identity import CHANNEL_PREFIX

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TriggerState:
    """
    Run-state of the periodic trigger.

    Attributes:
        name: Trigger identifier
        last_run: Timestamp of the most recent pass
        run_count: Number of passes performed
        last_error: Summary of failures in the most recent pass, if any
    """

    name: str
    last_run: Optional[datetime] = None
    run_count: int = 0
    last_error: Optional[str] = None

    def record_run(self, error: Optional[str] = None) -> None:
        """
        Record a pass.

        Args:
            error: Failure summary if anything failed, None for success
        """
        self.last_run = datetime.now(timezone.utc)
        self.run_count += 1
        self.last_error = error


@dataclass
class PassResult:
    """
    Result of one scheduled pass.

    Attributes:
        started_at: ISO-8601 start timestamp
        finished_at: ISO-8601 end timestamp
        succeeded: Feed URLs synchronized without error
        failed: Feed URL -> error message
        errors: Pass-level errors (e.g. channels could not be listed)
    """

    started_at: str = ""
    finished_at: str = ""
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def channel_count(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "channel_count": self.channel_count,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "errors": self.errors,
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


class SyncScheduler:
    """
    Runs a synchronization pass over all channels on a fixed interval.

    Args:
        synchronizer: Object with ``synchronize(url)``
        store: Document store holding the channel records
        interval_seconds: Seconds between passes (daily by default)
        max_workers: Cap on concurrent channel synchronizations; None
            means one worker per channel
    """

    def __init__(
        self,
        synchronizer,
        store,
        interval_seconds: float = ONE_DAY_SECONDS,
        max_workers: Optional[int] = None,
    ):
        self.synchronizer = synchronizer
        self.store = store
        self.interval_seconds = interval_seconds
        self.max_workers = max_workers
        self.state = TriggerState(name="feed_sync")
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def channel_urls(self) -> List[str]:
        """Source URLs of every channel in the store, in key order."""
        return [
            doc["url"]
            for doc in self.store.prefix_scan(CHANNEL_PREFIX)
            if doc.get("url")
        ]

    def run_once(self) -> PassResult:
        """
        Synchronize every known channel once, concurrently.

        Returns:
            PassResult; never raises for per-channel failures
        """
        result = PassResult(started_at=_now())

        try:
            urls = self.channel_urls()
        except StoreError as exc:
            logger.error("Error listing channels: %s", exc)
            result.errors.append(str(exc))
            result.finished_at = _now()
            self.state.record_run(error=str(exc))
            return result

        if urls:
            workers = self.max_workers or len(urls)
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="feed-sync") as pool:
                futures = {pool.submit(self.synchronizer.synchronize, url): url for url in urls}
                for future in as_completed(futures):
                    url = futures[future]
                    try:
                        future.result()
                    except Exception as exc:
                        logger.error("Error updating %s: %s", url, exc)
                        result.failed[url] = str(exc)
                    else:
                        result.succeeded.append(url)

        result.finished_at = _now()
        logger.info(
            "Sync pass finished: %d channel(s), %d failed",
            result.channel_count,
            len(result.failed),
        )

        error = f"{len(result.failed)} channel(s) failed" if result.failed else None
        self.state.record_run(error=error)
        return result

    def start(self, run_immediately: bool = False) -> None:
        """
        Start the background thread.

        Args:
            run_immediately: Run a pass now instead of after the first interval

        Raises:
            RuntimeError: If the scheduler is already running
        """
        if self.running:
            raise RuntimeError("Scheduler is already running")

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            args=(run_immediately,),
            name="sync-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("Scheduler started (interval %ss)", self.interval_seconds)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the background thread to stop and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Scheduler stopped")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until ``stop()`` is called; returns True once stopped."""
        return self._stop_event.wait(timeout)

    def _loop(self, run_immediately: bool) -> None:
        if run_immediately:
            self._safe_pass()
        while not self._stop_event.wait(self.interval_seconds):
            self._safe_pass()

    def _safe_pass(self) -> None:
        try:
            self.run_once()
        except Exception:
            logger.exception("Error updating feeds")
