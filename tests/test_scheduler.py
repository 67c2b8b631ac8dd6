"""
Tests for the periodic synchronization scheduler.

Passes are driven with run_once(); the background thread is exercised
with a short interval and a fake synchronizer.
"""

import threading
from unittest.mock import MagicMock

import pytest

from podcast_feeds.errors import FetchError, StoreError
from podcast_feeds.ingestion.identity import derive_id
from podcast_feeds.sync.synchronizer import FeedSynchronizer
from podcast_feeds.triggers.scheduler import PassResult, SyncScheduler, TriggerState


URL_A = "https://a.example.com/feed.xml"
URL_B = "https://b.example.com/feed.xml"
URL_C = "https://c.example.com/feed.xml"


def _register(store, *urls):
    for url in urls:
        channel_id = derive_id(url)
        store.put({"_id": f"channels/{channel_id}", "id": channel_id, "url": url, "title": "", "description": ""})


class RecordingSynchronizer:
    """Records URLs and raises for those listed in ``failing``."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []
        self._lock = threading.Lock()
        self.called = threading.Event()

    def synchronize(self, url):
        with self._lock:
            self.calls.append(url)
        self.called.set()
        if url in self.failing:
            raise FetchError(url, "connection reset")


# ===================================================================
# Test 1: Single pass
# ===================================================================

class TestRunOnce:
    """Tests for SyncScheduler.run_once()."""

    def test_syncs_every_channel(self, store):
        _register(store, URL_A, URL_B, URL_C)
        sync = RecordingSynchronizer()

        result = SyncScheduler(sync, store).run_once()

        assert sorted(sync.calls) == sorted([URL_A, URL_B, URL_C])
        assert sorted(result.succeeded) == sorted([URL_A, URL_B, URL_C])
        assert result.failed == {}

    def test_failure_is_isolated(self, store):
        _register(store, URL_A, URL_B, URL_C)
        sync = RecordingSynchronizer(failing={URL_B})

        result = SyncScheduler(sync, store).run_once()

        assert sorted(result.succeeded) == sorted([URL_A, URL_C])
        assert list(result.failed) == [URL_B]
        assert "connection reset" in result.failed[URL_B]
        assert len(sync.calls) == 3

    def test_unexpected_exception_is_isolated(self, store):
        _register(store, URL_A, URL_B)
        def synchronize(url):
            if url == URL_A:
                raise RuntimeError("boom")

        sync = MagicMock()
        sync.synchronize.side_effect = synchronize

        result = SyncScheduler(sync, store).run_once()

        assert result.succeeded == [URL_B]
        assert result.failed == {URL_A: "boom"}

    def test_no_channels(self, store):
        sync = RecordingSynchronizer()
        result = SyncScheduler(sync, store).run_once()
        assert result.channel_count == 0
        assert sync.calls == []

    def test_items_are_not_enumerated_as_channels(self, store):
        _register(store, URL_A)
        store.put({"_id": "items/abc/def", "id": "def", "title": "Episode"})
        sync = RecordingSynchronizer()

        SyncScheduler(sync, store).run_once()

        assert sync.calls == [URL_A]

    def test_store_failure_is_reported(self, store):
        sync = RecordingSynchronizer()
        scheduler = SyncScheduler(sync, store)

        def broken_scan(prefix):
            raise StoreError("database is locked")

        store.prefix_scan = broken_scan
        result = scheduler.run_once()

        assert result.errors == ["database is locked"]
        assert scheduler.state.last_error == "database is locked"

    def test_state_records_runs(self, store):
        _register(store, URL_A, URL_B)
        scheduler = SyncScheduler(RecordingSynchronizer(failing={URL_A}), store)

        scheduler.run_once()
        scheduler.run_once()

        assert scheduler.state.run_count == 2
        assert scheduler.state.last_error == "1 channel(s) failed"
        assert scheduler.state.last_run is not None

    def test_real_synchronizer_pass(self, store, fetcher, rss, item):
        """A pass re-synchronizes stored channels from their URLs."""
        fetcher.feeds[URL_A] = rss(title="A", items=[item("G1")])
        synchronizer = FeedSynchronizer(store, fetcher=fetcher)
        synchronizer.synchronize(URL_A)
        _register(store, URL_B)

        fetcher.feeds[URL_A] = rss(title="A renamed", items=[item("G1")])
        result = SyncScheduler(synchronizer, store).run_once()

        assert result.succeeded == [URL_A]
        assert URL_B in result.failed
        assert store.get(f"channels/{derive_id(URL_A)}")["title"] == "A renamed"


# ===================================================================
# Test 2: Lifecycle
# ===================================================================

class TestLifecycle:
    """Tests for start()/stop()."""

    def test_start_with_immediate_run_and_stop(self, store):
        _register(store, URL_A)
        sync = RecordingSynchronizer()
        scheduler = SyncScheduler(sync, store, interval_seconds=3600)

        scheduler.start(run_immediately=True)
        assert sync.called.wait(5)
        scheduler.stop(timeout=5)

        assert not scheduler.running
        assert sync.calls == [URL_A]

    def test_interval_triggers_passes(self, store):
        _register(store, URL_A)
        sync = RecordingSynchronizer()
        scheduler = SyncScheduler(sync, store, interval_seconds=0.01)

        scheduler.start()
        assert sync.called.wait(5)
        scheduler.stop(timeout=5)

        assert len(sync.calls) >= 1

    def test_start_twice_raises(self, store):
        scheduler = SyncScheduler(RecordingSynchronizer(), store, interval_seconds=3600)
        scheduler.start()
        try:
            with pytest.raises(RuntimeError):
                scheduler.start()
        finally:
            scheduler.stop(timeout=5)

    def test_stop_without_start(self, store):
        scheduler = SyncScheduler(RecordingSynchronizer(), store)
        scheduler.stop()
        assert not scheduler.running


class TestResultTypes:
    def test_pass_result_to_dict(self):
        result = PassResult(succeeded=[URL_A], failed={URL_B: "timeout"})
        d = result.to_dict()
        assert d["channel_count"] == 2
        assert d["failed"] == {URL_B: "timeout"}

    def test_trigger_state_record_run(self):
        state = TriggerState(name="feed_sync")
        state.record_run(error="boom")
        assert state.run_count == 1
        assert state.last_error == "boom"
        state.record_run()
        assert state.last_error is None
