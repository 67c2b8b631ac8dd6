"""
Tests for feed fetching.

requests is never allowed to reach the network: the session is a mock.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from podcast_feeds.errors import FetchError
from podcast_feeds.ingestion.fetcher import FeedFetcher, fetch_feed


def _response(status=200, content=b"<rss/>", url="https://example.com/feed", history=None):
    response = MagicMock()
    response.status_code = status
    response.content = content
    response.url = url
    response.history = history or []
    return response


class TestFeedFetcher:
    """Tests for FeedFetcher.fetch()."""

    def test_returns_body(self):
        session = MagicMock()
        session.headers = {}
        session.get.return_value = _response(content=b"<rss>ok</rss>")

        body = FeedFetcher(timeout=7, session=session).fetch("https://example.com/feed")

        assert body == b"<rss>ok</rss>"
        session.get.assert_called_once_with(
            "https://example.com/feed", timeout=7, allow_redirects=True
        )

    def test_sets_user_agent(self):
        session = MagicMock()
        session.headers = {}
        FeedFetcher(user_agent="test-agent/1", session=session)
        assert session.headers["User-Agent"] == "test-agent/1"

    def test_user_agent_replaces_requests_default(self):
        fetcher = FeedFetcher(user_agent="podcast-feeds/0.1")
        assert fetcher.session.headers["User-Agent"] == "podcast-feeds/0.1"

    def test_user_agent_from_config(self, test_config):
        test_config.user_agent = "aggregator-test/2"
        fetcher = FeedFetcher(timeout=test_config.fetch_timeout, user_agent=test_config.user_agent)
        assert fetcher.session.headers["User-Agent"] == "aggregator-test/2"

    def test_is_callable(self):
        session = MagicMock()
        session.headers = {}
        session.get.return_value = _response(content=b"x")
        assert FeedFetcher(session=session)("https://example.com/feed") == b"x"

    def test_follows_redirects(self):
        hop = MagicMock()
        hop.url = "http://example.com/old"
        hop.status_code = 301
        hop.headers = {"location": "https://example.com/feed"}
        session = MagicMock()
        session.headers = {}
        session.get.return_value = _response(history=[hop])

        assert FeedFetcher(session=session).fetch("http://example.com/old") == b"<rss/>"

    def test_non_200_raises(self):
        session = MagicMock()
        session.headers = {}
        session.get.return_value = _response(status=404)

        with pytest.raises(FetchError) as excinfo:
            FeedFetcher(session=session).fetch("https://example.com/feed")
        assert excinfo.value.status_code == 404

    def test_timeout_raises(self):
        session = MagicMock()
        session.headers = {}
        session.get.side_effect = requests.exceptions.Timeout("slow")

        with pytest.raises(FetchError, match="timed out"):
            FeedFetcher(timeout=3, session=session).fetch("https://example.com/feed")

    def test_connection_error_raises(self):
        session = MagicMock()
        session.headers = {}
        session.get.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(FetchError) as excinfo:
            FeedFetcher(session=session).fetch("https://example.com/feed")
        assert excinfo.value.url == "https://example.com/feed"
        assert isinstance(excinfo.value.__cause__, requests.exceptions.ConnectionError)

    @patch("podcast_feeds.ingestion.fetcher.requests.Session")
    def test_fetch_feed_helper(self, mock_session_cls):
        session = MagicMock()
        session.headers = {}
        session.get.return_value = _response(content=b"feed")
        mock_session_cls.return_value = session

        assert fetch_feed("https://example.com/feed", timeout=2) == b"feed"
