"""
HTTP retrieval of raw feed bytes.

Follows redirects, applies a timeout, and turns every transport failure
or non-200 answer into a FetchError so that only the feed being
synchronized is affected.
"""

import logging
from typing import Optional

import requests

from podcast_feeds.errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "podcast-feeds/0.1"


class FeedFetcher:
    """
    Callable that downloads a feed document.

    A single ``requests.Session`` is reused across calls so connections
    to the same host are pooled during a scheduler pass.

    Example:
        >>> fetch = FeedFetcher(timeout=10)
        >>> raw = fetch("https://rss.art19.com/talking-machines")
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = user_agent

    def __call__(self, url: str) -> bytes:
        return self.fetch(url)

    def fetch(self, url: str) -> bytes:
        """
        Retrieve the raw bytes of the feed at ``url``.

        Args:
            url: Feed URL

        Returns:
            Response body

        Raises:
            FetchError: On timeout, connection failure or non-200 status
        """
        try:
            response = self.session.get(url, timeout=self.timeout, allow_redirects=True)
        except requests.exceptions.Timeout as exc:
            raise FetchError(url, f"timed out after {self.timeout}s") from exc
        except requests.exceptions.RequestException as exc:
            raise FetchError(url, str(exc)) from exc

        for hop in response.history:
            logger.warning(
                "Feed %s redirected (%d) to %s",
                hop.url,
                hop.status_code,
                hop.headers.get("location", "?"),
            )

        if response.status_code != 200:
            raise FetchError(
                url,
                f"unexpected HTTP status {response.status_code}",
                status_code=response.status_code,
            )

        body = response.content
        logger.info("Fetched %d bytes from %s", len(body), response.url or url)
        return body


def fetch_feed(url: str, timeout: float = DEFAULT_TIMEOUT) -> bytes:
    """
    Fetch a feed with a one-off session.

    Convenience wrapper around FeedFetcher for single calls.
    """
    return FeedFetcher(timeout=timeout).fetch(url)
