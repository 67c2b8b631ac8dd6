"""
Enclosure media access.

Resolves an item's enclosure URL from the store and forwards a GET or
HEAD request to it, or streams the media to a local file with progress
reporting. Nothing is cached.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

import requests

from podcast_feeds.errors import FetchError, NotFoundError
from podcast_feeds.ingestion.fetcher import DEFAULT_USER_AGENT
from podcast_feeds.ingestion.identity import item_key

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
MEDIA_TIMEOUT = 300


def resolve_enclosure_url(store, channel_id: str, item_id: str) -> str:
    """
    Look up the enclosure URL of a stored item.

    Raises:
        NotFoundError: If the item is unknown or has no enclosure URL
    """
    key = item_key(channel_id, item_id)
    doc = store.get(key)
    url = (doc.get("enclosure") or {}).get("url")
    if not url:
        raise NotFoundError(f"{key}#enclosure")
    return url


def open_enclosure(
    store,
    channel_id: str,
    item_id: str,
    method: str = "GET",
    session: Optional[requests.Session] = None,
    user_agent: str = DEFAULT_USER_AGENT,
) -> requests.Response:
    """
    Forward a GET or HEAD request to an item's enclosure.

    The response is opened in streaming mode; the caller is responsible
    for closing it.

    Args:
        store: Document store holding the item
        channel_id: Owning channel id
        item_id: Item id
        method: "GET" or "HEAD"
        session: Optional requests session to reuse; without one a
            short-lived session is opened and closed by requests
        user_agent: User-Agent header sent upstream

    Returns:
        The upstream response

    Raises:
        ValueError: For any other method
        NotFoundError: If the item or its enclosure URL is missing
        FetchError: On transport failure
    """
    method = method.upper()
    if method not in ("GET", "HEAD"):
        raise ValueError(f"Unsupported method for enclosure: {method}")

    url = resolve_enclosure_url(store, channel_id, item_id)
    send = session.request if session is not None else requests.request

    try:
        response = send(
            method,
            url,
            headers={"User-Agent": user_agent},
            stream=True,
            allow_redirects=True,
            timeout=MEDIA_TIMEOUT,
        )
    except requests.exceptions.RequestException as exc:
        raise FetchError(url, str(exc)) from exc

    logger.info("%s %s -> %d", method, url, response.status_code)
    return response


def download_enclosure(
    store,
    channel_id: str,
    item_id: str,
    output_path: Path,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    user_agent: str = DEFAULT_USER_AGENT,
) -> int:
    """
    Download an item's enclosure to a local file.

    Args:
        store: Document store holding the item
        channel_id: Owning channel id
        item_id: Item id
        output_path: Local path to save the media to
        progress_callback: Optional callback (bytes_downloaded, total_bytes);
            total_bytes is 0 when the server sends no Content-Length
        user_agent: User-Agent header sent upstream

    Returns:
        Number of bytes written

    Raises:
        FetchError: On transport failure or a non-2xx answer

    Example:
        >>> def on_progress(downloaded, total):
        ...     print(f"Progress: {downloaded}/{total} bytes")
        >>> download_enclosure(store, channel_id, item_id,
        ...                    Path("data/audio/episode.mp3"), on_progress)
    """
    response = open_enclosure(store, channel_id, item_id, "GET", user_agent=user_agent)
    with response:
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            raise FetchError(response.url, str(exc), status_code=response.status_code) from exc

        total = int(response.headers.get("content-length") or 0)
        written = 0
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                f.write(chunk)
                written += len(chunk)
                if progress_callback:
                    progress_callback(written, total)

    logger.info("Saved %d bytes to %s", written, output_path)
    return written
