"""
Content-addressed identifiers and store key layout.

Channel ids are derived from the feed URL and item ids from the item
GUID, so re-synchronizing the same feed always resolves to the same
records. Keys must stay compatible with existing stores:

    channels/<channel_id>
    items/<channel_id>/<item_id>
"""

import hashlib

CHANNEL_PREFIX = "channels/"
ITEM_PREFIX = "items/"

# Upper bound used for prefix range scans
KEY_RANGE_END = "￰"


def derive_id(value: str) -> str:
    """
    Derive a stable opaque identifier from a string.

    Args:
        value: Feed URL or item GUID

    Returns:
        Lowercase hex SHA-256 digest (64 characters)

    Example:
        >>> len(derive_id("https://rss.art19.com/talking-machines"))
        64
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def channel_key(channel_id: str) -> str:
    return f"{CHANNEL_PREFIX}{channel_id}"


def item_key(channel_id: str, item_id: str) -> str:
    return f"{ITEM_PREFIX}{channel_id}/{item_id}"


def items_prefix(channel_id: str) -> str:
    """Key prefix shared by every item of a channel."""
    return f"{ITEM_PREFIX}{channel_id}/"
