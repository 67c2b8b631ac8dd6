"""
RSS tree normalization.

Maps the object tree produced by ``xml_tree.parse_xml`` onto a
NormalizedFeed: channel title and description plus one NormalizedItem
per ``<item>``, in feed order. A single item without a usable GUID
rejects the whole feed, so a synchronization pass never ingests a
partial catalogue.
"""

import logging
from datetime import timezone
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser

from podcast_feeds.errors import MalformedItemError, ParseError
from podcast_feeds.models.entities import Enclosure, NormalizedFeed, NormalizedItem

logger = logging.getLogger(__name__)

# Zone names allowed in RFC 822 dates that dateutil does not resolve itself
RFC822_TZINFOS = {
    "UT": 0,
    "GMT": 0,
    "Z": 0,
    "EST": -5 * 3600,
    "EDT": -4 * 3600,
    "CST": -6 * 3600,
    "CDT": -5 * 3600,
    "MST": -7 * 3600,
    "MDT": -6 * 3600,
    "PST": -8 * 3600,
    "PDT": -7 * 3600,
}


def normalize_feed(tree: Dict[str, Any]) -> NormalizedFeed:
    """
    Normalize a parsed RSS document.

    Args:
        tree: Object tree of the form ``{"rss": {"channel": [{...}]}}``

    Returns:
        NormalizedFeed for the first channel element

    Raises:
        ParseError: If the document has no ``rss/channel`` element
        MalformedItemError: If any item lacks a non-empty GUID

    Example:
        >>> feed = normalize_feed(parse_xml(raw_bytes))
        >>> print(feed.title, len(feed.items))
    """
    channel = _channel_node(tree)

    description = _text(_first(channel, "description"))
    if description is None:
        description = _text(_first(channel, "itunes:summary"))

    items: List[NormalizedItem] = []
    for index, node in enumerate(channel.get("item", [])):
        items.append(normalize_item(node, index))

    return NormalizedFeed(
        title=_text(_first(channel, "title")) or "",
        description=description or "",
        image=parse_image(channel),
        items=items,
    )


def normalize_item(node: Any, index: int = 0) -> NormalizedItem:
    """
    Normalize a single ``<item>`` node.

    Args:
        node: Item node from the object tree
        index: Position of the item in the feed, used in error messages

    Returns:
        NormalizedItem; ``enclosure`` is left unset when the item has none

    Raises:
        MalformedItemError: If the GUID is missing, not text, or blank
    """
    if not isinstance(node, dict):
        raise MalformedItemError(index)

    guid = _text(_first(node, "guid"))
    if not isinstance(guid, str) or not guid.strip():
        raise MalformedItemError(index)

    enclosure = None
    enclosure_node = _first(node, "enclosure")
    if enclosure_node is not None:
        enclosure = parse_enclosure(enclosure_node)

    return NormalizedItem(
        guid=guid.strip(),
        title=_text(_first(node, "title")),
        date=normalize_date(_text(_first(node, "pubDate"))),
        enclosure=enclosure,
    )


def parse_enclosure(node: Any) -> Enclosure:
    """
    Build an Enclosure from the attributes of an ``<enclosure>`` node.

    A non-numeric ``length`` is dropped rather than rejected.
    """
    attrs = node.get("$", {}) if isinstance(node, dict) else {}

    length = None
    raw_length = attrs.get("length")
    if raw_length is not None:
        try:
            length = int(raw_length.strip())
        except (ValueError, AttributeError):
            length = None

    return Enclosure(
        url=attrs.get("url"),
        media_type=attrs.get("type"),
        length=length,
    )


def parse_image(channel: Dict[str, Any]) -> Optional[str]:
    """
    Channel artwork URL.

    Reads ``<image><url>`` first, then the ``href`` attribute of
    ``<image>`` or ``<itunes:image>``. Returns None when there is none.
    """
    for name in ("image", "itunes:image"):
        node = _first(channel, name)
        if not isinstance(node, dict):
            continue
        url = _text(_first(node, "url")) or node.get("$", {}).get("href")
        if url and url.strip():
            return url.strip()
    return None


def normalize_date(value: Optional[str]) -> Optional[str]:
    """
    Render a publish date as a UTC ISO-8601 timestamp.

    RFC 822 zone names (EST, PDT, ...) are honoured; dates without a
    timezone are taken as UTC. Missing or unparseable
    values yield None instead of raising.

    Example:
        >>> normalize_date("Mon, 01 Jan 2024 12:00:00 GMT")
        '2024-01-01T12:00:00.000Z'
        >>> normalize_date("not-a-date") is None
        True
    """
    if not value or not value.strip():
        return None

    try:
        parsed = date_parser.parse(value.strip(), tzinfos=RFC822_TZINFOS)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        parsed = parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError) as exc:
        logger.warning("Failed to parse date '%s': %s", value, exc)
        return None

    return parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}Z"


def _channel_node(tree: Dict[str, Any]) -> Dict[str, Any]:
    rss = tree.get("rss") if isinstance(tree, dict) else None
    channel = _first(rss, "channel") if isinstance(rss, dict) else None
    if not isinstance(channel, dict):
        raise ParseError("Document has no rss/channel element")
    return channel


def _first(node: Dict[str, Any], name: str) -> Any:
    values = node.get(name)
    if not values:
        return None
    return values[0]


def _text(value: Any) -> Optional[str]:
    """Inner text of a node: tagged nodes keep it under ``"_"``."""
    if value is None:
        return None
    if isinstance(value, dict):
        return value.get("_", "")
    return value
