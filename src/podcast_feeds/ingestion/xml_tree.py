"""
Schema-agnostic XML to object-tree conversion.

Produces the tree shape the feed normalizer consumes: the root element
maps to a node, every child element name maps to an ordered list of
nodes, and a node is either plain text (no attributes, no children) or
a dict holding attributes under ``"$"``, text under ``"_"`` and child
lists under their element names. Namespaced names keep the prefix used
in the document, e.g. ``itunes:summary``.

Example:
    >>> parse_xml(b'<rss><channel><title>T</title></channel></rss>')
    {'rss': {'channel': [{'title': ['T']}]}}
"""

import io
import xml.etree.ElementTree as ET
from typing import Any, Dict, Union

from podcast_feeds.errors import ParseError

Node = Union[str, Dict[str, Any]]


def parse_xml(data: bytes) -> Dict[str, Node]:
    """
    Parse an XML document into an object tree.

    Args:
        data: Raw document bytes

    Returns:
        Single-entry dict mapping the root element name to its node

    Raises:
        ParseError: If the document is empty or not well-formed
    """
    prefixes: Dict[str, str] = {}
    root = None

    try:
        for event, payload in ET.iterparse(io.BytesIO(data), events=("start-ns", "start")):
            if event == "start-ns":
                prefix, uri = payload
                prefixes.setdefault(uri, prefix)
            elif root is None:
                root = payload
    except ET.ParseError as exc:
        raise ParseError(f"Malformed XML: {exc}") from exc

    if root is None:
        raise ParseError("Document has no root element")

    return {_qualified_name(root.tag, prefixes): _convert(root, prefixes)}


def _qualified_name(name: str, prefixes: Dict[str, str]) -> str:
    """Turn ElementTree's ``{uri}local`` form back into ``prefix:local``."""
    if not name.startswith("{"):
        return name
    uri, local = name[1:].split("}", 1)
    prefix = prefixes.get(uri)
    return f"{prefix}:{local}" if prefix else local


def _convert(element: ET.Element, prefixes: Dict[str, str]) -> Node:
    text_parts = [element.text or ""]
    children: Dict[str, list] = {}

    for child in element:
        name = _qualified_name(child.tag, prefixes)
        children.setdefault(name, []).append(_convert(child, prefixes))
        text_parts.append(child.tail or "")

    text = "".join(text_parts)

    if not element.attrib and not children:
        return text

    node: Dict[str, Any] = {}
    if element.attrib:
        node["$"] = {
            _qualified_name(key, prefixes): value
            for key, value in element.attrib.items()
        }
    if text.strip():
        node["_"] = text
    node.update(children)
    return node
