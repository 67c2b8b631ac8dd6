"""
Field-level merge of a stored record with a freshly normalized one.

Only the fields named in the mergeable set are compared and copied;
identity fields (``_id``, ``id``, ``url``, ``channel_id``) are never
touched. Comparison is by value, so nested records such as enclosures
compare equal when their contents match. An unchanged record means the
caller must skip the write.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable

CHANNEL_MERGEABLE_FIELDS: FrozenSet[str] = frozenset({"title", "description", "image"})
ITEM_MERGEABLE_FIELDS: FrozenSet[str] = frozenset({"title", "date", "enclosure"})

_MISSING = object()


@dataclass
class MergeResult:
    """
    Outcome of a merge.

    Attributes:
        changed: True if at least one mergeable field differed
        merged: The existing record with incoming values applied
    """

    changed: bool
    merged: Dict[str, Any]


def merge_fields(
    existing: Dict[str, Any],
    incoming: Dict[str, Any],
    mergeable_fields: Iterable[str],
) -> MergeResult:
    """
    Copy changed mergeable fields from ``incoming`` into ``existing``.

    A field absent from ``incoming`` is treated as a value of its own:
    if ``existing`` has it, it is removed (an item whose enclosure was
    dropped from the feed loses its enclosure). ``existing`` is updated
    in place and also returned as ``merged``.

    Args:
        existing: Record read from the store
        incoming: Record built from the latest feed
        mergeable_fields: Names of fields allowed to change

    Returns:
        MergeResult

    Example:
        >>> result = merge_fields(
        ...     {"id": "a1", "title": "Old"},
        ...     {"id": "a1", "title": "New"},
        ...     CHANNEL_MERGEABLE_FIELDS,
        ... )
        >>> result.changed, result.merged["title"]
        (True, 'New')
    """
    changed = False

    for name in mergeable_fields:
        new_value = incoming.get(name, _MISSING)
        old_value = existing.get(name, _MISSING)

        if new_value is _MISSING and old_value is _MISSING:
            continue
        if new_value == old_value:
            continue

        if new_value is _MISSING:
            del existing[name]
        else:
            existing[name] = new_value
        changed = True

    return MergeResult(changed=changed, merged=existing)
