"""
Pydantic data models for channels, items and enclosures.

Defines the normalized feed produced from a parsed RSS document and the
channel/item records persisted in the document store. Store documents
carry their key under ``_id``; every other field is the record itself.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from podcast_feeds.ingestion.identity import channel_key, derive_id, item_key


class Enclosure(BaseModel):
    """
    Downloadable media attached to an item.

    Stored with the RSS attribute names (``url``, ``type``, ``length``).
    """
    url: Optional[str] = None
    media_type: Optional[str] = Field(default=None, alias="type")
    length: Optional[int] = None

    class Config:
        """Pydantic configuration."""
        populate_by_name = True

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class NormalizedItem(BaseModel):
    """
    One feed entry after normalization.

    ``enclosure`` is None when the entry carries no enclosure element;
    ``date`` is None when the publish date is missing or unparseable.
    """
    guid: str = Field(min_length=1)
    title: Optional[str] = None
    date: Optional[str] = None
    enclosure: Optional[Enclosure] = None


class NormalizedFeed(BaseModel):
    """Canonical form of one RSS channel and its items, in feed order."""
    title: str = ""
    description: str = ""
    image: Optional[str] = None
    items: List[NormalizedItem] = Field(default_factory=list)


class Channel(BaseModel):
    """
    Channel record.

    ``id`` is a pure function of ``url``; both are immutable once the
    channel exists.
    ``image`` is left out of the stored document when the feed has none.
    """
    id: str
    url: str
    title: str = ""
    description: str = ""
    image: Optional[str] = None

    @classmethod
    def from_feed(cls, url: str, feed: NormalizedFeed) -> "Channel":
        return cls(
            id=derive_id(url),
            url=url,
            title=feed.title,
            description=feed.description,
            image=feed.image,
        )

    @property
    def key(self) -> str:
        return channel_key(self.id)

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(exclude_none=True)
        doc["_id"] = self.key
        return doc


class Item(BaseModel):
    """
    Item (episode) record, keyed under its owning channel.

    ``id`` is a pure function of the feed GUID.
    """
    id: str
    channel_id: str
    title: Optional[str] = None
    date: Optional[str] = None
    enclosure: Optional[Enclosure] = None

    @classmethod
    def from_normalized(cls, channel_id: str, entry: NormalizedItem) -> "Item":
        return cls(
            id=derive_id(entry.guid),
            channel_id=channel_id,
            title=entry.title,
            date=entry.date,
            enclosure=entry.enclosure,
        )

    @property
    def key(self) -> str:
        return item_key(self.channel_id, self.id)

    def to_document(self) -> Dict[str, Any]:
        """
        Render the store document.

        The ``enclosure`` field is omitted entirely when there is no
        media, never stored as null.
        """
        doc: Dict[str, Any] = {
            "_id": self.key,
            "id": self.id,
            "channel_id": self.channel_id,
            "title": self.title,
            "date": self.date,
        }
        if self.enclosure is not None:
            doc["enclosure"] = self.enclosure.to_document()
        return doc
