"""
Published-feed adapter backed by a real XML parser.

Used by the widget layer to read hubs' ``feed.xml``. It goes through
BeautifulSoup instead of the tag extractor, but builds entries with the same
normalization rules as the core parser.
"""

from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup

from .base import Entry
from ..normalize import make_entry


@dataclass
class HubFeedMeta:
    """Identity of a hub as read from its published feed."""
    title: str
    link: str

    def to_dict(self) -> dict:
        return {"title": self.title, "link": self.link}


@dataclass
class PublishedFeed:
    """A hub's parsed feed: its meta plus entries in document order."""
    meta: HubFeedMeta
    entries: list[Entry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "meta": self.meta.to_dict(),
            "entries": [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PublishedFeed":
        """Rebuild from ``to_dict`` output (e.g. a cache row)."""
        meta = HubFeedMeta(title=data["meta"]["title"], link=data["meta"]["link"])
        entries = []
        for item in data.get("entries", []):
            entry = make_entry(
                title=item.get("title"),
                link=item.get("link"),
                published=item.get("published"),
                author=item.get("author"),
            )
            if entry is not None:
                entries.append(entry.with_provenance(item.get("provenance") or meta.title))
        return cls(meta=meta, entries=entries)


def _text(element) -> str:
    return element.get_text(strip=True) if element is not None else ""


def _alternate_link(element) -> str:
    links = element.find_all("link", recursive=False)
    for link in links:
        if link.get("rel") == "alternate" and link.get("href"):
            return link["href"]
    for link in links:
        if link.get("href"):
            return link["href"]
    return ""


def parse_published_feed(xml: str, hub_url: str) -> Optional[PublishedFeed]:
    """
    Parse a hub's Atom feed.

    Entries are attributed to their ``<category term>``, or to the feed title
    when no category is present.

    Returns:
        The parsed feed, or None when the document has no ``<feed>`` root
    """
    soup = BeautifulSoup(xml or "", "xml")
    feed = soup.find("feed")
    if feed is None:
        return None

    meta = HubFeedMeta(
        title=_text(feed.find("title", recursive=False)),
        link=hub_url,
    )

    entries = []
    for element in feed.find_all("entry"):
        author = element.find("author")
        entry = make_entry(
            title=_text(element.find("title")),
            link=_alternate_link(element),
            published=_text(element.find("published")) or _text(element.find("updated")),
            author=_text(author.find("name")) if author is not None else None,
        )
        if entry is None:
            continue
        category = element.find("category")
        provenance = (category.get("term") if category is not None else None) or meta.title
        entries.append(entry.with_provenance(provenance))

    return PublishedFeed(meta=meta, entries=entries)
