"""
RSS 2.0 / Atom 1.0 entry parser.

Works on raw text through the tag extractor so partial or malformed feeds
still yield their well-formed items.
"""

import re
from enum import Enum
from typing import Optional

import httpx

from .base import Entry, FeedSource, Outcome
from .http import fetch_text
from .tags import extract_tag, iter_blocks, iter_tag_attrs
from ..config import get_settings
from ..errors import HttpFailure, NetworkFailure, ParseFailure
from ..logging_conf import get_logger
from ..normalize import make_entry

logger = get_logger(__name__)

_ATOM_RE = re.compile(r"<feed[\s>]", re.IGNORECASE)
_RSS_RE = re.compile(r"<(?:rss|channel)[\s>]", re.IGNORECASE)


class FeedFormat(str, Enum):
    """Syndication format of a fetched document."""
    ATOM = "atom"
    RSS = "rss"
    UNKNOWN = "unknown"


def detect_format(xml: str) -> FeedFormat:
    """Classify a document by shallow sniffing; Atom wins when both match."""
    if not xml:
        return FeedFormat.UNKNOWN
    if _ATOM_RE.search(xml):
        return FeedFormat.ATOM
    if _RSS_RE.search(xml):
        return FeedFormat.RSS
    return FeedFormat.UNKNOWN


def _atom_link(block: str) -> str:
    """Prefer ``rel="alternate"``, else the first link with an href."""
    fallback = ""
    for attrs in iter_tag_attrs(block, "link"):
        href = attrs.get("href", "").strip()
        if not href:
            continue
        if attrs.get("rel", "").strip().lower() == "alternate":
            return href
        if not fallback:
            fallback = href
    return fallback


def parse_atom_entries(xml: str) -> list[Entry]:
    entries = []
    for block in iter_blocks(xml, "entry"):
        entry = make_entry(
            title=extract_tag(block, "title"),
            link=_atom_link(block),
            published=extract_tag(block, "published") or extract_tag(block, "updated"),
            author=extract_tag(extract_tag(block, "author"), "name"),
        )
        if entry is not None:
            entries.append(entry)
    return entries


def parse_rss_entries(xml: str) -> list[Entry]:
    entries = []
    for block in iter_blocks(xml, "item"):
        entry = make_entry(
            title=extract_tag(block, "title"),
            link=extract_tag(block, "link"),
            published=extract_tag(block, "pubDate") or extract_tag(block, "dc:date"),
            author=(
                extract_tag(block, "dc:creator")
                or extract_tag(block, "author")
                or extract_tag(block, "itunes:author")
            ),
        )
        if entry is not None:
            entries.append(entry)
    return entries


def parse_feed(xml: str) -> list[Entry]:
    """
    Parse a feed document into entries, in document order.

    Items without a title or link are dropped. Unknown formats give [].
    """
    fmt = detect_format(xml)
    if fmt is FeedFormat.ATOM:
        return parse_atom_entries(xml)
    if fmt is FeedFormat.RSS:
        return parse_rss_entries(xml)
    return []


async def fetch_feed(
    client: httpx.AsyncClient,
    feed_url: str,
    timeout: Optional[float] = None,
) -> Outcome[list[Entry]]:
    """
    Fetch and parse one feed.

    Never raises: failures give an empty entry list with a reason.
    """
    if timeout is None:
        timeout = get_settings().feed_timeout

    try:
        xml = await fetch_text(client, feed_url, timeout)
        if detect_format(xml) is FeedFormat.UNKNOWN:
            raise ParseFailure("unrecognized feed format")
    except (NetworkFailure, HttpFailure, ParseFailure) as e:
        logger.debug("feed_fetch_failed", url=feed_url, error=str(e))
        return Outcome.unreachable([], str(e))

    return Outcome.success(parse_feed(xml))


class NodeFeedSource(FeedSource):
    """The syndication feed of one verified member node."""

    def __init__(self, name: str, feed_url: str, timeout: Optional[float] = None):
        super().__init__(name, feed_url)
        self.timeout = timeout

    async def fetch(self, client: httpx.AsyncClient) -> Outcome[list[Entry]]:
        return await fetch_feed(client, self.url, self.timeout)
