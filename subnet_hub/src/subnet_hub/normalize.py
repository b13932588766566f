"""
Normalization rules shared by both feed adapters.

The regex-based core parser (sources.feed) and the XML-parser-based widget
adapter (sources.dom) both build entries through ``make_entry`` so timestamp
handling, required fields and ordering cannot drift apart.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from dateutil import parser as date_parser

from .sources.base import Entry

# Zone abbreviations allowed by RFC 822 that dateutil does not know.
RFC822_ZONES = {
    "UT": 0,
    "GMT": 0,
    "EST": -5 * 3600,
    "EDT": -4 * 3600,
    "CST": -6 * 3600,
    "CDT": -5 * 3600,
    "MST": -7 * 3600,
    "MDT": -6 * 3600,
    "PST": -8 * 3600,
    "PDT": -7 * 3600,
}


def normalize_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """
    Parse a feed date into an aware UTC datetime.

    Accepts RFC 822 (RSS), RFC 3339 (Atom) and most other common formats.
    Returns None for empty or unparseable input; never raises.
    """
    if not raw:
        return None
    raw = raw.strip()
    if not raw:
        return None

    try:
        dt = date_parser.parse(raw, tzinfos=RFC822_ZONES)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def format_timestamp(dt: datetime) -> str:
    """ISO-8601 UTC with a ``Z`` suffix."""
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def make_entry(
    title: Optional[str],
    link: Optional[str],
    published: Optional[str] = None,
    author: Optional[str] = None,
) -> Optional[Entry]:
    """
    Build an Entry from raw extracted fields.

    Returns None when title or link is empty; such items are dropped.
    """
    title = (title or "").strip()
    link = (link or "").strip()
    if not title or not link:
        return None

    return Entry(
        title=title,
        link=link,
        published=normalize_timestamp(published),
        author=(author or "").strip() or None,
    )


def sort_key(entry: Entry) -> float:
    """Sort key: publish time in epoch seconds, 0 when unknown."""
    if entry.published is None:
        return 0.0
    return entry.published.timestamp()


def sort_entries(entries: Iterable[Entry]) -> list[Entry]:
    """Newest first; stable for equal keys."""
    return sorted(entries, key=sort_key, reverse=True)


def strip_trailing_slashes(url: str) -> str:
    return url.strip().rstrip("/")
