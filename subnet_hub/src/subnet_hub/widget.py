"""
Widget feed client: "From around my subnets".

Reads the published ``feed.xml`` of several hubs and merges them, with a
per-hub cache:

- a cached payload younger than the freshness window is used as-is
- otherwise the feed is fetched; on success the cache is refreshed
- on network failure, non-2xx, or an unparseable document the last cached
  payload is used even if stale
- cache write failures are ignored
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError

from .config import get_settings
from .db import Database
from .errors import HttpFailure, NetworkFailure, ParseFailure
from .logging_conf import get_logger
from .normalize import sort_entries, strip_trailing_slashes
from .sources.base import Entry
from .sources.dom import HubFeedMeta, PublishedFeed, parse_published_feed
from .sources.http import client_session, fetch_text
from .sources.peers import peer_feed_url

logger = get_logger(__name__)

CACHE_PREFIX = "subnet:"


def cache_key(hub_url: str) -> str:
    return CACHE_PREFIX + strip_trailing_slashes(hub_url)


def parse_hub_list(value: str) -> list[str]:
    """Split a comma-separated hub list, dropping blanks."""
    return [h.strip() for h in (value or "").split(",") if h.strip()]


@dataclass
class WidgetFeed:
    """Merged view across hubs."""
    meta: list[HubFeedMeta] = field(default_factory=list)
    entries: list[Entry] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.meta and not self.entries

    def to_dict(self, count: Optional[int] = None) -> dict:
        entries = self.entries if count is None else self.entries[:count]
        return {
            "hubs": [m.to_dict() for m in self.meta],
            "entries": [e.to_dict() for e in entries],
        }


class WidgetFeedClient:
    """
    Fetches and caches hub feeds for the widget.
    """

    def __init__(
        self,
        db: Database,
        client: Optional[httpx.AsyncClient] = None,
        ttl_seconds: Optional[float] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            db: Store holding the feed cache
            client: Shared HTTP client (a private one is created if omitted)
            ttl_seconds: Freshness window (defaults to settings, 30 minutes)
            timeout: Feed fetch timeout
            clock: Returns the current epoch time
        """
        settings = get_settings()
        self.db = db
        self.client = client
        self.ttl_seconds = (
            ttl_seconds if ttl_seconds is not None
            else settings.widget_cache_ttl_minutes * 60
        )
        self.timeout = timeout if timeout is not None else settings.feed_timeout
        self.clock = clock

    def _load_cache(self, key: str, fresh_only: bool) -> Optional[PublishedFeed]:
        session = self.db.get_session()
        try:
            row = self.db.load_cached_feed(session, key)
            if row is None:
                return None
            if fresh_only and self.clock() - row.fetched_at >= self.ttl_seconds:
                return None
            return PublishedFeed.from_dict(row.data)
        except (SQLAlchemyError, KeyError, TypeError, ValueError) as e:
            logger.debug("widget_cache_read_failed", key=key, error=str(e))
            return None
        finally:
            session.close()

    def _save_cache(self, key: str, feed: PublishedFeed) -> None:
        session = self.db.get_session()
        try:
            self.db.save_cached_feed(session, key, feed.to_dict(), self.clock())
        except SQLAlchemyError as e:
            session.rollback()
            logger.debug("widget_cache_write_failed", key=key, error=str(e))
        finally:
            session.close()

    async def fetch_hub(
        self,
        hub_url: str,
        client: httpx.AsyncClient,
    ) -> Optional[PublishedFeed]:
        """
        Return one hub's feed from cache or network.

        Returns None only when the hub is unreachable and was never cached.
        """
        key = cache_key(hub_url)

        cached = self._load_cache(key, fresh_only=True)
        if cached is not None:
            logger.debug("widget_cache_hit", hub=hub_url)
            return cached

        try:
            xml = await fetch_text(client, peer_feed_url(hub_url), self.timeout)
            feed = parse_published_feed(xml, hub_url)
            if feed is None:
                raise ParseFailure("document has no <feed> element")
        except (NetworkFailure, HttpFailure, ParseFailure) as e:
            stale = self._load_cache(key, fresh_only=False)
            logger.warning(
                "widget_feed_unavailable",
                hub=hub_url,
                reason=str(e),
                stale_cache=stale is not None,
            )
            return stale

        self._save_cache(key, feed)
        logger.info("widget_feed_fetched", hub=hub_url, entries=len(feed.entries))
        return feed

    async def fetch_all(self, hubs: list[str]) -> WidgetFeed:
        """Fetch every hub, then merge newest first."""
        async with client_session(self.client) as client:
            feeds = await asyncio.gather(*(self.fetch_hub(h, client) for h in hubs))

        result = WidgetFeed()
        merged: list[Entry] = []
        for feed in feeds:
            if feed is None:
                continue
            result.meta.append(feed.meta)
            merged.extend(feed.entries)
        result.entries = sort_entries(merged)
        return result
