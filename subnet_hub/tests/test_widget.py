"""
Tests for the widget feed client and its cache.

Tests:
- Fresh cache entries skip the network
- Stale entries are refreshed, and served when the refresh fails
- Unreachable, never-cached hubs are omitted
- Cache write failures are ignored
- Hubs merge newest first
"""

import pytest
from sqlalchemy.exc import OperationalError

from subnet_hub.sources.dom import HubFeedMeta, PublishedFeed, parse_published_feed
from subnet_hub.widget import WidgetFeedClient, cache_key, parse_hub_list

from conftest import FakeWeb, connect_error

HUB_A = "https://a-hub.example"
HUB_B = "https://b-hub.example"
FEED_A = "https://a-hub.example/feed.xml"
FEED_B = "https://b-hub.example/feed.xml"


def hub_feed(title: str, *entries: tuple[str, str, str, str | None]) -> str:
    """Atom document as a hub publishes it: (title, link, updated, category)."""
    body = ""
    for entry_title, link, updated, category in entries:
        term = f'<category term="{category}"/>' if category else ""
        body += (
            f"<entry><title>{entry_title}</title>"
            f'<link href="{link}" rel="alternate"/>'
            f"<updated>{updated}</updated>{term}</entry>"
        )
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        f'<feed xmlns="http://www.w3.org/2005/Atom"><title>{title}</title>{body}</feed>'
    )


class Clock:
    """Settable epoch clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestParsePublishedFeed:
    """Tests for the XML-parser-backed adapter."""

    def test_meta_and_entries(self):
        xml = hub_feed(
            "Hub A",
            ("One", "https://x.example/1", "2024-01-01T00:00:00Z", "Peer Hub"),
            ("Two", "https://x.example/2", "2023-01-01T00:00:00Z", None),
        )

        feed = parse_published_feed(xml, HUB_A)

        assert feed.meta == HubFeedMeta(title="Hub A", link=HUB_A)
        assert [e.title for e in feed.entries] == ["One", "Two"]
        assert feed.entries[0].published_iso == "2024-01-01T00:00:00Z"
        assert [e.provenance_name for e in feed.entries] == ["Peer Hub", "Hub A"]

    def test_not_a_feed(self):
        assert parse_published_feed("<html><body>nope</body></html>", HUB_A) is None

    def test_drops_incomplete_entries(self):
        xml = (
            '<feed xmlns="http://www.w3.org/2005/Atom"><title>H</title>'
            "<entry><title>No link</title></entry>"
            '<entry><title>Ok</title><link href="https://x.example/ok"/></entry>'
            "</feed>"
        )

        assert [e.title for e in parse_published_feed(xml, HUB_A).entries] == ["Ok"]

    def test_round_trips_through_dict(self):
        feed = parse_published_feed(
            hub_feed("Hub A", ("One", "https://x.example/1", "2024-01-01T00:00:00Z", "P")),
            HUB_A,
        )

        restored = PublishedFeed.from_dict(feed.to_dict())

        assert restored.meta == feed.meta
        assert restored.entries == feed.entries


class TestHelpers:
    """Tests for cache keys and hub lists."""

    def test_cache_key_ignores_trailing_slash(self):
        assert cache_key(HUB_A + "/") == cache_key(HUB_A) == "subnet:" + HUB_A

    def test_parse_hub_list(self):
        assert parse_hub_list(f" {HUB_A} ,, {HUB_B},") == [HUB_A, HUB_B]
        assert parse_hub_list("") == []


class TestWidgetFeedClient:
    """Tests for WidgetFeedClient."""

    @pytest.mark.asyncio
    async def test_fetches_and_caches(self, db):
        web = FakeWeb({FEED_A: (200, hub_feed("Hub A", ("One", "https://x/1", "2024-01-01T00:00:00Z", None)))})

        async with web.client() as client:
            widget = WidgetFeedClient(db, client=client, ttl_seconds=1800, clock=Clock())
            feed = await widget.fetch_all([HUB_A])

        assert [e.title for e in feed.entries] == ["One"]
        session = db.get_session()
        try:
            assert db.load_cached_feed(session, cache_key(HUB_A)) is not None
        finally:
            session.close()

    @pytest.mark.asyncio
    async def test_fresh_cache_skips_network(self, db):
        clock = Clock()
        web = FakeWeb({FEED_A: (200, hub_feed("Hub A", ("One", "https://x/1", "2024-01-01T00:00:00Z", None)))})

        async with web.client() as client:
            widget = WidgetFeedClient(db, client=client, ttl_seconds=1800, clock=clock)
            await widget.fetch_all([HUB_A])
            clock.now += 60
            feed = await widget.fetch_all([HUB_A])

        assert len(web.requests) == 1
        assert [e.title for e in feed.entries] == ["One"]

    @pytest.mark.asyncio
    async def test_stale_cache_is_refreshed(self, db):
        clock = Clock()
        web = FakeWeb({FEED_A: (200, hub_feed("Hub A", ("Old", "https://x/1", "2024-01-01T00:00:00Z", None)))})

        async with web.client() as client:
            widget = WidgetFeedClient(db, client=client, ttl_seconds=1800, clock=clock)
            await widget.fetch_all([HUB_A])
            web.routes[FEED_A] = (200, hub_feed("Hub A", ("New", "https://x/2", "2024-02-01T00:00:00Z", None)))
            clock.now += 1800
            feed = await widget.fetch_all([HUB_A])

        assert len(web.requests) == 2
        assert [e.title for e in feed.entries] == ["New"]

    @pytest.mark.asyncio
    async def test_stale_cache_served_on_failure(self, db):
        """A 500 after expiry falls back to the last good payload."""
        clock = Clock()
        web = FakeWeb({FEED_A: (200, hub_feed("Hub A", ("Cached", "https://x/1", "2024-01-01T00:00:00Z", None)))})

        async with web.client() as client:
            widget = WidgetFeedClient(db, client=client, ttl_seconds=1800, clock=clock)
            await widget.fetch_all([HUB_A])
            web.routes[FEED_A] = (500, "oops")
            clock.now += 7200
            feed = await widget.fetch_all([HUB_A])

        assert [e.title for e in feed.entries] == ["Cached"]
        assert [m.title for m in feed.meta] == ["Hub A"]

    @pytest.mark.asyncio
    async def test_unparseable_falls_back_to_stale(self, db):
        clock = Clock()
        web = FakeWeb({FEED_A: (200, hub_feed("Hub A", ("Cached", "https://x/1", "2024-01-01T00:00:00Z", None)))})

        async with web.client() as client:
            widget = WidgetFeedClient(db, client=client, ttl_seconds=1800, clock=clock)
            await widget.fetch_all([HUB_A])
            web.routes[FEED_A] = (200, "<html>maintenance</html>")
            clock.now += 7200
            feed = await widget.fetch_all([HUB_A])

        assert [e.title for e in feed.entries] == ["Cached"]

    @pytest.mark.asyncio
    async def test_unreachable_uncached_hub_omitted(self, db):
        web = FakeWeb({
            FEED_A: connect_error(FEED_A),
            FEED_B: (200, hub_feed("Hub B", ("B", "https://y/1", "2024-01-01T00:00:00Z", None))),
        })

        async with web.client() as client:
            widget = WidgetFeedClient(db, client=client, ttl_seconds=1800, clock=Clock())
            feed = await widget.fetch_all([HUB_A, HUB_B])

        assert [m.title for m in feed.meta] == ["Hub B"]
        assert [e.title for e in feed.entries] == ["B"]

    @pytest.mark.asyncio
    async def test_nothing_reachable_is_empty(self, db):
        web = FakeWeb()

        async with web.client() as client:
            widget = WidgetFeedClient(db, client=client, ttl_seconds=1800, clock=Clock())
            feed = await widget.fetch_all([HUB_A])

        assert feed.empty
        assert feed.to_dict() == {"hubs": [], "entries": []}

    @pytest.mark.asyncio
    async def test_cache_write_failure_ignored(self, db, monkeypatch):
        def fail(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("disk full"))

        monkeypatch.setattr(db, "save_cached_feed", fail)
        web = FakeWeb({FEED_A: (200, hub_feed("Hub A", ("One", "https://x/1", "2024-01-01T00:00:00Z", None)))})

        async with web.client() as client:
            widget = WidgetFeedClient(db, client=client, ttl_seconds=1800, clock=Clock())
            feed = await widget.fetch_all([HUB_A])

        assert [e.title for e in feed.entries] == ["One"]

    @pytest.mark.asyncio
    async def test_merges_hubs_newest_first(self, db):
        web = FakeWeb({
            FEED_A: (200, hub_feed(
                "Hub A",
                ("A old", "https://x/1", "2023-01-01T00:00:00Z", None),
                ("A new", "https://x/2", "2024-03-01T00:00:00Z", None),
            )),
            FEED_B: (200, hub_feed("Hub B", ("B mid", "https://y/1", "2023-06-01T00:00:00Z", None))),
        })

        async with web.client() as client:
            widget = WidgetFeedClient(db, client=client, ttl_seconds=1800, clock=Clock())
            feed = await widget.fetch_all([HUB_A, HUB_B])

        assert [e.title for e in feed.entries] == ["A new", "B mid", "A old"]
        assert [e["provenance"] for e in feed.to_dict(count=2)["entries"]] == ["Hub A", "Hub B"]
