"""
Peer federation client.

Reads another hub's published manifest and aggregated feed. Federation is
one level deep: the peer's own peers are never followed.
"""

import json
from typing import Optional

import httpx

from .base import Entry, FeedSource, Outcome, PeerMeta
from .feed import fetch_feed
from .http import client_session, fetch_text
from ..config import get_settings
from ..errors import HttpFailure, NetworkFailure, ParseFailure
from ..logging_conf import get_logger
from ..manifest import PeerRef
from ..normalize import strip_trailing_slashes

logger = get_logger(__name__)

MANIFEST_FILENAME = "subnet.json"
FEED_FILENAME = "feed.xml"


def peer_manifest_url(hub: str) -> str:
    return f"{strip_trailing_slashes(hub)}/{MANIFEST_FILENAME}"


def peer_feed_url(hub: str) -> str:
    return f"{strip_trailing_slashes(hub)}/{FEED_FILENAME}"


def peer_meta_from_document(peer: PeerRef, body: str) -> PeerMeta:
    """
    Map a peer's manifest document onto PeerMeta.

    Raises:
        ParseFailure: body is not a JSON object
    """
    try:
        data = json.loads(body)
    except ValueError as e:
        raise ParseFailure(f"malformed manifest: {e}") from e
    if not isinstance(data, dict):
        raise ParseFailure("manifest is not a JSON object")

    subnet = data.get("subnet")
    if not isinstance(subnet, dict):
        subnet = {}
    nodes = data.get("nodes")

    title = subnet.get("title")
    description = subnet.get("description")
    return PeerMeta(
        name=title if isinstance(title, str) and title.strip() else peer.name,
        hub=peer.hub,
        description=description if isinstance(description, str) and description else None,
        node_count=len(nodes) if isinstance(nodes, list) else 0,
    )


async def fetch_peer_meta(
    peer: PeerRef,
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = None,
) -> Outcome[PeerMeta]:
    """
    Resolve a peer's display identity from its manifest.

    On any failure the value falls back to the locally configured name and
    hub, without description or node count.
    """
    if timeout is None:
        timeout = get_settings().manifest_timeout
    fallback = PeerMeta(name=peer.name, hub=peer.hub)

    async with client_session(client) as session:
        try:
            body = await fetch_text(session, peer_manifest_url(peer.hub), timeout)
            meta = peer_meta_from_document(peer, body)
        except (NetworkFailure, HttpFailure, ParseFailure) as e:
            return Outcome.unreachable(fallback, str(e))

    return Outcome.success(meta)


async def fetch_peer_feed(
    peer: PeerRef,
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = None,
) -> Outcome[list[Entry]]:
    """Fetch and parse the peer's aggregated feed."""
    async with client_session(client) as session:
        return await fetch_feed(session, peer_feed_url(peer.hub), timeout)


class PeerFeedSource(FeedSource):
    """
    A federated peer hub.

    ``fetch`` resolves the peer's metadata first, then its feed; entries come
    back stamped with the peer's resolved display name.
    """

    def __init__(
        self,
        peer: PeerRef,
        manifest_timeout: Optional[float] = None,
        feed_timeout: Optional[float] = None,
    ):
        super().__init__(peer.name, peer.hub)
        self.peer = peer
        self.manifest_timeout = manifest_timeout
        self.feed_timeout = feed_timeout
        self.meta = PeerMeta(name=peer.name, hub=peer.hub)

    async def fetch(self, client: httpx.AsyncClient) -> Outcome[list[Entry]]:
        meta_outcome = await fetch_peer_meta(self.peer, client, self.manifest_timeout)
        self.meta = meta_outcome.value

        if self.meta.resolved:
            logger.info(
                "peer_meta_resolved",
                peer=self.peer.hub,
                name=self.meta.name,
                nodes=self.meta.node_count,
            )
        else:
            logger.warning(
                "peer_meta_fallback",
                peer=self.peer.hub,
                name=self.meta.name,
                reason=meta_outcome.reason,
            )

        feed_outcome = await fetch_peer_feed(self.peer, client, self.feed_timeout)
        display_name = self.meta.name or self.peer.name
        entries = [entry.with_provenance(display_name) for entry in feed_outcome.value]
        if feed_outcome.ok:
            return Outcome.success(entries)
        return Outcome.unreachable(entries, feed_outcome.reason)
