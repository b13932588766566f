"""
Aggregation engine.

Coordinates one build of the hub:
1. Verify every node's back-link (all checks settle before anything is
   published)
2. Fetch feeds of active nodes and of peer hubs concurrently
3. Merge everything once all sources have reported
4. Sort newest first (undated entries last)

A failing node or peer contributes zero entries and never stops the build.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import httpx

from .config import get_settings
from .logging_conf import get_logger
from .manifest import HubManifest, Node
from .normalize import sort_entries
from .sources.backlink import verify_backlink
from .sources.base import Entry, FeedSource, Outcome, PeerMeta, VerificationResult
from .sources.feed import NodeFeedSource
from .sources.http import client_session
from .sources.peers import PeerFeedSource

logger = get_logger(__name__)


@dataclass
class NodeStatus:
    """A node paired with its back-link verification result."""
    node: Node
    result: VerificationResult

    @property
    def active(self) -> bool:
        return self.result.ok


@dataclass
class SourceReport:
    """What one source contributed to the build."""
    kind: str  # "node" or "peer"
    name: str
    url: str
    entries: int = 0
    ok: bool = True
    reason: Optional[str] = None


@dataclass
class BuildResult:
    """Everything the renderers need from one aggregation run."""
    build_id: str
    manifest: HubManifest
    node_statuses: list[NodeStatus] = field(default_factory=list)
    entries: list[Entry] = field(default_factory=list)
    peers: list[PeerMeta] = field(default_factory=list)
    sources: list[SourceReport] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def active_nodes(self) -> list[Node]:
        return [s.node for s in self.node_statuses if s.active]

    @property
    def inactive_nodes(self) -> list[NodeStatus]:
        return [s for s in self.node_statuses if not s.active]

    @property
    def failed_sources(self) -> list[SourceReport]:
        return [s for s in self.sources if not s.ok]

    def summary(self) -> dict:
        return {
            "build_id": self.build_id,
            "hub": self.manifest.hub,
            "nodes_total": len(self.node_statuses),
            "nodes_active": len(self.active_nodes),
            "peers": len(self.peers),
            "entries": len(self.entries),
            "sources_failed": len(self.failed_sources),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


def generate_build_id() -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"build_{timestamp}_{uuid.uuid4().hex[:8]}"


class HubAggregator:
    """
    Runs the verify → fetch → merge → sort pipeline for one manifest.
    """

    def __init__(
        self,
        manifest: HubManifest,
        client: Optional[httpx.AsyncClient] = None,
        max_concurrent: Optional[int] = None,
    ):
        """
        Args:
            manifest: Hub manifest to build
            client: Shared HTTP client (a private one is created if omitted)
            max_concurrent: Max outbound requests in flight
        """
        self.settings = get_settings()
        self.manifest = manifest
        self.client = client
        self.max_concurrent = max_concurrent or self.settings.max_concurrent_fetches

    async def verify_nodes(self, client: httpx.AsyncClient) -> list[NodeStatus]:
        """
        Check every node's back-link.

        Results are returned only after all checks have settled, in manifest
        order.
        """
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def check(node: Node) -> NodeStatus:
            async with semaphore:
                result = await verify_backlink(
                    node.url,
                    self.manifest.hub,
                    client=client,
                    timeout=self.settings.verify_timeout,
                )
            if result.ok:
                logger.info("node_verified", node=node.name, url=node.url)
            else:
                logger.warning(
                    "node_inactive",
                    node=node.name,
                    url=node.url,
                    reason=result.reason,
                )
            return NodeStatus(node=node, result=result)

        statuses = await asyncio.gather(*(check(n) for n in self.manifest.nodes))

        if statuses:
            logger.info(
                "nodes_verified",
                active=sum(1 for s in statuses if s.active),
                total=len(statuses),
            )
        return list(statuses)

    async def fetch_sources(
        self,
        client: httpx.AsyncClient,
        sources: list[FeedSource],
    ) -> list[Outcome[list[Entry]]]:
        """Fetch all sources concurrently; outcomes keep the input order."""
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def fetch_one(source: FeedSource) -> Outcome[list[Entry]]:
            async with semaphore:
                return await source.fetch(client)

        return list(await asyncio.gather(*(fetch_one(s) for s in sources)))

    def _node_sources(self, nodes: list[Node]) -> list[NodeFeedSource]:
        return [
            NodeFeedSource(n.name, n.feed, timeout=self.settings.feed_timeout)
            for n in nodes
        ]

    def _peer_sources(self) -> list[PeerFeedSource]:
        return [
            PeerFeedSource(
                p,
                manifest_timeout=self.settings.manifest_timeout,
                feed_timeout=self.settings.feed_timeout,
            )
            for p in self.manifest.peers
        ]

    async def run(self, build_id: Optional[str] = None) -> BuildResult:
        """Execute one aggregation run."""
        result = BuildResult(
            build_id=build_id or generate_build_id(),
            manifest=self.manifest,
        )

        logger.info(
            "build_started",
            hub=self.manifest.label,
            nodes=len(self.manifest.nodes),
            peers=len(self.manifest.peers),
        )

        async with client_session(self.client) as client:
            result.node_statuses = await self.verify_nodes(client)

            active_nodes = result.active_nodes
            node_sources = self._node_sources(active_nodes)
            peer_sources = self._peer_sources()

            outcomes = await self.fetch_sources(client, [*node_sources, *peer_sources])

        node_outcomes = outcomes[:len(node_sources)]
        peer_outcomes = outcomes[len(node_sources):]

        merged: list[Entry] = []

        # Local entries speak for this hub, not for the member site.
        for node, outcome in zip(active_nodes, node_outcomes):
            entries = [
                e.with_default_author(node.name).with_provenance(self.manifest.hub)
                for e in outcome.value
            ]
            merged.extend(entries)
            result.sources.append(
                self._report("node", node.name, node.feed, entries, outcome)
            )

        for source, outcome in zip(peer_sources, peer_outcomes):
            merged.extend(outcome.value)
            result.peers.append(source.meta)
            result.sources.append(
                self._report("peer", source.meta.name, source.peer.hub, outcome.value, outcome)
            )

        result.entries = sort_entries(merged)
        result.completed_at = datetime.now(timezone.utc)

        logger.info(
            "build_aggregated",
            entries=len(result.entries),
            active_nodes=len(active_nodes),
            peers=len(result.peers),
            failed_sources=len(result.failed_sources),
        )
        return result

    @staticmethod
    def _report(
        kind: str,
        name: str,
        url: str,
        entries: list[Entry],
        outcome: Outcome,
    ) -> SourceReport:
        if outcome.ok:
            logger.info(f"{kind}_feed_fetched", source=name, url=url, entries=len(entries))
        else:
            logger.warning(f"{kind}_feed_failed", source=name, url=url, reason=outcome.reason)
        return SourceReport(
            kind=kind,
            name=name,
            url=url,
            entries=len(entries),
            ok=outcome.ok,
            reason=outcome.reason,
        )


async def aggregate(
    manifest: HubManifest,
    client: Optional[httpx.AsyncClient] = None,
) -> BuildResult:
    """Convenience wrapper around HubAggregator.run."""
    return await HubAggregator(manifest, client=client).run()
