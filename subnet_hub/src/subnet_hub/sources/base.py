"""
Base types shared by the feed sources and the aggregation engine.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Generic, Optional, TypeVar

import httpx

T = TypeVar("T")


@dataclass(frozen=True)
class Entry:
    """
    One syndicated item.

    Parsers never set ``provenance_name``; the aggregation engine stamps it
    when the entry is merged. Entries have no identity beyond ``link`` and
    the same link may legitimately appear more than once.
    """
    title: str
    link: str
    published: Optional[datetime] = None
    author: Optional[str] = None
    provenance_name: Optional[str] = None

    @property
    def published_iso(self) -> Optional[str]:
        """Published instant as ISO-8601 with a ``Z`` suffix."""
        # normalize imports this module.
        from ..normalize import format_timestamp

        if self.published is None:
            return None
        return format_timestamp(self.published)

    def with_provenance(self, name: str) -> "Entry":
        return replace(self, provenance_name=name)

    def with_default_author(self, name: str) -> "Entry":
        if self.author:
            return self
        return replace(self, author=name)

    def __str__(self) -> str:
        return f"[{self.provenance_name or '-'}] {self.title[:60]}"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "title": self.title,
            "link": self.link,
            "published": self.published_iso,
            "author": self.author,
            "provenance": self.provenance_name,
        }


@dataclass(frozen=True)
class VerificationResult:
    """Result of checking one node for its back-link."""
    ok: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class PeerMeta:
    """
    A peer hub as shown in the peer directory.

    ``description`` and ``node_count`` are only known when the peer's
    manifest could be fetched.
    """
    name: str
    hub: str
    description: Optional[str] = None
    node_count: Optional[int] = None

    @property
    def resolved(self) -> bool:
        return self.node_count is not None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "hub": self.hub,
            "description": self.description,
            "node_count": self.node_count,
        }


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """
    Result of a call across a network boundary.

    A failed outcome still carries a usable ``value`` (empty list, fallback
    metadata) so the pipeline can continue; ``reason`` says what went wrong.
    """
    value: T
    ok: bool = True
    reason: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def unreachable(cls, default: T, reason: str) -> "Outcome[T]":
        return cls(value=default, ok=False, reason=reason)


class FeedSource(ABC):
    """
    Abstract base class for anything that contributes entries to a build.

    Local nodes and peer hubs both implement this interface.
    """

    def __init__(self, name: str, url: str):
        """
        Initialize feed source.

        Args:
            name: Human-readable source name
            url: Feed URL or hub URL
        """
        self.name = name
        self.url = url

    @abstractmethod
    async def fetch(self, client: httpx.AsyncClient) -> Outcome[list[Entry]]:
        """
        Fetch and parse this source's entries.

        Returns:
            Outcome whose value is the (possibly empty) entry list
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, url={self.url!r})"
