"""
Feed sources.

Provides the pieces the aggregation engine is built from:
- Tag extraction and RSS/Atom parsing (regex based, tolerant of bad markup)
- Back-link verification of member nodes
- Peer hub federation
- Published-feed parsing for the widget (XML parser based)
"""

from .base import Entry, FeedSource, Outcome, PeerMeta, VerificationResult

__all__ = [
    "Entry",
    "FeedSource",
    "Outcome",
    "PeerMeta",
    "VerificationResult",
]
