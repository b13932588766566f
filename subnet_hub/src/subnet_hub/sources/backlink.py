"""
Back-link verification.

A node is a member of the subnet only while its HTML declares
``<link rel="subnet" href="HUB_URL">``. Attribute order does not matter and
trailing slashes on either URL are ignored.
"""

from typing import Optional

import httpx

from .base import VerificationResult
from .http import client_session, fetch_text
from .tags import iter_tag_attrs
from ..config import get_settings
from ..errors import HttpFailure, NetworkFailure, VerificationFailure
from ..logging_conf import get_logger
from ..normalize import strip_trailing_slashes

logger = get_logger(__name__)

BACKLINK_REL = "subnet"


def find_backlink(markup: str, hub_url: str) -> None:
    """
    Check every ``<link>`` in ``markup`` for a back-link to ``hub_url``.

    Raises:
        VerificationFailure: no subnet link, or none pointing at this hub
    """
    hub = strip_trailing_slashes(hub_url)
    declared = []

    for attrs in iter_tag_attrs(markup, "link"):
        if attrs.get("rel", "").strip().lower() != BACKLINK_REL:
            continue
        href = strip_trailing_slashes(attrs.get("href", ""))
        if href == hub:
            return
        if href:
            declared.append(href)

    if declared:
        raise VerificationFailure(f"link tag points to {', '.join(declared)}")
    raise VerificationFailure("link tag not found")


async def verify_backlink(
    site_url: str,
    hub_url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = None,
) -> VerificationResult:
    """
    Fetch ``site_url`` and check it links back to ``hub_url``.

    Never raises; every failure becomes ``VerificationResult(ok=False)``.
    """
    if timeout is None:
        timeout = get_settings().verify_timeout

    async with client_session(client) as session:
        try:
            markup = await fetch_text(session, site_url, timeout)
            find_backlink(markup, hub_url)
        except (NetworkFailure, HttpFailure, VerificationFailure) as e:
            logger.debug("backlink_check_failed", url=site_url, reason=str(e))
            return VerificationResult(ok=False, reason=str(e) or "fetch failed")

    return VerificationResult(ok=True)
