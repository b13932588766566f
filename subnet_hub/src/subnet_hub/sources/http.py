"""
Outbound HTTP helpers.

All requests share one identifying User-Agent and follow redirects up to
httpx's default limit. Failures are raised as NetworkFailure/HttpFailure for
the calling component to convert into an Outcome.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from ..config import get_settings
from ..errors import HttpFailure, NetworkFailure


def create_client(user_agent: Optional[str] = None) -> httpx.AsyncClient:
    """Create the shared client used for one build."""
    user_agent = user_agent or get_settings().user_agent
    return httpx.AsyncClient(
        headers={"User-Agent": user_agent},
        follow_redirects=True,
    )


@asynccontextmanager
async def client_session(
    client: Optional[httpx.AsyncClient] = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield ``client`` if given, otherwise a fresh client closed on exit."""
    if client is not None:
        yield client
        return
    async with create_client() as owned:
        yield owned


async def fetch_text(client: httpx.AsyncClient, url: str, timeout: float) -> str:
    """
    GET ``url`` and return the decoded body.

    Raises:
        NetworkFailure: timeout, DNS or connection error, malformed URL
        HttpFailure: non-2xx response
    """
    try:
        response = await client.get(url, timeout=timeout)
    except httpx.TimeoutException as e:
        raise NetworkFailure(f"timeout after {timeout:g}s") from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise NetworkFailure(str(e) or type(e).__name__) from e

    if not response.is_success:
        raise HttpFailure(response.status_code, url)

    return response.text
