"""Shared fixtures: a fake network built on httpx.MockTransport."""

from typing import Callable, Union

import httpx
import pytest

from subnet_hub.db import Database

Route = Union[tuple[int, str], Exception, Callable[[httpx.Request], httpx.Response]]


class FakeWeb:
    """
    Maps URLs to canned responses and records every request made.

    A route is ``(status, body)``, an exception to raise, or a callable.
    Unknown URLs answer 404.
    """

    def __init__(self, routes: dict[str, Route] | None = None):
        self.routes: dict[str, Route] = dict(routes or {})
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, text="not found")
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, text=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler),
            headers={"User-Agent": "subnet-hub-builder/1.0"},
            follow_redirects=True,
        )

    def requested(self, url: str) -> bool:
        return any(str(r.url) == url for r in self.requests)


def connect_error(url: str) -> httpx.ConnectError:
    return httpx.ConnectError("connection refused", request=httpx.Request("GET", url))


def read_timeout(url: str) -> httpx.ReadTimeout:
    return httpx.ReadTimeout("timed out", request=httpx.Request("GET", url))


def atom_feed(*entries: tuple[str, str, str]) -> str:
    """Atom document with one entry per ``(title, link, published)``."""
    body = "".join(
        f"<entry><title>{title}</title>"
        f'<link href="{link}" rel="alternate"/>'
        f"<published>{published}</published></entry>"
        for title, link, published in entries
    )
    return f'<?xml version="1.0"?><feed xmlns="http://www.w3.org/2005/Atom">{body}</feed>'


def backlink_page(hub: str) -> str:
    return f'<html><head><link rel="subnet" href="{hub}"></head><body></body></html>'


@pytest.fixture
def db(tmp_path) -> Database:
    database = Database(f"sqlite:///{tmp_path / 'hub.db'}")
    database.create_tables()
    return database
