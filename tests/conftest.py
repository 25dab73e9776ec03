"""Shared fixtures: an in-memory store and a fake site served over httpx.MockTransport."""

from typing import Callable, Dict, List, Optional, Union

import httpx
import pytest

from swallows.config import CrawlConfig
from swallows.database import LocalSqliteDatabase

PageEntry = Union[str, Callable[[httpx.Request], httpx.Response]]


class FakeSite:
    """Serves HTML by path; unknown paths are 404s."""

    def __init__(self, pages: Dict[str, PageEntry], robots: Optional[str] = None):
        self.pages = pages
        self.robots = robots
        self.requested: List[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requested.append(path)

        if path == "/robots.txt":
            if self.robots is None:
                return httpx.Response(404, text="Not found")
            return httpx.Response(200, text=self.robots)

        entry = self.pages.get(path)
        if entry is None:
            return httpx.Response(404, text="Not found")
        if callable(entry):
            return entry(request)
        return httpx.Response(200, html=entry)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def page_requests(self) -> List[str]:
        return [path for path in self.requested if path != "/robots.txt"]


@pytest.fixture
def db():
    database = LocalSqliteDatabase(db_url="sqlite:///:memory:")
    yield database
    database.close()


@pytest.fixture
def fast_config():
    """Config with short timeouts so pause polling stays quick."""
    return CrawlConfig(timeout=5, pause_poll_interval=0.01)
