"""Shared fixtures for tests."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
import pytest


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeRegistry:
    """Routes requests by scheme://host/path to canned responses and records them."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[str, Any] = {}

    def add(
        self,
        url: str,
        status_code: int = 200,
        json: Any = None,
        text: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.routes[url] = dict(status_code=status_code, json=json, text=text, headers=headers)

    def add_handler(self, url: str, handler) -> None:
        self.routes[url] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        route = self.routes.get(key)
        if route is None:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        if callable(route):
            return route(request)
        if route["text"] is not None:
            return httpx.Response(
                route["status_code"], text=route["text"], headers=route["headers"]
            )
        return httpx.Response(
            route["status_code"], json=route["json"], headers=route["headers"]
        )

    def requests_to(self, host: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.host == host]


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 9, 4, 8, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def fake_registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def http_client(fake_registry) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_registry.handler))
