"""
Common test fixtures and configuration for dylive tests.
"""
import asyncio
import json
from typing import Any, Callable, Dict, Optional, Union

import httpx
import pytest

from dylive.config.settings_manager import Settings
from dylive.core.douyin_client import DouyinClient

Handler = Callable[[httpx.Request], httpx.Response]


def html(text: str, status_code: int = 200) -> Handler:
    return lambda request: httpx.Response(status_code, text=text)


def json_reply(data: Any) -> Handler:
    return lambda request: httpx.Response(200, content=json.dumps(data).encode("utf-8"),
                                          headers={"content-type": "application/json"})


def redirect(location: str) -> Handler:
    return lambda request: httpx.Response(302, headers={"location": location})


def connection_error(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


class MockDouyin:
    """
    Routes requests by "host/path" to handlers and records them.
    Unknown routes answer 404.
    """

    def __init__(self, routes: Optional[Dict[str, Union[Handler, str]]] = None):
        self.routes: Dict[str, Union[Handler, str]] = dict(routes or {})
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f"{request.url.host}{request.url.path}"
        handler = self.routes.get(key)
        if handler is None:
            return httpx.Response(404, text="not found")
        if isinstance(handler, str):
            return httpx.Response(200, text=handler)
        return handler(request)

    def client(self, settings: Optional[Settings] = None) -> DouyinClient:
        return DouyinClient(settings, transport=httpx.MockTransport(self))


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def douyin() -> MockDouyin:
    """A mock Douyin with no routes; tests add the pages they need."""
    return MockDouyin()


@pytest.fixture
def settings() -> Settings:
    return Settings(http_timeout=2.0)
