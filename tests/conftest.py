"""Shared fakes: a scripted requests.Session and a fixed settings manager."""

from typing import Any, Dict, List, Optional

import pytest
import requests

from core.event_bus import EventBus
from models.settings import HomeStatsConfig


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, content: bytes = b"", url: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.content = content
        self.url = url

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Routes (method, url) to a canned response, an exception or a callable."""

    def __init__(self):
        self.routes: Dict[tuple, Any] = {}
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def add(self, method: str, url: str, response=None, payload: Any = None, status: int = 200):
        if response is None:
            response = FakeResponse(status, payload, url=url)
        self.routes[(method, url)] = response

    def request(self, method, url, params=None, json=None, headers=None, timeout=None, verify=None):
        call = {
            "method": method,
            "url": url,
            "params": params,
            "json": json,
            "headers": headers or {},
            "timeout": timeout,
            "verify": verify,
        }
        self.calls.append(call)
        route = self.routes.get((method, url))
        if route is None:
            return FakeResponse(404, None, url=url)
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(call)
        return route

    def calls_to(self, url: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["url"] == url]

    def close(self):
        self.closed = True


class FakeSettings:
    """Stands in for ConfigSyncManager where only reads are needed."""

    def __init__(self, config: Optional[HomeStatsConfig] = None):
        self.config = config or HomeStatsConfig()

    def current_config(self) -> HomeStatsConfig:
        return self.config

    def close(self):
        pass


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def connection_error() -> requests.ConnectionError:
    return requests.ConnectionError("connection refused")


def make_config(**blocks) -> HomeStatsConfig:
    """HomeStatsConfig from camelCase-or-snake_case service blocks."""
    return HomeStatsConfig.model_validate(blocks)
