"""Pytest configuration for issuetodo tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install, and provides a routed fake of
``requests.Session`` so REST traffic can be asserted without a network.
"""

from __future__ import annotations

import json
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from issuetodo.github_rest import GitHubRestClient  # noqa: E402
from issuetodo.sync_client import IssueSyncClient  # noqa: E402

# Load pytest-asyncio explicitly so @pytest.mark.asyncio tests run
pytest_plugins = ["pytest_asyncio"]


@dataclass
class FakeResponse:
    status_code: int
    payload: Any = None

    def json(self) -> Any:
        if isinstance(self.payload, str):
            return json.loads(self.payload)
        return self.payload

    @property
    def text(self) -> str:
        if self.payload is None:
            return ""
        if isinstance(self.payload, (dict, list)):
            return json.dumps(self.payload)
        return str(self.payload)


@dataclass
class _Route:
    method: str
    path: str
    responses: list[FakeResponse]
    params: dict[str, Any] | None = None

    def matches(self, method: str, path: str, params: dict[str, Any] | None) -> bool:
        if method != self.method or path != self.path:
            return False
        if self.params is None:
            return True
        given = params or {}
        return all(given.get(k) == v for k, v in self.params.items())


@dataclass
class RecordedRequest:
    method: str
    path: str
    params: dict[str, Any] | None
    json: Any
    headers: dict[str, str]


@dataclass
class RoutedSession:
    """Stands in for ``requests.Session``; answers by method + path."""

    headers: dict[str, str] = field(default_factory=dict)
    calls: list[RecordedRequest] = field(default_factory=list)
    _routes: list[_Route] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def route(
        self,
        method: str,
        path: str,
        *responses: FakeResponse,
        params: dict[str, Any] | None = None,
    ) -> None:
        """Register responses; the last one repeats once the others are used."""
        self._routes.append(_Route(method, path, list(responses), params))

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json: Any | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> FakeResponse:
        path = urlparse(url).path
        with self._lock:
            self.calls.append(RecordedRequest(method, path, params, json, headers))
            for route in reversed(self._routes):
                if route.matches(method, path, params):
                    if len(route.responses) > 1:
                        return route.responses.pop(0)
                    return route.responses[0]
        raise AssertionError(f"No response routed for {method} {path} {params}")

    def calls_to(self, method: str, path: str) -> list[RecordedRequest]:
        return [c for c in self.calls if c.method == method and c.path == path]


class Payloads:
    """Builders for GitHub REST payloads."""

    @staticmethod
    def user(login: str = "octo", id: int = 1) -> dict[str, Any]:
        return {"id": id, "login": login, "avatar_url": None}

    @staticmethod
    def repo(full_name: str = "acme/todo", id: int = 10) -> dict[str, Any]:
        owner, name = full_name.split("/")
        return {
            "id": id,
            "name": name,
            "full_name": full_name,
            "owner": Payloads.user(owner, id + 1000),
            "private": False,
            "description": None,
        }

    @staticmethod
    def label(name: str, id: int = 100) -> dict[str, Any]:
        return {"id": id, "name": name, "color": "ededed"}

    @staticmethod
    def milestone(number: int, title: str = "Sprint") -> dict[str, Any]:
        return {"id": 500 + number, "number": number, "title": title, "state": "open"}

    @staticmethod
    def issue(number: int, id: int | None = None, **overrides: Any) -> dict[str, Any]:
        base: dict[str, Any] = {
            "id": id if id is not None else 9000 + number,
            "number": number,
            "title": f"Issue {number}",
            "body": None,
            "state": "open",
            "assignees": [],
            "labels": [],
            "milestone": None,
            "user": Payloads.user(),
        }
        base.update(overrides)
        return base

    @staticmethod
    def summary(number: int, id: int | None = None, title: str | None = None) -> dict[str, Any]:
        return {
            "id": id if id is not None else 9000 + number,
            "number": number,
            "title": title or f"Issue {number}",
            "html_url": f"https://github.com/acme/todo/issues/{number}",
        }


@pytest.fixture
def payloads() -> type[Payloads]:
    return Payloads


@pytest.fixture
def http() -> RoutedSession:
    return RoutedSession()


@pytest.fixture
def sync_client(http: RoutedSession) -> IssueSyncClient:
    rest = GitHubRestClient(token="gho_testtoken", session=http)  # type: ignore[arg-type]
    return IssueSyncClient(rest)


@pytest.fixture
def ok():
    def _ok(payload: Any = None, status: int = 200) -> FakeResponse:
        return FakeResponse(status, payload)

    return _ok
