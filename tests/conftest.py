"""Shared fixtures: a fake backend behind httpx.MockTransport and a recording logger."""

import json
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from app import create_app
from core.config import Config


class RecordingLogger:
    """RequestLogger that keeps every call in memory."""

    def __init__(self) -> None:
        self.incoming: list[tuple[str, str]] = []
        self.forwards: list[dict[str, Any]] = []
        self.rejections: list[tuple[str, int, str]] = []
        self.errors: list[tuple[str, int, str]] = []

    def log_incoming(self, method, path, headers, body) -> None:
        self.incoming.append((method, path))

    def log_forward(self, route, method, path, status, *, outcome, elapsed_ms) -> None:
        self.forwards.append(
            {"route": route, "method": method, "path": path, "status": status, "outcome": outcome}
        )

    def log_rejection(self, route, status, message) -> None:
        self.rejections.append((route, status, message))

    def log_error(self, route, status, message) -> None:
        self.errors.append((route, status, message))


class FakeBackend:
    """Scripted backend double that records every request it receives."""

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self._status = 200
        self._body: Any = {"ok": True}
        self._raw: bytes | None = None
        self._error: type[httpx.RequestError] | None = None

    def reply(self, status_code: int = 200, body: Any = None, *, raw: bytes | None = None) -> None:
        self._status = status_code
        self._body = body
        self._raw = raw
        self._error = None

    def fail(self, error: type[httpx.RequestError] = httpx.ConnectError) -> None:
        self._error = error

    @property
    def last(self) -> httpx.Request:
        return self.calls[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.content) if self.last.content else None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self._error is not None:
            raise self._error("backend down", request=request)
        if self._raw is not None:
            return httpx.Response(self._status, content=self._raw)
        if self._body is None:
            return httpx.Response(self._status)
        return httpx.Response(self._status, json=self._body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def app(config, logger, backend):
    return create_app(config, logger, transport=backend.transport)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": "Bearer test-token-123"}
