"""Shared fixtures: a scripted drafting backend behind httpx.MockTransport."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from content_engine.gateway.http import BackendGateway
from content_engine.workspace.controller import Workspace

BASE_URL = "https://backend.test/api"


@pytest.fixture
def anyio_backend() -> str:
    """Ensure AnyIO uses the asyncio event loop backend."""

    return "asyncio"


class BackendStub:
    """Answers backend endpoints with canned responses and records every request."""

    def __init__(self) -> None:
        self.responses: dict[str, httpx.Response | Exception] = {
            "health": httpx.Response(200, json={"status": "ok"}),
        }
        self.requests: list[httpx.Request] = []

    def reply(self, endpoint: str, status: int = 200, json_body: Any = None, text: str | None = None) -> None:
        if text is not None:
            self.responses[endpoint] = httpx.Response(status, text=text)
        else:
            self.responses[endpoint] = httpx.Response(status, json=json_body)

    def fail(self, endpoint: str, exc: Exception) -> None:
        self.responses[endpoint] = exc

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path.removeprefix("/api/")
        outcome = self.responses.get(endpoint)
        if outcome is None:
            return httpx.Response(404, text=f"no stub for {endpoint}")
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(
            outcome.status_code, content=outcome.content, headers=outcome.headers
        )

    def calls(self, endpoint: str) -> list[dict[str, Any]]:
        return [
            json.loads(r.content) if r.content else {}
            for r in self.requests
            if r.url.path.removeprefix("/api/") == endpoint
        ]


def make_gateway(handler, base_url: str = BASE_URL) -> BackendGateway:
    return BackendGateway(base_url=base_url, transport=httpx.MockTransport(handler))


@pytest.fixture
def backend() -> BackendStub:
    return BackendStub()


@pytest.fixture
def gateway(backend: BackendStub) -> BackendGateway:
    return make_gateway(backend)


@pytest.fixture
def workspace(gateway: BackendGateway) -> Workspace:
    return Workspace(backend=gateway)
