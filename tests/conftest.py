from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from editor_drafts.draft_store import DraftStore
from editor_drafts.remote_client import RemoteDraftClient
from editor_drafts.snapshot_storage import InMemorySnapshotStorage

BASE_URL = "https://backend.test"


class FakeBackend:
    """Records requests and answers them with a per-path handler."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, dict[str, Any]]] = []
        self.routes: dict[str, Callable[[dict[str, Any]], Any]] = {}

    def route(self, path: str, handler: Callable[[dict[str, Any]], Any]) -> None:
        self.routes[path] = handler

    def bodies(self, path: str) -> list[dict[str, Any]]:
        return [body for seen, body in self.requests if seen == path]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        self.requests.append((request.url.path, body))
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"ok": False, "error": "not found"})
        result = handler(body)
        if hasattr(result, "__await__"):
            result = await result
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json=result)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def storage() -> InMemorySnapshotStorage:
    return InMemorySnapshotStorage()


@pytest.fixture
def make_store(backend: FakeBackend, storage: InMemorySnapshotStorage):
    def factory(**client_kwargs: Any) -> DraftStore:
        http_client = httpx.AsyncClient(
            base_url=BASE_URL, transport=httpx.MockTransport(backend)
        )
        client_kwargs.setdefault("retry_backoff", 0)
        remote = RemoteDraftClient(base_url=BASE_URL, http_client=http_client, **client_kwargs)
        return DraftStore(storage=storage, remote=remote)

    return factory
