"""Remote content server API: protocol, in-memory mock and HTTP client."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import random
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

import aiohttp
from pydantic import ValidationError

from pycontent._constants import USER_AGENT
from pycontent.config import ContentConfig
from pycontent.exceptions import (
    ContentAuthError,
    ContentNotFoundError,
    ContentRemoteError,
    ContentTimeoutError,
    ContentTransientError,
)
from pycontent.models.auth import LoginResult, User
from pycontent.models.node import Node

_logger = logging.getLogger(__name__)


class ContentApi(Protocol):
    """Structural interface of the remote content server.

    Stores depend on this protocol only, so tests and demos can pass
    :class:`MockContentApi` or any scripted double.
    """

    async def get_all(self, *, token: str | None) -> list[Node]:
        ...

    async def get_one(self, node_id: int, *, token: str | None) -> Node:
        ...

    async def login(self, username: str, password: str) -> LoginResult:
        ...

    async def add_favorite(self, node_id: int, *, token: str | None) -> None:
        ...

    async def remove_favorite(self, node_id: int, *, token: str | None) -> None:
        ...


# ----------------------------------------------------------------------
# In-memory mock
# ----------------------------------------------------------------------

SAMPLE_NODES: tuple[dict[str, Any], ...] = (
    {"id": 1, "name": "Root", "type": "folder", "parent_id": None, "owner": "Admin", "created": "2024-01-15", "description": "Root folder of the content server"},
    {"id": 2, "name": "Documents", "type": "folder", "parent_id": 1, "owner": "John Doe", "created": "2024-01-16", "description": "General documents folder"},
    {"id": 3, "name": "Projects", "type": "folder", "parent_id": 1, "owner": "Jane Smith", "created": "2024-01-17", "description": "Project files and documentation"},
    {"id": 4, "name": "Invoice-2024.pdf", "type": "document", "parent_id": 2, "owner": "John Doe", "created": "2024-02-01", "description": "Annual invoice document", "size": "245 KB"},
    {"id": 5, "name": "Meeting-Notes.docx", "type": "document", "parent_id": 2, "owner": "Jane Smith", "created": "2024-02-05", "description": "Weekly meeting notes", "size": "128 KB"},
    {"id": 6, "name": "Project-Alpha", "type": "folder", "parent_id": 3, "owner": "Alice Johnson", "created": "2024-02-10", "description": "Alpha project workspace"},
    {"id": 7, "name": "Presentation.pptx", "type": "document", "parent_id": 6, "owner": "Alice Johnson", "created": "2024-02-15", "description": "Project presentation slides", "size": "3.2 MB"},
    {"id": 8, "name": "Specifications.pdf", "type": "document", "parent_id": 6, "owner": "Bob Wilson", "created": "2024-02-18", "description": "Technical specifications", "size": "892 KB"},
    {"id": 9, "name": "Archive", "type": "folder", "parent_id": 1, "owner": "Admin", "created": "2024-01-20", "description": "Archived files"},
    {"id": 10, "name": "Old-Report.xlsx", "type": "document", "parent_id": 9, "owner": "Admin", "created": "2023-12-15", "description": "Archived quarterly report", "size": "512 KB"},
)

DEMO_USER: dict[str, Any] = {"id": 1, "username": "demo", "name": "Demo User", "role": "user"}


class MockContentApi:
    """In-memory content server with simulated latency and flaky favorites.

    ``add_favorite``/``remove_favorite`` fail with
    :class:`ContentTransientError` for a ``failure_rate`` fraction of calls.
    ``calls`` counts invocations per method.
    """

    def __init__(
        self,
        *,
        nodes: Iterable[Node | Mapping[str, Any]] | None = None,
        credentials: Mapping[str, str] | None = None,
        failure_rate: float = 0.1,
        latency: float = 0.0,
        seed: int | None = None,
    ) -> None:
        source = SAMPLE_NODES if nodes is None else nodes
        self._nodes: dict[int, Node] = {}
        for item in source:
            node = item if isinstance(item, Node) else Node.model_validate(item)
            self._nodes[node.id] = node
        self._credentials = dict(credentials) if credentials is not None else {"demo": "demo"}
        self._tokens: set[str] = set()
        self._token_ids = itertools.count(1)
        self.failure_rate = failure_rate
        self.latency = latency
        self._rng = random.Random(seed)
        self.favorites: set[int] = set()
        self.calls: dict[str, int] = {}

    @classmethod
    def from_config(cls, config: ContentConfig, **kwargs: Any) -> MockContentApi:
        """Mock wired to the configured demo credentials and failure rate."""
        kwargs.setdefault("failure_rate", config.favorite_failure_rate)
        if config.username and config.password:
            kwargs.setdefault("credentials", {config.username: config.password})
        return cls(**kwargs)

    def _record_call(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1

    async def _delay(self) -> None:
        # Always yield once so concurrent callers genuinely overlap.
        await asyncio.sleep(self.latency if self.latency > 0 else 0)

    def _require_token(self, token: str | None, endpoint: str) -> None:
        if not token:
            raise ContentAuthError("Unauthorized", status_code=401, endpoint=endpoint)

    def _maybe_fail(self, message: str, endpoint: str) -> None:
        if self.failure_rate > 0 and self._rng.random() < self.failure_rate:
            raise ContentTransientError(message, status_code=503, endpoint=endpoint)

    async def get_all(self, *, token: str | None) -> list[Node]:
        self._record_call("get_all")
        await self._delay()
        self._require_token(token, "/nodes")
        return list(self._nodes.values())

    async def get_one(self, node_id: int, *, token: str | None) -> Node:
        self._record_call("get_one")
        endpoint = f"/nodes/{node_id}"
        await self._delay()
        self._require_token(token, endpoint)
        node = self._nodes.get(int(node_id))
        if node is None:
            raise ContentNotFoundError("Node not found", status_code=404, endpoint=endpoint)
        return node

    async def login(self, username: str, password: str) -> LoginResult:
        self._record_call("login")
        await self._delay()
        if self._credentials.get(username) != password:
            raise ContentAuthError("Invalid credentials", status_code=401, endpoint="/auth/login")
        token = f"mock-token-{next(self._token_ids)}"
        self._tokens.add(token)
        user = User.model_validate({**DEMO_USER, "username": username})
        return LoginResult(user=user, token=token)

    async def add_favorite(self, node_id: int, *, token: str | None) -> None:
        self._record_call("add_favorite")
        endpoint = f"/favorites/{node_id}"
        await self._delay()
        self._require_token(token, endpoint)
        self._maybe_fail("Failed to add favorite", endpoint)
        self.favorites.add(node_id)

    async def remove_favorite(self, node_id: int, *, token: str | None) -> None:
        self._record_call("remove_favorite")
        endpoint = f"/favorites/{node_id}"
        await self._delay()
        self._require_token(token, endpoint)
        self._maybe_fail("Failed to remove favorite", endpoint)
        self.favorites.discard(node_id)


# ----------------------------------------------------------------------
# HTTP client
# ----------------------------------------------------------------------


def raise_for_status(status: int, endpoint: str, text: str) -> None:
    """Map a non-2xx HTTP status to the matching content error."""
    if 200 <= status < 300:
        return
    message = f"HTTP {status} from {endpoint}: {text[:200]}"
    if status in (401, 403):
        raise ContentAuthError(message, status_code=status, endpoint=endpoint)
    if status == 404:
        raise ContentNotFoundError(message, status_code=status, endpoint=endpoint)
    if status in (408, 504):
        raise ContentTimeoutError(message, status_code=status, endpoint=endpoint)
    raise ContentTransientError(message, status_code=status, endpoint=endpoint)


def _unwrap_data(body: Any) -> Any:
    """Return ``body["data"]`` for enveloped responses, else *body*."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


class HttpContentApi:
    """aiohttp client for a REST content server.

    Endpoints: ``GET /nodes``, ``GET /nodes/{id}``, ``POST /auth/login``,
    ``POST``/``DELETE /favorites/{id}``.  Responses may be bare JSON or
    wrapped as ``{"data": ...}``.
    """

    def __init__(self, config: ContentConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        timeout = config.request_timeout if config.request_timeout > 0 else None
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        token: str | None = None,
        payload: Mapping[str, Any] | None = None,
    ) -> Any:
        headers: dict[str, str] = {"accept": "application/json", "user-agent": USER_AGENT}
        if token:
            headers["authorization"] = f"Bearer {token}"
        url = f"{self._config.base_url.rstrip('/')}{endpoint}"

        _logger.debug("%s %s", method, url)

        try:
            async with self._http.request(
                method,
                url,
                json=dict(payload) if payload is not None else None,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                raise_for_status(resp.status, endpoint, text)
        except ContentRemoteError:
            raise
        except ContentNotFoundError:
            raise
        except TimeoutError as exc:
            raise ContentTimeoutError(f"Request to {endpoint} timed out", endpoint=endpoint) from exc
        except aiohttp.ClientError as exc:
            raise ContentTransientError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc

        if not text.strip():
            return None
        try:
            return _unwrap_data(json.loads(text))
        except json.JSONDecodeError as exc:
            raise ContentTransientError(f"Invalid JSON from {endpoint}: {text[:200]}", endpoint=endpoint) from exc

    async def get_all(self, *, token: str | None) -> list[Node]:
        body = await self._request("GET", "/nodes", token=token)
        try:
            return [Node.model_validate(item) for item in body or []]
        except ValidationError as exc:
            raise ContentTransientError(f"Malformed node list: {exc.error_count()} error(s)", endpoint="/nodes") from exc

    async def get_one(self, node_id: int, *, token: str | None) -> Node:
        endpoint = f"/nodes/{node_id}"
        body = await self._request("GET", endpoint, token=token)
        try:
            return Node.model_validate(body)
        except ValidationError as exc:
            raise ContentTransientError(f"Malformed node: {exc.error_count()} error(s)", endpoint=endpoint) from exc

    async def login(self, username: str, password: str) -> LoginResult:
        body = await self._request("POST", "/auth/login", payload={"username": username, "password": password})
        try:
            return LoginResult.model_validate(body)
        except ValidationError as exc:
            raise ContentAuthError("Malformed login response", endpoint="/auth/login") from exc

    async def add_favorite(self, node_id: int, *, token: str | None) -> None:
        await self._request("POST", f"/favorites/{node_id}", token=token)

    async def remove_favorite(self, node_id: int, *, token: str | None) -> None:
        await self._request("DELETE", f"/favorites/{node_id}", token=token)
