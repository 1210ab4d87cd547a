"""Workspace backend adapters used by the persistence synchronizer.

``WorkspaceBackend`` is the save/load contract.  ``RepositoryBackend``
talks to a repository in the same process; ``HttpWorkspaceBackend`` and
``HttpBeaconTransport`` talk to the ``/api/workspaces`` routes.
"""
from __future__ import annotations

import asyncio
from typing import Any, Protocol

import httpx

from aicon_backend.core.log import get_logger
from aicon_backend.core.schema import CanvasElement, Connection, Viewport, WorkspaceSnapshot
from aicon_backend.domain import WorkspaceRecord
from aicon_backend.infrastructure.workspaces import WorkspaceRepository

logger = get_logger(__name__)


class WorkspaceBackend(Protocol):
    """Persistence contract for an open canvas."""

    async def save(
        self,
        workspace_id: str,
        elements: list[dict[str, Any]],
        connections: list[dict[str, Any]],
        viewport: dict[str, Any] | None = None,
        title: str | None = None,
    ) -> bool: ...

    async def load(self, workspace_id: str) -> WorkspaceSnapshot | None: ...

    async def rename(self, workspace_id: str, title: str) -> bool: ...


class UnloadTransport(Protocol):
    """Fire-and-forget channel that may outlive the current page/session."""

    def send(self, payload: dict[str, Any]) -> bool: ...


def record_to_snapshot(record: WorkspaceRecord) -> WorkspaceSnapshot:
    return WorkspaceSnapshot(
        workspace_id=record.workspace_id,
        title=record.title or "Untitled Canvas",
        viewport=Viewport.model_validate(record.viewport or {}),
        elements=[CanvasElement.model_validate(item) for item in record.elements],
        connections=[Connection.model_validate(item) for item in record.connections],
        last_saved=record.last_saved,
    )


class RepositoryBackend:
    """In-process backend over a :class:`WorkspaceRepository`."""

    def __init__(self, repository: WorkspaceRepository) -> None:
        self._repository = repository

    async def save(
        self,
        workspace_id: str,
        elements: list[dict[str, Any]],
        connections: list[dict[str, Any]],
        viewport: dict[str, Any] | None = None,
        title: str | None = None,
    ) -> bool:
        return self._repository.save_canvas(workspace_id, elements, connections, viewport=viewport, title=title)

    async def load(self, workspace_id: str) -> WorkspaceSnapshot | None:
        record = self._repository.get_workspace(workspace_id)
        return record_to_snapshot(record) if record is not None else None

    async def rename(self, workspace_id: str, title: str) -> bool:
        return self._repository.rename_workspace(workspace_id, title)


class HttpWorkspaceBackend:
    """Client for the workspace HTTP API."""

    def __init__(
        self,
        api_base: str,
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base = api_base.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    async def save(
        self,
        workspace_id: str,
        elements: list[dict[str, Any]],
        connections: list[dict[str, Any]],
        viewport: dict[str, Any] | None = None,
        title: str | None = None,
    ) -> bool:
        payload: dict[str, Any] = {"elements": elements, "connections": connections}
        if viewport is not None:
            payload["viewport"] = viewport
        if title:
            payload["title"] = title
        response = await self._client.put(f"{self._base}/workspaces/{workspace_id}/canvas", json=payload)
        if response.is_error:
            logger.warning("Save rejected for %s: HTTP %s", workspace_id, response.status_code)
            return False
        return True

    async def load(self, workspace_id: str) -> WorkspaceSnapshot | None:
        response = await self._client.get(f"{self._base}/workspaces/{workspace_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return WorkspaceSnapshot.model_validate(response.json())

    async def rename(self, workspace_id: str, title: str) -> bool:
        response = await self._client.patch(f"{self._base}/workspaces/{workspace_id}", json={"title": title})
        return not response.is_error

    async def aclose(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            await self._client.aclose()


class HttpBeaconTransport:
    """Posts unload payloads to the save-beacon route without awaiting them."""

    def __init__(
        self,
        api_base: str,
        *,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = f"{api_base.rstrip('/')}/workspaces/save-beacon"
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._pending: set[asyncio.Task[None]] = set()

    async def _post(self, payload: dict[str, Any]) -> None:
        try:
            response = await self._client.post(self._url, json=payload)
            if response.is_error:
                logger.warning("Save beacon rejected: HTTP %s", response.status_code)
        except httpx.HTTPError as exc:
            logger.warning("Save beacon failed: %s", exc)

    def send(self, payload: dict[str, Any]) -> bool:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        task = loop.create_task(self._post(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def wait_sent(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
