"""Infrastructure layer for workspace persistence."""
from __future__ import annotations

import uuid
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from aicon_backend.domain import WorkspaceRecord, WorkspaceVersion


class WorkspaceRepository(Protocol):
    """Persistence contract for workspace state."""

    def create_workspace(self, title: str) -> str: ...

    def get_workspace(self, workspace_id: str) -> WorkspaceRecord | None: ...

    def list_workspaces(self) -> list[dict[str, object]]: ...

    def save_canvas(
        self,
        workspace_id: str,
        elements: list[dict[str, Any]],
        connections: list[dict[str, Any]],
        *,
        viewport: dict[str, Any] | None = None,
        title: str | None = None,
    ) -> bool: ...

    def rename_workspace(self, workspace_id: str, title: str) -> bool: ...

    def delete_workspace(self, workspace_id: str) -> bool: ...

    def create_version(self, workspace_id: str, *, description: str | None = None) -> WorkspaceVersion | None: ...

    def list_versions(self, workspace_id: str, limit: int = 50) -> list[WorkspaceVersion]: ...

    def get_version(self, workspace_id: str, version: int) -> WorkspaceVersion | None: ...

    def reset(self) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _keyed(items: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Collapse items sharing an id, last write wins, first position kept."""

    by_id: dict[str, dict[str, Any]] = {}
    for item in items:
        by_id[str(item.get("id"))] = deepcopy(item)
    return list(by_id.values())


class InMemoryWorkspaceRepository:
    """Simple in-memory repository for fast iteration and tests."""

    def __init__(self) -> None:
        self._workspaces: dict[str, WorkspaceRecord] = {}

    # ------------------------------------------------------------------
    # CRUD operations
    # ------------------------------------------------------------------
    def create_workspace(self, title: str) -> str:
        workspace_id = str(uuid.uuid4())
        now = _utcnow()
        self._workspaces[workspace_id] = WorkspaceRecord(
            workspace_id=workspace_id,
            title=title,
            created_at=now,
            updated_at=now,
        )
        return workspace_id

    def get_workspace(self, workspace_id: str) -> WorkspaceRecord | None:
        workspace = self._workspaces.get(workspace_id)
        return deepcopy(workspace) if workspace is not None else None

    def list_workspaces(self) -> list[dict[str, object]]:
        summaries: list[dict[str, object]] = []
        for workspace in self._workspaces.values():
            summaries.append(
                {
                    "workspace_id": workspace.workspace_id,
                    "title": workspace.title,
                    "elements": len(workspace.elements),
                    "connections": len(workspace.connections),
                    "updated_at": workspace.updated_at.isoformat() if workspace.updated_at else None,
                }
            )
        summaries.sort(key=lambda item: str(item["updated_at"] or ""), reverse=True)
        return summaries

    def save_canvas(
        self,
        workspace_id: str,
        elements: list[dict[str, Any]],
        connections: list[dict[str, Any]],
        *,
        viewport: dict[str, Any] | None = None,
        title: str | None = None,
    ) -> bool:
        workspace = self._workspaces.get(workspace_id)
        if workspace is None:
            return False
        workspace.elements = _keyed(elements)
        workspace.connections = _keyed(connections)
        if viewport is not None:
            workspace.viewport = dict(viewport)
        if title:
            workspace.title = title
        now = _utcnow()
        workspace.updated_at = now
        workspace.last_saved = now
        return True

    def rename_workspace(self, workspace_id: str, title: str) -> bool:
        workspace = self._workspaces.get(workspace_id)
        if workspace is None:
            return False
        workspace.title = title
        workspace.updated_at = _utcnow()
        return True

    def delete_workspace(self, workspace_id: str) -> bool:
        return self._workspaces.pop(workspace_id, None) is not None

    # ------------------------------------------------------------------
    # version history
    # ------------------------------------------------------------------
    def create_version(self, workspace_id: str, *, description: str | None = None) -> WorkspaceVersion | None:
        workspace = self._workspaces.get(workspace_id)
        if workspace is None:
            return None
        number = max((version.version for version in workspace.versions), default=0) + 1
        version = WorkspaceVersion(
            version=number,
            elements=deepcopy(workspace.elements),
            connections=deepcopy(workspace.connections),
            viewport=dict(workspace.viewport),
            description=description,
            created_at=_utcnow(),
        )
        workspace.versions.append(version)
        return deepcopy(version)

    def list_versions(self, workspace_id: str, limit: int = 50) -> list[WorkspaceVersion]:
        workspace = self._workspaces.get(workspace_id)
        if workspace is None:
            return []
        ordered = sorted(workspace.versions, key=lambda item: item.version, reverse=True)
        return deepcopy(ordered[:limit])

    def get_version(self, workspace_id: str, version: int) -> WorkspaceVersion | None:
        workspace = self._workspaces.get(workspace_id)
        if workspace is None:
            return None
        for item in workspace.versions:
            if item.version == version:
                return deepcopy(item)
        return None

    def reset(self) -> None:
        self._workspaces.clear()
