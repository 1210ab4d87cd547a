"""Application service layer for workspace persistence."""
from __future__ import annotations

from numbers import Real
from typing import Any, Iterable

from pydantic import ValidationError

from aicon_backend.core.canvas import DEFAULT_TITLE
from aicon_backend.core.log import get_logger
from aicon_backend.core.schema import CanvasElement, Connection, Viewport, WorkspaceSnapshot
from aicon_backend.domain import WorkspaceVersion
from aicon_backend.infrastructure import (
    InMemoryWorkspaceRepository,
    RepositoryBackend,
    WorkspaceRepository,
    record_to_snapshot,
)

logger = get_logger(__name__)

_GEOMETRY = ("x", "y", "width", "height")


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _valid_beacon_element(item: object) -> bool:
    if not isinstance(item, dict):
        return False
    if item.get("id") is None or item.get("id") == "" or not item.get("type"):
        return False
    return all(_is_number(item.get(key)) for key in _GEOMETRY)


def version_payload(version: WorkspaceVersion) -> dict[str, Any]:
    return {
        "version": version.version,
        "description": version.description,
        "created_at": version.created_at.isoformat() if version.created_at else None,
        "elements": version.elements,
        "connections": version.connections,
        "viewport": version.viewport,
    }


class WorkspaceService:
    """Coordinates workspace-related use cases."""

    def __init__(self, repository: WorkspaceRepository) -> None:
        self._repository = repository

    def backend(self) -> RepositoryBackend:
        """In-process :class:`WorkspaceBackend` over this service's repository."""

        return RepositoryBackend(self._repository)

    # ------------------------------------------------------------------
    # workspaces
    # ------------------------------------------------------------------
    def create_workspace(self, title: str | None = None) -> str:
        workspace_id = self._repository.create_workspace((title or "").strip() or DEFAULT_TITLE)
        logger.info("Workspace %s created", workspace_id)
        return workspace_id

    def list_workspaces(self) -> list[dict[str, object]]:
        return self._repository.list_workspaces()

    def get_snapshot(self, workspace_id: str) -> WorkspaceSnapshot | None:
        record = self._repository.get_workspace(workspace_id)
        return record_to_snapshot(record) if record is not None else None

    def rename_workspace(self, workspace_id: str, title: str) -> bool:
        return self._repository.rename_workspace(workspace_id, title)

    def delete_workspace(self, workspace_id: str) -> bool:
        return self._repository.delete_workspace(workspace_id)

    # ------------------------------------------------------------------
    # canvas persistence
    # ------------------------------------------------------------------
    def save_canvas(
        self,
        workspace_id: str,
        elements: Iterable[dict[str, Any]],
        connections: Iterable[dict[str, Any]],
        *,
        viewport: dict[str, Any] | None = None,
        title: str | None = None,
    ) -> bool:
        """Upsert the full canvas; raises ``ValidationError`` on malformed items."""

        element_payloads = [CanvasElement.model_validate(item).to_payload() for item in elements]
        connection_payloads = [Connection.model_validate(item).to_payload() for item in connections]
        viewport_payload = Viewport.model_validate(viewport).model_dump(mode="json") if viewport else None
        return self._repository.save_canvas(
            workspace_id,
            element_payloads,
            connection_payloads,
            viewport=viewport_payload,
            title=title,
        )

    def save_beacon(self, payload: dict[str, Any]) -> bool:
        """Best effort save sent while a page unloads.

        Elements without an id/type or with non numeric geometry are dropped
        instead of failing the whole request.
        """

        workspace_id = payload.get("workspaceId")
        if not workspace_id:
            raise ValueError("workspaceId is required")

        elements: list[dict[str, Any]] = []
        for item in payload.get("elements") or []:
            if not _valid_beacon_element(item):
                continue
            try:
                elements.append(CanvasElement.model_validate(item).to_payload())
            except ValidationError:
                continue
        connections: list[dict[str, Any]] = []
        for item in payload.get("connections") or []:
            try:
                connections.append(Connection.model_validate(item).to_payload())
            except ValidationError:
                continue

        dropped = len(payload.get("elements") or []) - len(elements)
        if dropped:
            logger.warning("Save beacon for %s dropped %d invalid elements", workspace_id, dropped)

        viewport = payload.get("viewport")
        try:
            viewport_payload = Viewport.model_validate(viewport).model_dump(mode="json") if viewport else None
        except ValidationError:
            viewport_payload = None
        return self._repository.save_canvas(
            str(workspace_id),
            elements,
            connections,
            viewport=viewport_payload,
            title=payload.get("title") or None,
        )

    # ------------------------------------------------------------------
    # versions
    # ------------------------------------------------------------------
    def create_version(self, workspace_id: str, description: str | None = None) -> WorkspaceVersion | None:
        return self._repository.create_version(workspace_id, description=description)

    def list_versions(self, workspace_id: str, limit: int = 50) -> list[WorkspaceVersion]:
        return self._repository.list_versions(workspace_id, limit=limit)

    def get_version(self, workspace_id: str, version: int) -> WorkspaceVersion | None:
        return self._repository.get_version(workspace_id, version)

    def reset(self) -> None:
        self._repository.reset()


_repository = InMemoryWorkspaceRepository()
_service = WorkspaceService(_repository)


def get_workspace_service() -> WorkspaceService:
    """Return the process-wide workspace service."""

    return _service


def reset_workspace_state() -> None:
    """Clear in-memory state (useful for tests)."""

    _service.reset()
