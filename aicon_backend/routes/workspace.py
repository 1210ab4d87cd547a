from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from pydantic import ValidationError

from aicon_backend.application import get_workspace_service
from aicon_backend.application.workspaces import version_payload

router = APIRouter(prefix="/workspaces", tags=["workspace"])


@router.get("")
async def list_workspaces() -> dict:
    service = get_workspace_service()
    items = service.list_workspaces()
    return {"items": items}


@router.post("")
async def create_workspace(payload: dict | None = None) -> dict:
    title = (payload or {}).get("title")
    if title is not None and not isinstance(title, str):
        raise HTTPException(status_code=400, detail="title must be a string")
    service = get_workspace_service()
    workspace_id = service.create_workspace(title)
    snapshot = service.get_snapshot(workspace_id)
    return {"workspaceId": workspace_id, "title": snapshot.title if snapshot else title}


@router.post("/save-beacon")
async def save_beacon(payload: dict) -> dict:
    service = get_workspace_service()
    try:
        saved = service.save_beacon(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not saved:
        raise HTTPException(status_code=404, detail="workspace not found")
    return {"success": True}


@router.get("/{workspace_id}")
async def get_workspace(workspace_id: str) -> dict:
    service = get_workspace_service()
    snapshot = service.get_snapshot(workspace_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="workspace not found")
    return snapshot.to_payload()


@router.put("/{workspace_id}/canvas")
async def save_canvas(workspace_id: str, payload: dict) -> dict:
    elements = payload.get("elements")
    connections = payload.get("connections")
    if not isinstance(elements, list) or not isinstance(connections, list):
        raise HTTPException(status_code=400, detail="elements and connections must be lists")
    viewport = payload.get("viewport")
    if viewport is not None and not isinstance(viewport, dict):
        raise HTTPException(status_code=400, detail="viewport must be an object")
    service = get_workspace_service()
    try:
        saved = service.save_canvas(
            workspace_id,
            elements,
            connections,
            viewport=viewport,
            title=payload.get("title") or None,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"invalid canvas payload: {exc.error_count()} errors") from exc
    if not saved:
        raise HTTPException(status_code=404, detail="workspace not found")
    snapshot = service.get_snapshot(workspace_id)
    last_saved = snapshot.last_saved.isoformat() if snapshot and snapshot.last_saved else None
    return {"success": True, "lastSaved": last_saved}


@router.patch("/{workspace_id}")
async def rename_workspace(workspace_id: str, payload: dict) -> dict:
    title = str(payload.get("title") or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="title is required")
    service = get_workspace_service()
    if not service.rename_workspace(workspace_id, title):
        raise HTTPException(status_code=404, detail="workspace not found")
    return {"workspaceId": workspace_id, "title": title}


@router.delete("/{workspace_id}")
async def delete_workspace(workspace_id: str) -> dict:
    service = get_workspace_service()
    if not service.delete_workspace(workspace_id):
        raise HTTPException(status_code=404, detail="workspace not found")
    return {"success": True}


@router.post("/{workspace_id}/versions")
async def create_version(workspace_id: str, payload: dict | None = None) -> dict:
    description = (payload or {}).get("description")
    service = get_workspace_service()
    version = service.create_version(workspace_id, description=description)
    if version is None:
        raise HTTPException(status_code=404, detail="workspace not found")
    return version_payload(version)


@router.get("/{workspace_id}/versions")
async def list_versions(workspace_id: str, limit: int = Query(default=50, ge=1, le=200)) -> dict:
    service = get_workspace_service()
    if service.get_snapshot(workspace_id) is None:
        raise HTTPException(status_code=404, detail="workspace not found")
    items = [version_payload(version) for version in service.list_versions(workspace_id, limit=limit)]
    return {"items": items}


@router.get("/{workspace_id}/versions/{version}")
async def get_version(workspace_id: str, version: int) -> dict:
    service = get_workspace_service()
    found = service.get_version(workspace_id, version)
    if found is None:
        raise HTTPException(status_code=404, detail="version not found")
    return version_payload(found)
