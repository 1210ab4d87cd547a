from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1]))


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.delenv("AICON_SCRAPE_API_BASE", raising=False)
    from aicon_backend.app import create_app

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


def _element(element_id: str, **extra) -> dict:
    return {"id": element_id, "type": "content", "x": 10, "y": 20, "width": 320, "height": 280, **extra}


def _create(client: TestClient, title: str | None = None) -> str:
    payload = {"title": title} if title is not None else {}
    response = client.post("/api/workspaces", json=payload)
    assert response.status_code == 200
    return response.json()["workspaceId"]


def test_root_lists_entry_points(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["health"] == "/api/workspaces"


def test_create_and_load_workspace(client):
    workspace_id = _create(client)

    response = client.get(f"/api/workspaces/{workspace_id}")
    assert response.status_code == 200
    body = response.json()
    assert body["workspaceId"] == workspace_id
    assert body["title"] == "Untitled Canvas"
    assert body["viewport"] == {"x": 0.0, "y": 0.0, "zoom": 1.0}
    assert body["elements"] == []

    listing = client.get("/api/workspaces").json()["items"]
    assert [item["workspace_id"] for item in listing] == [workspace_id]


def test_missing_workspace_is_404(client):
    assert client.get("/api/workspaces/unknown").status_code == 404
    assert client.put("/api/workspaces/unknown/canvas", json={"elements": [], "connections": []}).status_code == 404
    assert client.patch("/api/workspaces/unknown", json={"title": "x"}).status_code == 404
    assert client.delete("/api/workspaces/unknown").status_code == 404


def test_save_canvas_is_an_upsert(client):
    workspace_id = _create(client, "Research")
    payload = {
        "elements": [_element("1", metadata={"isAnalyzed": True}), {"id": 2, "type": "chat", "x": 400, "y": 0}],
        "connections": [{"id": "c1", "from": "1", "to": 2}],
        "viewport": {"x": -120, "y": 40, "zoom": 0.75},
    }

    first = client.put(f"/api/workspaces/{workspace_id}/canvas", json=payload)
    second = client.put(f"/api/workspaces/{workspace_id}/canvas", json=payload)

    assert first.status_code == second.status_code == 200
    assert second.json()["lastSaved"]
    body = client.get(f"/api/workspaces/{workspace_id}").json()
    assert body["title"] == "Research"
    assert [element["id"] for element in body["elements"]] == ["1", "2"]
    assert body["elements"][0]["metadata"] == {"isAnalyzed": True}
    assert body["connections"] == [{"id": "c1", "from": "1", "to": "2"}]
    assert body["viewport"]["zoom"] == 0.75


def test_save_canvas_rejects_malformed_payload(client):
    workspace_id = _create(client)

    missing = client.put(f"/api/workspaces/{workspace_id}/canvas", json={"elements": []})
    invalid = client.put(
        f"/api/workspaces/{workspace_id}/canvas",
        json={"elements": [{"id": "1", "type": "widget"}], "connections": []},
    )

    assert missing.status_code == 400
    assert invalid.status_code == 400


def test_save_beacon_drops_invalid_elements(client):
    workspace_id = _create(client)
    payload = {
        "workspaceId": workspace_id,
        "elements": [
            _element("ok"),
            {"id": "no-geometry", "type": "content", "x": "10", "y": 0, "width": 1, "height": 1},
            {"type": "content", "x": 0, "y": 0, "width": 1, "height": 1},
            {"id": "flag", "type": "content", "x": True, "y": 0, "width": 1, "height": 1},
        ],
        "connections": [{"id": "c1", "from": "ok", "to": "ok"}, {"id": "broken"}],
        "title": "Before unload",
    }

    response = client.post("/api/workspaces/save-beacon", json=payload)

    assert response.status_code == 200
    body = client.get(f"/api/workspaces/{workspace_id}").json()
    assert [element["id"] for element in body["elements"]] == ["ok"]
    assert [conn["id"] for conn in body["connections"]] == ["c1"]
    assert body["title"] == "Before unload"


def test_save_beacon_requires_workspace_id(client):
    assert client.post("/api/workspaces/save-beacon", json={"elements": []}).status_code == 400


def test_rename_and_delete(client):
    workspace_id = _create(client, "Old")

    assert client.patch(f"/api/workspaces/{workspace_id}", json={"title": "  "}).status_code == 400
    renamed = client.patch(f"/api/workspaces/{workspace_id}", json={"title": "New"})
    assert renamed.json() == {"workspaceId": workspace_id, "title": "New"}
    assert client.get(f"/api/workspaces/{workspace_id}").json()["title"] == "New"

    assert client.delete(f"/api/workspaces/{workspace_id}").status_code == 200
    assert client.get(f"/api/workspaces/{workspace_id}").status_code == 404


def test_versions(client):
    workspace_id = _create(client)
    client.put(f"/api/workspaces/{workspace_id}/canvas", json={"elements": [_element("1")], "connections": []})
    first = client.post(f"/api/workspaces/{workspace_id}/versions", json={"description": "one element"})
    client.put(
        f"/api/workspaces/{workspace_id}/canvas",
        json={"elements": [_element("1"), _element("2")], "connections": []},
    )
    second = client.post(f"/api/workspaces/{workspace_id}/versions")

    assert first.json()["version"] == 1
    assert second.json()["version"] == 2
    items = client.get(f"/api/workspaces/{workspace_id}/versions").json()["items"]
    assert [item["version"] for item in items] == [2, 1]
    assert items[1]["description"] == "one element"

    restored = client.get(f"/api/workspaces/{workspace_id}/versions/1").json()
    assert [element["id"] for element in restored["elements"]] == ["1"]
    assert client.get(f"/api/workspaces/{workspace_id}/versions/9").status_code == 404
    assert client.get("/api/workspaces/unknown/versions").status_code == 404
    assert client.post("/api/workspaces/unknown/versions").status_code == 404


def test_save_beacon_keeps_numeric_zero_id(client):
    workspace_id = _create(client)
    payload = {
        "workspaceId": workspace_id,
        "elements": [_element(0), {"id": "", "type": "content", "x": 0, "y": 0, "width": 1, "height": 1}],
        "connections": [],
    }

    response = client.post("/api/workspaces/save-beacon", json=payload)

    assert response.status_code == 200
    body = client.get(f"/api/workspaces/{workspace_id}").json()
    assert [element["id"] for element in body["elements"]] == ["0"]
