from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from aicon_backend.core.errors import ServiceError
from aicon_backend.infrastructure import HttpBeaconTransport, HttpScrapeService, HttpWorkspaceBackend


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_scrape_service_round_trip():
    seen: list[tuple[str, str, dict | None]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        seen.append((request.method, request.url.path, body))
        if request.url.path == "/api/scrape":
            return httpx.Response(200, json={"scrapeId": "s-1", "status": "processing"})
        if request.url.path == "/api/scrape/s-1/status":
            return httpx.Response(200, json={"status": "completed", "processedData": {"title": "Demo"}})
        if request.url.path == "/api/analyze/s-1":
            return httpx.Response(
                200,
                json={
                    "analysis": {
                        "hook_analysis": "hook",
                        "body_analysis": "body",
                        "cta_analysis": "cta",
                        "key_topics": ["a", "b"],
                        "sentiment": "positive",
                    }
                },
            )
        return httpx.Response(404)

    service = HttpScrapeService("https://scraper.test/api/", http_client=_client(handler))

    async def scenario():
        submission = await service.submit("https://youtube.com/watch?v=1", "ws-1")
        status = await service.status(submission.scrape_id)
        analysis = await service.analyze(submission.scrape_id)
        return submission, status, analysis

    submission, status, analysis = asyncio.run(scenario())

    assert submission.scrape_id == "s-1"
    assert status.processed_data == {"title": "Demo"}
    assert analysis.to_metadata() == {
        "hook": "hook",
        "body": "body",
        "callToAction": "cta",
        "topics": ["a", "b"],
        "sentiment": "positive",
        "complexity": None,
    }
    assert seen[0] == ("POST", "/api/scrape", {"url": "https://youtube.com/watch?v=1", "workspaceId": "ws-1"})
    assert seen[2] == ("POST", "/api/analyze/s-1", {"addToLibrary": True})


def test_scrape_service_error_reply_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": "Rate limited"})

    service = HttpScrapeService("https://scraper.test", http_client=_client(handler))

    with pytest.raises(ServiceError) as excinfo:
        asyncio.run(service.submit("https://youtube.com/watch?v=1", None))
    assert str(excinfo.value) == "Rate limited"
    assert excinfo.value.status_code == 429


def test_analysis_without_payload_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "No transcript"})

    service = HttpScrapeService("https://scraper.test", http_client=_client(handler))

    with pytest.raises(ServiceError, match="No transcript"):
        asyncio.run(service.analyze("s-1"))


def test_scrape_service_requires_absolute_base():
    with pytest.raises(ValueError):
        HttpScrapeService("scraper.test")


def test_workspace_backend_calls_routes():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "GET" and request.url.path == "/api/workspaces/missing":
            return httpx.Response(404, json={"detail": "workspace not found"})
        if request.method == "GET":
            return httpx.Response(
                200,
                json={
                    "workspaceId": "ws",
                    "title": "Research",
                    "viewport": {"x": 1, "y": 2, "zoom": 1.5},
                    "elements": [{"id": 1, "type": "content", "x": 0, "y": 0}],
                    "connections": [],
                    "lastSaved": None,
                },
            )
        if request.method == "PATCH":
            return httpx.Response(500)
        return httpx.Response(200, json={"success": True})

    backend = HttpWorkspaceBackend("http://backend.test/api", http_client=_client(handler))

    async def scenario():
        saved = await backend.save("ws", [{"id": "1", "type": "text"}], [], {"x": 0, "y": 0, "zoom": 1}, "Research")
        snapshot = await backend.load("ws")
        missing = await backend.load("missing")
        renamed = await backend.rename("ws", "New")
        return saved, snapshot, missing, renamed

    saved, snapshot, missing, renamed = asyncio.run(scenario())

    assert saved is True
    assert requests[0].method == "PUT"
    assert requests[0].url.path == "/api/workspaces/ws/canvas"
    assert json.loads(requests[0].content)["title"] == "Research"
    assert snapshot.title == "Research"
    assert snapshot.elements[0].id == "1"
    assert missing is None
    assert renamed is False


def test_beacon_posts_without_blocking():
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True})

    transport = HttpBeaconTransport("http://backend.test/api", http_client=_client(handler))

    async def scenario():
        accepted = transport.send({"workspaceId": "ws", "elements": [], "connections": []})
        await transport.wait_sent()
        return accepted

    assert asyncio.run(scenario()) is True
    assert bodies == [{"workspaceId": "ws", "elements": [], "connections": []}]
    assert transport.send({"workspaceId": "ws"}) is False
