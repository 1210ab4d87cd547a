from __future__ import annotations

import asyncio
import sys
from copy import deepcopy
from pathlib import Path
from typing import Any

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from aicon_backend.application import reset_workspace_state
from aicon_backend.config import Settings
from aicon_backend.core.schema import ContentAnalysis, ScrapeStatus, ScrapeSubmission, WorkspaceSnapshot


class FakeScrapeService:
    """Scripted scraping service; unscripted status checks keep processing."""

    def __init__(
        self,
        *,
        statuses: list[dict[str, Any]] | None = None,
        submission: dict[str, Any] | None = None,
        analysis: dict[str, Any] | None = None,
        submit_error: Exception | None = None,
        status_error: Exception | None = None,
        analysis_error: Exception | None = None,
    ) -> None:
        self.statuses = list(statuses or [])
        self.submission = submission or {"scrapeId": "scrape-1", "status": "processing"}
        self.analysis = analysis or {}
        self.submit_error = submit_error
        self.status_error = status_error
        self.analysis_error = analysis_error
        self.calls: list[tuple[str, str | None]] = []

    async def submit(self, url: str, workspace_id: str | None) -> ScrapeSubmission:
        self.calls.append(("submit", url))
        if self.submit_error is not None:
            raise self.submit_error
        return ScrapeSubmission.model_validate(self.submission)

    async def status(self, scrape_id: str) -> ScrapeStatus:
        self.calls.append(("status", scrape_id))
        if self.status_error is not None:
            raise self.status_error
        if self.statuses:
            return ScrapeStatus.model_validate(self.statuses.pop(0))
        return ScrapeStatus(status="processing")

    async def analyze(self, scrape_id: str) -> ContentAnalysis:
        self.calls.append(("analyze", scrape_id))
        if self.analysis_error is not None:
            raise self.analysis_error
        return ContentAnalysis.model_validate(self.analysis)

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


class RecordingBackend:
    """Workspace backend that stores payloads in memory and records every call."""

    def __init__(self) -> None:
        self.stored: dict[str, dict[str, Any]] = {}
        self.saves: list[dict[str, Any]] = []
        self.renames: list[tuple[str, str]] = []
        self.fail_saves = False
        self.rename_ok = True
        self.load_delay = 0.0

    def seed(self, workspace_id: str, **data: Any) -> None:
        self.stored[workspace_id] = {
            "title": data.get("title", "Untitled Canvas"),
            "viewport": data.get("viewport", {"x": 0, "y": 0, "zoom": 1}),
            "elements": deepcopy(data.get("elements", [])),
            "connections": deepcopy(data.get("connections", [])),
        }

    async def save(
        self,
        workspace_id: str,
        elements: list[dict[str, Any]],
        connections: list[dict[str, Any]],
        viewport: dict[str, Any] | None = None,
        title: str | None = None,
    ) -> bool:
        self.saves.append(
            {
                "workspace_id": workspace_id,
                "elements": deepcopy(elements),
                "connections": deepcopy(connections),
                "viewport": viewport,
                "title": title,
            }
        )
        if self.fail_saves:
            return False
        current = self.stored.setdefault(workspace_id, {"title": "Untitled Canvas", "viewport": {}})
        current["elements"] = deepcopy(elements)
        current["connections"] = deepcopy(connections)
        if viewport is not None:
            current["viewport"] = viewport
        if title:
            current["title"] = title
        return True

    async def load(self, workspace_id: str) -> WorkspaceSnapshot | None:
        if self.load_delay:
            await asyncio.sleep(self.load_delay)
        data = self.stored.get(workspace_id)
        if data is None:
            return None
        return WorkspaceSnapshot.model_validate({"workspaceId": workspace_id, **deepcopy(data)})

    async def rename(self, workspace_id: str, title: str) -> bool:
        self.renames.append((workspace_id, title))
        if self.rename_ok and workspace_id in self.stored:
            self.stored[workspace_id]["title"] = title
            return True
        return False


class FakeBeacon:
    def __init__(self) -> None:
        self.payloads: list[dict[str, Any]] = []

    def send(self, payload: dict[str, Any]) -> bool:
        self.payloads.append(deepcopy(payload))
        return True


@pytest.fixture(autouse=True)
def reset_state():
    reset_workspace_state()
    yield
    reset_workspace_state()


@pytest.fixture()
def fast_settings() -> Settings:
    return Settings(
        poll_interval=0.0,
        poll_ceiling_video=5,
        poll_ceiling_default=3,
        autosave_delay=0.02,
        save_error_display=0.05,
    )


@pytest.fixture()
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture()
def beacon() -> FakeBeacon:
    return FakeBeacon()


@pytest.fixture()
def scrape_service_factory():
    return FakeScrapeService
