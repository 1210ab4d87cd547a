"""Domain entities for workspace persistence and content ingestion."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class IngestionJob:
    """Correlates one submitted URL with its scrape and analysis.

    Jobs live only as long as their task; the outcome is folded into the
    owning element's metadata.
    """

    element_id: str
    url: str
    platform: str
    workspace_id: str | None = None
    scrape_id: str | None = None
    attempts: int = 0
    max_attempts: int = 60
    processed_data: dict[str, Any] | None = None


@dataclass(slots=True)
class WorkspaceVersion:
    version: int
    elements: list[dict[str, Any]]
    connections: list[dict[str, Any]]
    viewport: dict[str, Any] | None = None
    description: str | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class WorkspaceRecord:
    """Persisted state for a single workspace."""

    workspace_id: str
    title: str
    viewport: dict[str, Any] = field(default_factory=lambda: {"x": 0.0, "y": 0.0, "zoom": 1.0})
    elements: list[dict[str, Any]] = field(default_factory=list)
    connections: list[dict[str, Any]] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_saved: datetime | None = None
    versions: list[WorkspaceVersion] = field(default_factory=list)
