"""Infrastructure layer exports."""

from .backend import (
    HttpBeaconTransport,
    HttpWorkspaceBackend,
    RepositoryBackend,
    UnloadTransport,
    WorkspaceBackend,
    record_to_snapshot,
)
from .scraping import (
    HttpScrapeService,
    ScrapeService,
    UnconfiguredScrapeService,
    configure_scrape_service,
    get_scrape_service,
)
from .workspaces import InMemoryWorkspaceRepository, WorkspaceRepository

__all__ = [
    "HttpBeaconTransport",
    "HttpScrapeService",
    "HttpWorkspaceBackend",
    "InMemoryWorkspaceRepository",
    "RepositoryBackend",
    "ScrapeService",
    "UnconfiguredScrapeService",
    "UnloadTransport",
    "WorkspaceBackend",
    "WorkspaceRepository",
    "configure_scrape_service",
    "get_scrape_service",
    "record_to_snapshot",
]
