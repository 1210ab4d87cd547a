"""One open workspace: model, loader, autosave and ingestion wired together."""
from __future__ import annotations

from typing import Any, Iterable, Mapping

from aicon_backend.application.loader import WorkspaceLoader
from aicon_backend.application.sync import PersistenceSynchronizer
from aicon_backend.application.workspaces import get_workspace_service
from aicon_backend.config import Settings, load_settings
from aicon_backend.core.canvas import CanvasModel
from aicon_backend.core.errors import SaveFailed, WorkspaceNotFound
from aicon_backend.core.log import get_logger
from aicon_backend.core.reconcile import ReconcilePlan, sync_connections, sync_elements
from aicon_backend.core.schema import CanvasElement, Connection, WorkspaceSnapshot
from aicon_backend.domain import IngestionJob, WorkspaceVersion
from aicon_backend.infrastructure.backend import HttpBeaconTransport, HttpWorkspaceBackend, UnloadTransport, WorkspaceBackend
from aicon_backend.infrastructure.scraping import ScrapeService
from aicon_backend.workers.ingestion import IngestionCoordinator

logger = get_logger(__name__)


class CanvasSession:
    def __init__(
        self,
        backend: WorkspaceBackend,
        scrape_service: ScrapeService | None = None,
        *,
        beacon: UnloadTransport | None = None,
        settings: Settings | None = None,
        model: CanvasModel | None = None,
    ) -> None:
        settings = settings or load_settings()
        self.model = model or CanvasModel()
        self.backend = backend
        self.loader = WorkspaceLoader(self.model, backend)
        self.synchronizer = PersistenceSynchronizer(
            self.model,
            backend,
            beacon=beacon,
            hydrated=self.loader.hydrated,
            autosave_delay=settings.autosave_delay,
            error_display=settings.save_error_display,
        )
        self.ingestion = IngestionCoordinator(
            self.model,
            scrape_service,
            poll_interval=settings.poll_interval,
            poll_ceiling_video=settings.poll_ceiling_video,
            poll_ceiling_default=settings.poll_ceiling_default,
        )
        self.workspace_id: str | None = None

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    async def open(self, workspace_id: str) -> WorkspaceSnapshot:
        """Hydrate the model from ``workspace_id`` and start autosave."""

        if self.synchronizer.attached:
            # leaving a workspace: its pending edits must land before the model is replaced
            await self.close()
        snapshot = await self.loader.load(workspace_id)
        self.workspace_id = workspace_id
        self.ingestion.workspace_id = workspace_id
        self.synchronizer.attach(workspace_id)
        stale = self.ingestion.interrupt_stale()
        if stale:
            logger.info("Workspace %s: marked %d interrupted ingestion(s) as failed", workspace_id, len(stale))
        return snapshot

    async def close(self) -> bool:
        """Flush unsaved changes, stop ingestion jobs and stop observing."""

        flushed = await self.synchronizer.flush()
        await self.ingestion.shutdown()
        self.synchronizer.detach()
        return flushed

    # ------------------------------------------------------------------
    # user operations
    # ------------------------------------------------------------------
    def submit_url(
        self,
        url: str,
        element_id: str | int | None = None,
        *,
        position: tuple[float, float] | None = None,
    ) -> IngestionJob:
        return self.ingestion.submit(url, element_id, position=position)

    def retry(self, element_id: str | int) -> IngestionJob:
        return self.ingestion.retry(element_id)

    def apply_elements(self, proposed: Iterable[CanvasElement | Mapping[str, Any]]) -> ReconcilePlan[CanvasElement]:
        return sync_elements(self.model, proposed)

    def apply_connections(self, proposed: Iterable[Connection | Mapping[str, Any]]) -> ReconcilePlan[Connection]:
        return sync_connections(self.model, proposed)

    async def rename(self, title: str) -> str:
        """Rename the workspace; the local title changes only once persisted."""

        title = title.strip()
        if not title:
            raise ValueError("title must not be empty")
        if self.workspace_id is None:
            raise SaveFailed("no workspace is open")
        try:
            ok = await self.backend.rename(self.workspace_id, title)
        except WorkspaceNotFound:
            raise
        except Exception as exc:
            raise SaveFailed(f"rename failed: {exc}") from exc
        if not ok:
            raise SaveFailed("rename rejected by backend")
        self.model.set_title(title)
        logger.info("Workspace %s renamed", self.workspace_id)
        return title

    def restore_version(self, version: WorkspaceVersion | Mapping[str, Any]) -> None:
        """Bring the canvas to a stored version through the reconciler."""

        if isinstance(version, WorkspaceVersion):
            elements, connections, viewport = version.elements, version.connections, version.viewport
        else:
            elements = version.get("elements") or []
            connections = version.get("connections") or []
            viewport = version.get("viewport")
        sync_elements(self.model, elements, append_heuristic=False)
        sync_connections(self.model, connections, append_heuristic=False)
        if viewport:
            self.model.set_viewport(viewport)


def create_session(settings: Settings | None = None, scrape_service: ScrapeService | None = None) -> CanvasSession:
    """Build a session against the configured workspace API.

    With ``AICON_WORKSPACE_API_BASE`` set, saves and unload flushes go over
    HTTP; otherwise the session uses the in-process workspace service.
    """

    settings = settings or load_settings()
    if settings.workspace_api_base:
        backend: WorkspaceBackend = HttpWorkspaceBackend(settings.workspace_api_base, timeout=settings.http_timeout)
        beacon: UnloadTransport | None = HttpBeaconTransport(settings.workspace_api_base, timeout=settings.http_timeout)
    else:
        backend = get_workspace_service().backend()
        beacon = None
    return CanvasSession(backend, scrape_service, beacon=beacon, settings=settings)
