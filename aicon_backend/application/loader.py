from __future__ import annotations

import asyncio

from aicon_backend.core.canvas import DEFAULT_TITLE, CanvasModel
from aicon_backend.core.errors import WorkspaceNotFound
from aicon_backend.core.log import get_logger
from aicon_backend.core.schema import WorkspaceSnapshot
from aicon_backend.infrastructure.backend import WorkspaceBackend

logger = get_logger(__name__)


class WorkspaceLoader:
    """Fetches a workspace and hydrates the canvas model from it.

    ``hydrated`` is down for the whole clear-then-hydrate cycle; the
    synchronizer shares the event and ignores changes while it is down.
    """

    def __init__(self, model: CanvasModel, backend: WorkspaceBackend) -> None:
        self._model = model
        self._backend = backend
        self._lock = asyncio.Lock()
        self.hydrated = asyncio.Event()
        self.workspace_id: str | None = None

    async def load(self, workspace_id: str) -> WorkspaceSnapshot:
        async with self._lock:
            self.hydrated.clear()
            snapshot = await self._backend.load(workspace_id)
            if snapshot is None:
                logger.warning("Workspace %s not found", workspace_id)
                raise WorkspaceNotFound(workspace_id)

            self._model.clear()
            self._model.set_title(snapshot.title or DEFAULT_TITLE)
            self._model.set_viewport(snapshot.viewport)
            # stored canvases may repeat an id; the last copy wins
            elements = {element.id: element for element in snapshot.elements}
            self._model.extend(elements.values(), snapshot.connections)

            self.workspace_id = workspace_id
            self.hydrated.set()
            logger.info(
                "Workspace %s hydrated: %d elements, %d connections",
                workspace_id,
                len(snapshot.elements),
                len(snapshot.connections),
            )
            return snapshot
