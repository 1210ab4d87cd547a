"""Debounced persistence of the canvas model to the workspace backend."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Literal

from aicon_backend.core.canvas import CanvasChange, CanvasModel
from aicon_backend.core.log import get_logger
from aicon_backend.core.schema import WorkspaceSnapshot
from aicon_backend.infrastructure.backend import UnloadTransport, WorkspaceBackend

logger = get_logger(__name__)

SaveStatus = Literal["idle", "saving", "error"]


def _ready_gate() -> asyncio.Event:
    gate = asyncio.Event()
    gate.set()
    return gate


class PersistenceSynchronizer:
    """Turns canvas changes into backend saves.

    Each observed change restarts one debounce timer; when it expires the
    current snapshot is saved.  Saves are serialized and only a successful
    save moves the baseline, so a failed save is retried by the next change.
    Nothing is observed or saved while the ``hydrated`` gate is down.
    """

    def __init__(
        self,
        model: CanvasModel,
        backend: WorkspaceBackend,
        *,
        workspace_id: str | None = None,
        beacon: UnloadTransport | None = None,
        hydrated: asyncio.Event | None = None,
        autosave_delay: float = 1.0,
        error_display: float = 5.0,
    ) -> None:
        self._model = model
        self._backend = backend
        self._beacon = beacon
        self._hydrated = hydrated if hydrated is not None else _ready_gate()
        self._delay = autosave_delay
        self._error_display = error_display
        self.workspace_id = workspace_id

        self._unsubscribe: Any = None
        self._timer: asyncio.TimerHandle | None = None
        self._error_timer: asyncio.TimerHandle | None = None
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[bool]] = set()
        self._baseline: tuple[Any, ...] | None = None

        self._status: SaveStatus = "idle"
        self.last_error: str | None = None
        self.last_saved_at: datetime | None = None
        self.save_count = 0

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def attach(self, workspace_id: str | None = None) -> None:
        """Start observing the model; the current content becomes the baseline."""

        if workspace_id is not None:
            self.workspace_id = workspace_id
        self.detach()
        self._unsubscribe = self._model.subscribe(self._on_change)
        self.reset_baseline()

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._cancel_timer()

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    @property
    def status(self) -> SaveStatus:
        return self._status

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def reset_baseline(self) -> None:
        self._baseline = self._snapshot().content_key()

    def has_unsaved_changes(self) -> bool:
        if not self._hydrated.is_set() or self.workspace_id is None:
            return False
        return self._snapshot().content_key() != self._baseline

    # ------------------------------------------------------------------
    # debounce
    # ------------------------------------------------------------------
    def _snapshot(self) -> WorkspaceSnapshot:
        return self._model.snapshot(self.workspace_id)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_change(self, change: CanvasChange) -> None:
        if not self._hydrated.is_set():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("Change %s outside the event loop; saved with the next change", change.kind)
            return
        self._cancel_timer()
        self._timer = loop.call_later(self._delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        task = asyncio.get_running_loop().create_task(self.save_now())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait for saves already started by expired timers."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # saving
    # ------------------------------------------------------------------
    async def save_now(self, *, force: bool = False) -> bool:
        """Save the current snapshot; ``False`` when refused or rejected."""

        if not self._hydrated.is_set():
            logger.debug("Save refused: workspace not hydrated")
            return False
        if self.workspace_id is None:
            logger.debug("Save refused: no workspace attached")
            return False

        async with self._lock:
            snapshot = self._snapshot()
            key = snapshot.content_key()
            if key == self._baseline and not force:
                return True

            self._status = "saving"
            error: str | None = None
            try:
                ok = await self._backend.save(
                    self.workspace_id,
                    [element.to_payload() for element in snapshot.elements],
                    [connection.to_payload() for connection in snapshot.connections],
                    snapshot.viewport.model_dump(mode="json"),
                    snapshot.title,
                )
            except Exception as exc:
                logger.warning("Save failed for workspace %s", self.workspace_id, exc_info=True)
                ok = False
                error = str(exc) or None

            if ok:
                self._baseline = key
                self.last_saved_at = datetime.now(timezone.utc)
                self.save_count += 1
                self.last_error = None
                self._status = "idle"
                logger.debug("Workspace %s saved (%d elements)", self.workspace_id, len(snapshot.elements))
            else:
                self._record_error(error or "Failed to save canvas")
            return ok

    def _record_error(self, message: str) -> None:
        logger.warning("Workspace %s not saved: %s", self.workspace_id, message)
        self._status = "error"
        self.last_error = message
        if self._error_timer is not None:
            self._error_timer.cancel()
        self._error_timer = asyncio.get_running_loop().call_later(self._error_display, self._clear_error)

    def _clear_error(self) -> None:
        self._error_timer = None
        if self._status == "error":
            self._status = "idle"

    async def flush(self) -> bool:
        """Persist unsaved changes before navigation or unload.

        The payload goes to the unload transport before the first await, then
        a normal save follows.  Returns whether there was anything to flush.
        """

        if not self.has_unsaved_changes():
            return False
        self._cancel_timer()
        snapshot = self._snapshot()
        if self._beacon is not None:
            payload = {
                "workspaceId": self.workspace_id,
                "elements": [element.to_payload() for element in snapshot.elements],
                "connections": [connection.to_payload() for connection in snapshot.connections],
                "viewport": snapshot.viewport.model_dump(mode="json"),
                "title": snapshot.title,
            }
            if not self._beacon.send(payload):
                logger.warning("Unload transport refused payload for %s", self.workspace_id)
        await self.save_now()
        return True


__all__ = ["PersistenceSynchronizer", "SaveStatus"]
