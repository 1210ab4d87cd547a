"""In-memory canvas model.

``CanvasModel`` is the single owner of a workspace's elements, connections,
viewport and title while it is open.  Every mutation goes through one of
its operations so that observers (autosave) see each change exactly once.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Literal, Mapping

from aicon_backend.core.errors import ElementNotFound
from aicon_backend.core.schema import CanvasElement, Connection, Viewport, WorkspaceSnapshot

ChangeKind = Literal[
    "element_added",
    "element_updated",
    "element_deleted",
    "connection_added",
    "connection_deleted",
    "viewport",
    "title",
    "cleared",
]


@dataclass(frozen=True, slots=True)
class CanvasChange:
    kind: ChangeKind
    target_id: str | None = None
    revision: int = 0


Listener = Callable[[CanvasChange], None]

DEFAULT_TITLE = "Untitled Canvas"


def _as_element(value: CanvasElement | Mapping[str, Any]) -> CanvasElement:
    if isinstance(value, CanvasElement):
        return value.model_copy(deep=True)
    return CanvasElement.model_validate(dict(value))


def _as_connection(value: Connection | Mapping[str, Any]) -> Connection:
    if isinstance(value, Connection):
        return value.model_copy(deep=True)
    return Connection.model_validate(dict(value))


class CanvasModel:
    """Mutable store with a closed set of atomic operations."""

    def __init__(self, *, title: str = DEFAULT_TITLE) -> None:
        self._elements: dict[str, CanvasElement] = {}
        self._connections: dict[str, Connection] = {}
        self._viewport = Viewport()
        self._title = title
        self._listeners: list[Listener] = []
        self._revision = 0

    # ------------------------------------------------------------------
    # observation
    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: ChangeKind, target_id: str | None = None) -> None:
        self._revision += 1
        change = CanvasChange(kind=kind, target_id=target_id, revision=self._revision)
        for listener in list(self._listeners):
            listener(change)

    @property
    def revision(self) -> int:
        return self._revision

    # ------------------------------------------------------------------
    # readers
    # ------------------------------------------------------------------
    @property
    def elements(self) -> list[CanvasElement]:
        return [element.model_copy(deep=True) for element in self._elements.values()]

    @property
    def connections(self) -> list[Connection]:
        return [connection.model_copy(deep=True) for connection in self._connections.values()]

    @property
    def viewport(self) -> Viewport:
        return self._viewport.model_copy()

    @property
    def title(self) -> str:
        return self._title

    def has_element(self, element_id: str | int) -> bool:
        return str(element_id) in self._elements

    def get_element(self, element_id: str | int) -> CanvasElement:
        try:
            return self._elements[str(element_id)].model_copy(deep=True)
        except KeyError:
            raise ElementNotFound(f"element not found: {element_id}") from None

    def connected_content(self, chat_id: str | int) -> list[CanvasElement]:
        """Content elements wired into the given chat element."""

        target = str(chat_id)
        sources = {conn.from_id for conn in self._connections.values() if conn.to_id == target}
        return [
            element.model_copy(deep=True)
            for element_id, element in self._elements.items()
            if element_id in sources and element.type == "content"
        ]

    def snapshot(self, workspace_id: str | None = None) -> WorkspaceSnapshot:
        return WorkspaceSnapshot(
            workspace_id=workspace_id,
            title=self._title,
            viewport=self.viewport,
            elements=self.elements,
            connections=self.connections,
        )

    # ------------------------------------------------------------------
    # element operations
    # ------------------------------------------------------------------
    def add_element(self, element: CanvasElement | Mapping[str, Any]) -> CanvasElement:
        candidate = _as_element(element)
        if candidate.id in self._elements:
            raise ValueError(f"element already exists: {candidate.id}")
        self._elements[candidate.id] = candidate
        self._emit("element_added", candidate.id)
        return candidate.model_copy(deep=True)

    def update_element(self, element_id: str | int, fields: Mapping[str, Any]) -> CanvasElement:
        """Shallow-merge ``fields`` into the element; ``metadata`` merges per key."""

        key = str(element_id)
        current = self._elements.get(key)
        if current is None:
            raise ElementNotFound(f"element not found: {element_id}")
        updated = current.merged(fields)
        self._elements[key] = updated
        self._emit("element_updated", key)
        return updated.model_copy(deep=True)

    def delete_element(self, element_id: str | int) -> None:
        key = str(element_id)
        if key not in self._elements:
            raise ElementNotFound(f"element not found: {element_id}")
        del self._elements[key]
        self._connections = {
            conn_id: conn
            for conn_id, conn in self._connections.items()
            if conn.from_id != key and conn.to_id != key
        }
        for folder in self._elements.values():
            if folder.child_ids and key in folder.child_ids:
                folder.child_ids = [child for child in folder.child_ids if child != key]
        self._emit("element_deleted", key)

    # ------------------------------------------------------------------
    # connection operations
    # ------------------------------------------------------------------
    def add_connection(self, connection: Connection | Mapping[str, Any]) -> Connection:
        candidate = _as_connection(connection)
        self._connections[candidate.id] = candidate
        self._emit("connection_added", candidate.id)
        return candidate.model_copy(deep=True)

    def delete_connection(self, connection_id: str | int) -> None:
        key = str(connection_id)
        if self._connections.pop(key, None) is not None:
            self._emit("connection_deleted", key)

    # ------------------------------------------------------------------
    # workspace level operations
    # ------------------------------------------------------------------
    def set_viewport(self, viewport: Viewport | Mapping[str, Any]) -> None:
        self._viewport = viewport.model_copy() if isinstance(viewport, Viewport) else Viewport.model_validate(dict(viewport))
        self._emit("viewport")

    def set_title(self, title: str) -> None:
        self._title = title
        self._emit("title")

    def clear(self) -> None:
        self._elements.clear()
        self._connections.clear()
        self._viewport = Viewport()
        self._title = DEFAULT_TITLE
        self._emit("cleared")

    def extend(
        self,
        elements: Iterable[CanvasElement | Mapping[str, Any]] = (),
        connections: Iterable[Connection | Mapping[str, Any]] = (),
    ) -> None:
        for element in elements:
            self.add_element(element)
        for connection in connections:
            self.add_connection(connection)
