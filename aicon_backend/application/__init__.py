"""Application services."""

from .loader import WorkspaceLoader
from .session import CanvasSession, create_session
from .sync import PersistenceSynchronizer
from .workspaces import WorkspaceService, get_workspace_service, reset_workspace_state

__all__ = [
    "CanvasSession",
    "PersistenceSynchronizer",
    "WorkspaceLoader",
    "WorkspaceService",
    "create_session",
    "get_workspace_service",
    "reset_workspace_state",
]
