"""Domain layer definitions."""

from .workspaces import IngestionJob, WorkspaceRecord, WorkspaceVersion

__all__ = [
    "IngestionJob",
    "WorkspaceRecord",
    "WorkspaceVersion",
]
