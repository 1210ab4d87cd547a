from __future__ import annotations


class CanvasError(RuntimeError):
    """Base class for errors raised by the canvas engine."""


class InvalidUrl(CanvasError, ValueError):
    """Raised when a submitted URL does not belong to a supported platform."""


class ScrapeFailed(CanvasError):
    """Raised inside an ingestion job when the scraping service gives up."""


class ScrapeTimeout(ScrapeFailed):
    """Raised when polling exhausts its attempt ceiling."""


class AnalysisFailed(CanvasError):
    """Raised inside an ingestion job when the analysis call fails."""


class SaveFailed(CanvasError):
    """Raised when the workspace backend rejects a write."""


class WorkspaceNotFound(CanvasError):
    """Raised when a workspace does not exist in the backend."""

    def __init__(self, workspace_id: str) -> None:
        super().__init__(f"workspace not found: {workspace_id}")
        self.workspace_id = workspace_id


class InvalidTransition(CanvasError):
    """Raised for ingestion state changes outside the state machine."""


class IngestionInProgress(CanvasError):
    """Raised when an element already has a running ingestion job."""


class ElementNotFound(CanvasError, KeyError):
    """Raised when a canvas operation targets an unknown element id."""

    def __str__(self) -> str:
        return RuntimeError.__str__(self)


class ServiceError(CanvasError):
    """Raised when an external HTTP collaborator answers with an error."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "AnalysisFailed",
    "CanvasError",
    "ElementNotFound",
    "IngestionInProgress",
    "InvalidTransition",
    "InvalidUrl",
    "SaveFailed",
    "ScrapeFailed",
    "ScrapeTimeout",
    "ServiceError",
    "WorkspaceNotFound",
]
