"""Ingestion state machine stored on content element metadata.

States::

    idle -> scraping -> analyzing -> analyzed
                 \\            \\
                  scrape_failed  analysis_failed

``analyzed``, ``scrape_failed`` and ``analysis_failed`` are terminal; the
only way out is an explicit reset to ``idle`` when the user re-triggers
ingestion.  The state is kept under ``metadata["ingestion"]`` and mirrored
into the flat ``isScraping``/``isAnalyzing`` flags the canvas UI reads, so
every write goes through :func:`state_metadata`.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from aicon_backend.core.errors import InvalidTransition


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _State(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    at: datetime = Field(default_factory=_utcnow)
    scrape_id: str | None = Field(default=None, alias="scrapeId")


class IdleState(_State):
    status: Literal["idle"] = "idle"


class ScrapingState(_State):
    status: Literal["scraping"] = "scraping"


class AnalyzingState(_State):
    status: Literal["analyzing"] = "analyzing"
    scrape_id: str = Field(alias="scrapeId")


class AnalyzedState(_State):
    status: Literal["analyzed"] = "analyzed"
    scrape_id: str = Field(alias="scrapeId")


class ScrapeFailedState(_State):
    status: Literal["scrape_failed"] = "scrape_failed"
    error: str


class AnalysisFailedState(_State):
    status: Literal["analysis_failed"] = "analysis_failed"
    scrape_id: str = Field(alias="scrapeId")
    error: str


IngestionState = Annotated[
    Union[IdleState, ScrapingState, AnalyzingState, AnalyzedState, ScrapeFailedState, AnalysisFailedState],
    Field(discriminator="status"),
]

_STATE_ADAPTER: TypeAdapter[Any] = TypeAdapter(IngestionState)

TERMINAL_STATUSES = frozenset({"analyzed", "scrape_failed", "analysis_failed"})
IN_PROGRESS_STATUSES = frozenset({"scraping", "analyzing"})

# scraping -> scraping records the scrape id once the service has assigned one
TRANSITIONS: dict[str, frozenset[str]] = {
    "idle": frozenset({"scraping"}),
    "scraping": frozenset({"scraping", "analyzing", "scrape_failed"}),
    "analyzing": frozenset({"analyzed", "analysis_failed"}),
    "analyzed": frozenset({"idle"}),
    "scrape_failed": frozenset({"idle"}),
    "analysis_failed": frozenset({"idle"}),
}


def is_terminal(state: IngestionState) -> bool:
    return state.status in TERMINAL_STATUSES


def is_in_progress(state: IngestionState) -> bool:
    return state.status in IN_PROGRESS_STATUSES


def check_transition(current: IngestionState, target: IngestionState) -> IngestionState:
    """Validate ``current -> target`` and return ``target``."""

    allowed = TRANSITIONS.get(current.status, frozenset())
    if target.status not in allowed:
        raise InvalidTransition(f"cannot move ingestion from {current.status} to {target.status}")
    return target


def _legacy_state(metadata: Mapping[str, Any]) -> IngestionState:
    scrape_id = metadata.get("scrapeId")
    scrape_id = str(scrape_id) if scrape_id is not None else None
    if metadata.get("isScraping"):
        return ScrapingState(scrape_id=scrape_id)
    if metadata.get("isAnalyzing") and scrape_id:
        return AnalyzingState(scrape_id=scrape_id)
    if metadata.get("scrapingError"):
        return ScrapeFailedState(error=str(metadata["scrapingError"]), scrape_id=scrape_id)
    if metadata.get("analysisError") and scrape_id:
        return AnalysisFailedState(error=str(metadata["analysisError"]), scrape_id=scrape_id)
    if metadata.get("isAnalyzed") and scrape_id:
        return AnalyzedState(scrape_id=scrape_id)
    return IdleState()


def read_state(metadata: Mapping[str, Any] | None) -> IngestionState:
    """Return the ingestion state recorded in ``metadata``.

    Canvases saved before the state was recorded explicitly only carry the
    flat flags; those are mapped onto the closest state.
    """

    if not metadata:
        return IdleState()
    raw = metadata.get("ingestion")
    if isinstance(raw, Mapping):
        try:
            return _STATE_ADAPTER.validate_python(dict(raw))
        except ValidationError:
            pass
    return _legacy_state(metadata)


def state_metadata(state: IngestionState) -> dict[str, Any]:
    """Metadata fragment that records ``state`` and its derived UI flags."""

    fragment: dict[str, Any] = {
        "ingestion": state.model_dump(mode="json", by_alias=True),
        "isScraping": state.status == "scraping",
        "isAnalyzing": state.status == "analyzing",
        "isAnalyzed": state.status == "analyzed",
        "scrapingError": state.error if state.status == "scrape_failed" else None,
        "analysisError": state.error if state.status == "analysis_failed" else None,
    }
    if state.scrape_id is not None:
        fragment["scrapeId"] = state.scrape_id
    return fragment


__all__ = [
    "AnalysisFailedState",
    "AnalyzedState",
    "AnalyzingState",
    "IdleState",
    "IngestionState",
    "ScrapeFailedState",
    "ScrapingState",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "check_transition",
    "is_in_progress",
    "is_terminal",
    "read_state",
    "state_metadata",
]
