from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Mapping

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, field_validator


def _coerce_id(value: Any) -> Any:
    # ids arrive as ints from older canvases and as "<ms>-<rand>" strings from newer ones
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(int(value)) if float(value).is_integer() else str(value)
    return value


ElementId = Annotated[str, BeforeValidator(_coerce_id)]

ElementType = Literal["content", "chat", "folder", "text"]


class Viewport(BaseModel):
    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: ElementId
    role: Literal["user", "assistant", "system"]
    content: str = ""
    timestamp: datetime | None = None


class ChatThread(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: ElementId
    title: str | None = None
    messages: list[ChatMessage] = Field(default_factory=list)


class CanvasElement(BaseModel):
    """A positioned item on the canvas.

    Kind specific state lives on optional fields; anything the model does
    not know about is kept as an extra field so it survives a round trip
    through the backend.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: ElementId
    type: ElementType
    x: float = 0.0
    y: float = 0.0
    width: float = 320.0
    height: float = 280.0
    title: str | None = None
    url: str | None = None
    platform: str | None = None
    thumbnail: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    conversations: list[ChatThread] | None = None
    messages: list[ChatMessage] | None = None
    child_ids: list[ElementId] | None = Field(default=None, alias="childIds")

    def to_payload(self, *, exclude_unset: bool = False) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude_unset=exclude_unset)

    def merged(self, fields: Mapping[str, Any]) -> "CanvasElement":
        """Return a copy with ``fields`` applied.

        Top level fields are replaced, ``metadata`` is merged key by key so a
        partial metadata update keeps keys written by other callers.
        """

        data = self.model_dump(mode="json", by_alias=True)
        for key, value in fields.items():
            if key == "metadata" and isinstance(value, Mapping):
                data["metadata"] = {**(data.get("metadata") or {}), **value}
            else:
                data[key] = value
        data["id"] = self.id
        return CanvasElement.model_validate(data)


class Connection(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: ElementId
    from_id: ElementId = Field(alias="from")
    to_id: ElementId = Field(alias="to")

    def to_payload(self, *, exclude_unset: bool = False) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude_unset=exclude_unset)


class WorkspaceSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    workspace_id: str | None = Field(default=None, alias="workspaceId")
    title: str = "Untitled Canvas"
    viewport: Viewport = Field(default_factory=Viewport)
    elements: list[CanvasElement] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)
    last_saved: datetime | None = Field(default=None, alias="lastSaved")

    def to_payload(self) -> dict[str, Any]:
        return {
            "workspaceId": self.workspace_id,
            "title": self.title,
            "viewport": self.viewport.model_dump(mode="json"),
            "elements": [element.to_payload() for element in self.elements],
            "connections": [connection.to_payload() for connection in self.connections],
            "lastSaved": self.last_saved.isoformat() if self.last_saved else None,
        }

    def content_key(self) -> tuple[Any, ...]:
        """Comparable form of everything autosave persists."""

        return (
            self.title,
            self.viewport.model_dump(mode="json"),
            [element.to_payload() for element in self.elements],
            [connection.to_payload() for connection in self.connections],
        )


# ----------------------------------------------------------------------
# scraping / analysis service payloads
# ----------------------------------------------------------------------
class ScrapeSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    scrape_id: ElementId = Field(alias="scrapeId")
    status: Literal["processing", "completed"] = "processing"
    processed_data: dict[str, Any] | None = Field(default=None, alias="processedData")
    cached: bool = False


class ScrapeStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: Literal["processing", "completed", "failed"]
    processed_data: dict[str, Any] | None = Field(default=None, alias="processedData")
    error: str | None = None


class ContentAnalysis(BaseModel):
    """Normalised analysis fields attached to an analysed element."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    hook: str = Field(default="", validation_alias=AliasChoices("hook", "hook_analysis", "hookAnalysis"))
    body: str = Field(default="", validation_alias=AliasChoices("body", "body_analysis", "bodyAnalysis"))
    call_to_action: str = Field(
        default="",
        validation_alias=AliasChoices("callToAction", "call_to_action", "cta_analysis", "ctaAnalysis"),
        serialization_alias="callToAction",
    )
    topics: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("topics", "key_topics", "keyTopics"),
    )
    sentiment: str | None = None
    complexity: str | None = None

    @field_validator("hook", "body", "call_to_action", mode="before")
    @classmethod
    def _text_or_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("topics", mode="before")
    @classmethod
    def _topic_names(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            return value
        names: list[str] = []
        for item in value:
            if isinstance(item, Mapping):
                name = item.get("name")
                if name:
                    names.append(str(name))
            elif item is not None:
                names.append(str(item))
        return names

    def to_metadata(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
