"""Data models for the QuickTray clipboard history."""

import base64
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ClipKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"


class ClipItem(BaseModel):
    """A single clipboard history entry.

    Records are frozen: pin and recency changes produce a new record through
    ``model_copy`` which replaces the old one in the history list. The JSON
    form uses the camelCase field names of the on-disk history file.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: ClipKind = Field(alias="type")
    text_content: Optional[str] = Field(default=None, alias="textContent")
    image_data: Optional[bytes] = Field(default=None, alias="imageData")
    timestamp: datetime = Field(default_factory=utcnow)
    is_pinned: bool = Field(default=False, alias="isPinned")

    @classmethod
    def from_text(cls, text: str) -> "ClipItem":
        return cls(kind=ClipKind.TEXT, text_content=text)

    @classmethod
    def from_image(cls, data: bytes) -> "ClipItem":
        return cls(kind=ClipKind.IMAGE, image_data=data)

    @field_validator("image_data", mode="before")
    @classmethod
    def _decode_image(cls, value: Any) -> Any:
        # JSON documents carry image bytes as base64 text
        if isinstance(value, str):
            return base64.b64decode(value)
        return value

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_serializer("image_data", when_used="json")
    def _encode_image(self, value: Optional[bytes]) -> Optional[str]:
        if value is None:
            return None
        return base64.b64encode(value).decode("ascii")

    @model_validator(mode="after")
    def _check_payload(self) -> "ClipItem":
        if self.kind is ClipKind.TEXT:
            if self.text_content is None or self.image_data is not None:
                raise ValueError("text items carry textContent only")
        elif self.image_data is None or self.text_content is not None:
            raise ValueError("image items carry imageData only")
        return self

    def same_content(self, other: "ClipItem") -> bool:
        """True when both items hold the same kind and the same payload."""
        if self.kind is not other.kind:
            return False
        if self.kind is ClipKind.TEXT:
            return self.text_content == other.text_content
        return self.image_data == other.image_data

    def preview(self, limit: int = 200) -> str:
        if self.kind is ClipKind.IMAGE:
            return f"<image {len(self.image_data or b'')} bytes>"
        text = self.text_content or ""
        return text[:limit] + "..." if len(text) > limit else text


class ClipSummary(BaseModel):
    """Item as reported to MCP clients."""

    id: str
    type: ClipKind
    content: str
    timestamp: datetime
    is_pinned: bool
    score: Optional[float] = None

    @classmethod
    def from_item(
        cls, item: ClipItem, score: Optional[float] = None, limit: int = 200
    ) -> "ClipSummary":
        return cls(
            id=item.id,
            type=item.kind,
            content=item.preview(limit),
            timestamp=item.timestamp,
            is_pinned=item.is_pinned,
            score=round(score, 3) if score is not None else None,
        )


class ClipResponse(BaseModel):
    """Response for clip operations."""

    id: Optional[str] = None
    status: str
    message: Optional[str] = None


class SearchResponse(BaseModel):
    query: str
    results: List[ClipSummary] = Field(default_factory=list)
    count: int = 0
