from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Confidence(str, Enum):
    """Subjective transcription-quality tier assigned by the labeler."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any) -> "Confidence":
        """Accept enum members or any casing of the tier name ("High", "high")."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"confidence must be one of low/medium/high, got {value!r}")
        return cls(value.strip().lower())


class Whiteboard(BaseModel):
    """One image to be labeled. Read-only from the labeler's perspective."""
    id: str
    image_url: str
    status: Optional[str] = None
    created_at: Optional[str] = None


class User(BaseModel):
    id: str
    email: Optional[str] = None
    created_at: Optional[str] = None


class Chunk(BaseModel):
    """A labeled bounding box in normalized [0,1] image-fraction coordinates."""
    id: Optional[str] = None  # assigned by the store on insert
    whiteboard_id: str
    user_id: str
    x_min: float = Field(ge=0.0, le=1.0)
    y_min: float = Field(ge=0.0, le=1.0)
    x_max: float = Field(ge=0.0, le=1.0)
    y_max: float = Field(ge=0.0, le=1.0)
    transcription: str
    confidence: Confidence
    created_at: str = Field(default_factory=_utc_now_iso)

    @field_validator("id", "whiteboard_id", "user_id", mode="before")
    @classmethod
    def _stringify_ids(cls, v: Any) -> Any:
        # Supabase returns uuid columns as strings, but callers may pass UUIDs
        return str(v) if v is not None else v

    @field_validator("confidence", mode="before")
    @classmethod
    def _parse_confidence(cls, v: Any) -> Confidence:
        return Confidence.parse(v)

    @model_validator(mode="after")
    def _check_ordering(self) -> "Chunk":
        if self.x_min > self.x_max or self.y_min > self.y_max:
            raise ValueError("chunk box must satisfy x_min <= x_max and y_min <= y_max")
        return self

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        return (self.x_min, self.y_min, self.x_max, self.y_max)

    def to_row(self) -> Dict[str, Any]:
        """Insert payload for the ``chunks`` table; ``id`` is left to the store."""
        row = self.model_dump(mode="json")
        if row.get("id") is None:
            row.pop("id", None)
        return row
