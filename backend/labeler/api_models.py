from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from labeler.core_models import Chunk, Confidence, Whiteboard


# --- Error payload ---
class ErrorResponse(BaseModel):
    """Data for reporting an error to the frontend."""
    error_code: Optional[str] = Field(None, description="A unique code identifying the type of error.")
    error_message: str = Field(description="A user-friendly error message.")
    technical_details: Optional[str] = Field(None, description="Optional technical details (for logging/debugging on FE).")


# --- Auth models ---
class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    success: bool
    message: str
    signup: bool = False
    warning: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    user_id: Optional[str] = None


class PasswordResetRequest(BaseModel):
    email: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ProfileResponse(BaseModel):
    id: str
    email: Optional[str] = None


# --- Whiteboard / chunk models ---
class WhiteboardListResponse(BaseModel):
    whiteboards: List[Whiteboard]


class PixelRectModel(BaseModel):
    left: float
    top: float
    width: float
    height: float


class ReviewChunk(Chunk):
    """Stored chunk plus its on-screen geometry, when a container size was supplied."""
    rect: Optional[PixelRectModel] = None
    color: Optional[str] = None


class ReviewResponse(BaseModel):
    whiteboard: Whiteboard
    chunks: List[ReviewChunk]


class ChunkSelectResponse(BaseModel):
    chunk: Optional[ReviewChunk] = None


class ChunkIn(BaseModel):
    """A chunk committed client-side, already in normalized coordinates."""
    x_min: float = Field(ge=0.0, le=1.0)
    y_min: float = Field(ge=0.0, le=1.0)
    x_max: float = Field(ge=0.0, le=1.0)
    y_max: float = Field(ge=0.0, le=1.0)
    transcription: str = Field(..., min_length=1)
    confidence: Confidence
    created_at: Optional[str] = None

    @field_validator("transcription")
    @classmethod
    def _require_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("transcription must not be blank")
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def _parse_confidence(cls, v: Any) -> Confidence:
        return Confidence.parse(v)


class ChunkBatchRequest(BaseModel):
    chunks: List[ChunkIn] = Field(..., min_length=1)


class SaveResponse(BaseModel):
    saved: int
    next_whiteboard_id: Optional[str] = None


# --- Labeling websocket events (client -> server) ---
class MeasureEvent(BaseModel):
    type: Literal["measure"]
    width: float
    height: float
    reason: Literal["mount", "image_loaded"] = "mount"


class ResizeEvent(BaseModel):
    type: Literal["resize"]
    width: float
    height: float


class PointerEvent(BaseModel):
    type: Literal["click", "move"]
    x: float
    y: float


class UpdateEvent(BaseModel):
    type: Literal["update"]
    transcription: Optional[str] = None
    confidence: Optional[str] = None


class CommandEvent(BaseModel):
    type: Literal["save_chunk", "clear_current", "clear_all", "save"]


LabelEvent = Annotated[
    Union[MeasureEvent, ResizeEvent, PointerEvent, UpdateEvent, CommandEvent],
    Field(discriminator="type"),
]

label_event_adapter: TypeAdapter[Any] = TypeAdapter(LabelEvent)


def parse_label_event(data: Dict[str, Any]):
    """Validate one inbound websocket frame into its event model."""
    return label_event_adapter.validate_python(data)
