"""labeler/core/drawing.py

Two-click rectangle drawing gesture used on the labeling screen.

The draft is one of three states::

    Idle --click--> FirstCornerSet --click--> BothCornersSet --save_chunk--> Idle
                      |  ^ move                    |
                      +--+                         +--clear_current / clear_all--> Idle

Corners are held in raw pixel coordinates while drawing and are normalized
only when the chunk is committed.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional, Union

import structlog

from labeler.core import geometry
from labeler.core_models import Chunk, Confidence
from labeler.exceptions import ChunkValidationError

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Idle:
    kind = "idle"


@dataclass(frozen=True)
class FirstCornerSet:
    first: geometry.Point
    hover: Optional[geometry.Point] = None
    transcription: str = ""
    confidence: Optional[Confidence] = None
    kind = "first_corner_set"


@dataclass(frozen=True)
class BothCornersSet:
    first: geometry.Point
    second: geometry.Point
    transcription: str = ""
    confidence: Optional[Confidence] = None
    kind = "both_corners_set"


DraftState = Union[Idle, FirstCornerSet, BothCornersSet]

IDLE = Idle()


class LabelingSession:
    """Draft gesture plus the committed-but-unsaved chunks of one labeling view."""

    def __init__(self, user_id: str, whiteboard_id: str) -> None:
        self.user_id = str(user_id)
        self.whiteboard_id = str(whiteboard_id)
        self.state: DraftState = IDLE
        self.committed: List[Chunk] = []

    # ------------------------------------------------------------------ #
    # Pointer events
    # ------------------------------------------------------------------ #

    def click(self, x: float, y: float) -> DraftState:
        point = (float(x), float(y))
        state = self.state
        if isinstance(state, Idle):
            self.state = FirstCornerSet(first=point)
            log.debug("chunk_started", whiteboard_id=self.whiteboard_id, corner=point)
        elif isinstance(state, FirstCornerSet):
            self.state = BothCornersSet(
                first=state.first,
                second=point,
                transcription=state.transcription,
                confidence=state.confidence,
            )
            log.debug("chunk_corners_set", whiteboard_id=self.whiteboard_id, corner=point)
        else:
            # A further click re-picks the second corner
            self.state = replace(state, second=point)
        return self.state

    def move(self, x: float, y: float) -> DraftState:
        """Track the pointer for the live preview; only meaningful mid-draw."""
        if isinstance(self.state, FirstCornerSet):
            self.state = replace(self.state, hover=(float(x), float(y)))
        return self.state

    # ------------------------------------------------------------------ #
    # Draft details
    # ------------------------------------------------------------------ #

    def update_details(self, *, transcription: Optional[str] = None,
                       confidence: Optional[Union[str, Confidence]] = None) -> DraftState:
        state = self.state
        if isinstance(state, Idle):
            raise ChunkValidationError("Start a chunk by clicking its first corner before entering details.")
        changes = {}
        if transcription is not None:
            changes["transcription"] = transcription
        if confidence is not None:
            if confidence == "":
                changes["confidence"] = None
            else:
                try:
                    changes["confidence"] = Confidence.parse(confidence)
                except ValueError as exc:
                    raise ChunkValidationError(f"Invalid confidence {confidence!r}; use low, medium or high.") from exc
        self.state = replace(state, **changes)
        return self.state

    # ------------------------------------------------------------------ #
    # Commit / discard
    # ------------------------------------------------------------------ #

    def save_chunk(self, container_width: float, container_height: float) -> Chunk:
        """Normalize the finished draft into a :class:`Chunk` and commit it.

        Raises :class:`ChunkValidationError` (leaving the draft untouched) when
        a corner, the transcription or the confidence is missing.
        """
        state = self.state
        if isinstance(state, Idle):
            raise ChunkValidationError("Please complete the chunk before saving (missing first corner).")
        if isinstance(state, FirstCornerSet):
            raise ChunkValidationError("Please complete the chunk before saving (missing second corner).")
        if not state.transcription or not state.transcription.strip():
            raise ChunkValidationError("Please complete the chunk before saving (missing transcription).")
        if state.confidence is None:
            raise ChunkValidationError("Please complete the chunk before saving (missing confidence).")

        p1 = geometry.normalize(*state.first, container_width, container_height)
        p2 = geometry.normalize(*state.second, container_width, container_height)
        x_min, y_min, x_max, y_max = (geometry.clamp_unit(v) for v in geometry.box(p1, p2))

        chunk = Chunk(
            whiteboard_id=self.whiteboard_id,
            user_id=self.user_id,
            x_min=x_min,
            y_min=y_min,
            x_max=x_max,
            y_max=y_max,
            transcription=state.transcription,
            confidence=state.confidence,
        )
        self.committed.append(chunk)
        self.state = IDLE
        log.info(
            "chunk_committed",
            whiteboard_id=self.whiteboard_id,
            committed=len(self.committed),
            container=(container_width, container_height),
        )
        return chunk

    def clear_current(self) -> None:
        self.state = IDLE

    def clear_all(self) -> None:
        """Drop the draft and every committed-but-unsaved chunk."""
        dropped = len(self.committed)
        self.state = IDLE
        self.committed = []
        log.info("chunks_cleared", whiteboard_id=self.whiteboard_id, dropped=dropped)

    def mark_saved(self) -> None:
        """Forget committed chunks once the store has accepted them."""
        self.committed = []
