"""labeler/services/labeling.py

Glue between the pure drawing logic and the store: persisting a labeling
session, rendering its geometry for the client, and loading the review view.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog

from labeler.core import geometry
from labeler.core.container import ContainerSize
from labeler.core.drawing import BothCornersSet, FirstCornerSet, Idle, LabelingSession
from labeler.core_models import Chunk, Confidence, Whiteboard
from labeler.exceptions import ChunkValidationError, StoreError
from labeler.metrics import CHUNK_SAVES
from labeler.services.store import LabelStore
from labeler.services.view_scope import ViewScope

log = structlog.get_logger(__name__)

CONFIDENCE_COLORS: Dict[Confidence, str] = {
    Confidence.HIGH: "green",
    Confidence.MEDIUM: "orange",
    Confidence.LOW: "red",
}


@dataclass
class SaveResult:
    saved: int
    next_whiteboard_id: Optional[str] = None


async def save_and_next(session: LabelingSession, store: LabelStore) -> SaveResult:
    """Bulk-insert the session's committed chunks, then pick the next whiteboard.

    On a store failure the committed chunks stay in the session so the user can
    retry. Failing to find a next whiteboard is not an error; the caller simply
    gets ``next_whiteboard_id=None``.
    """
    if not session.committed:
        raise ChunkValidationError("Please create at least one chunk before saving.")

    pending = list(session.committed)
    try:
        await store.insert_chunks(pending)
    except StoreError:
        CHUNK_SAVES.labels(outcome="error").inc()
        log.error("chunk_save_failed", whiteboard_id=session.whiteboard_id, chunks=len(pending))
        raise
    CHUNK_SAVES.labels(outcome="ok").inc()
    session.mark_saved()
    log.info("chunks_saved", whiteboard_id=session.whiteboard_id, chunks=len(pending))

    next_id: Optional[str] = None
    try:
        upcoming = await store.list_unlabeled_whiteboards(session.user_id, limit=1)
        if upcoming:
            next_id = upcoming[0].id
    except StoreError as exc:
        log.warning("next_whiteboard_lookup_failed", user_id=session.user_id, error=exc.detail)
    return SaveResult(saved=len(pending), next_whiteboard_id=next_id)


def chunk_view(chunk: Chunk, size: ContainerSize) -> Dict[str, Any]:
    """Chunk payload plus its on-screen rectangle and overlay colour."""
    data = chunk.model_dump(mode="json")
    data["rect"] = geometry.normalized_box_rect(chunk.bounds, size.width, size.height).as_dict()
    data["color"] = CONFIDENCE_COLORS.get(chunk.confidence, "red")
    return data


def render_session(session: LabelingSession, size: ContainerSize) -> Dict[str, Any]:
    """Snapshot of the labeling view for the client to draw."""
    state = session.state
    draft: Optional[Dict[str, Any]] = None
    preview: Optional[geometry.PixelRect] = None

    if isinstance(state, FirstCornerSet):
        x1, y1 = state.first
        x2, y2 = state.hover if state.hover is not None else state.first
        preview = geometry.box_rect(x1, y1, x2, y2)
    elif isinstance(state, BothCornersSet):
        preview = geometry.box_rect(*state.first, *state.second)

    if not isinstance(state, Idle):
        draft = {
            "transcription": state.transcription,
            "confidence": state.confidence.value if state.confidence else None,
        }

    return {
        "state": state.kind,
        "container": {"width": size.width, "height": size.height},
        "preview": preview.as_dict() if preview else None,
        "draft": draft,
        "committed": [chunk_view(c, size) for c in session.committed],
    }


async def load_review(scope: ViewScope, store: LabelStore, whiteboard_id: str,
                      user_id: str) -> tuple[Whiteboard, List[Chunk]]:
    """Fetch the whiteboard and the user's chunks on it concurrently."""
    whiteboard, chunks = await scope.join(
        store.get_whiteboard(whiteboard_id),
        store.list_chunks(whiteboard_id, user_id),
    )
    return whiteboard, chunks


def select_chunk_at(chunks: List[Chunk], x: float, y: float, size: ContainerSize) -> Optional[Chunk]:
    """Chunk under pixel point (x, y); the last-drawn box wins on overlap."""
    if not size.measured:
        return None
    nx, ny = geometry.normalize(x, y, size.width, size.height)
    for chunk in reversed(chunks):
        if geometry.box_contains(chunk.bounds, nx, ny):
            return chunk
    return None
