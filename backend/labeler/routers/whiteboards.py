import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from labeler.api_models import (
    ChunkBatchRequest,
    ChunkSelectResponse,
    ReviewChunk,
    ReviewResponse,
    SaveResponse,
    WhiteboardListResponse,
)
from labeler.auth import verify_token
from labeler.core import geometry
from labeler.core.container import ContainerSize
from labeler.core.drawing import LabelingSession
from labeler.core_models import Chunk, Whiteboard
from labeler.dependencies import get_store
from labeler.services.labeling import chunk_view, load_review, save_and_next, select_chunk_at
from labeler.services.store import LabelStore
from labeler.services.view_scope import ViewScope

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/whiteboards",
    tags=["Whiteboards"],
    dependencies=[Depends(verify_token)],
)


def _review_chunks(chunks: List[Chunk], width: Optional[float], height: Optional[float]) -> List[ReviewChunk]:
    if width and height:
        size = ContainerSize(width, height)
        return [ReviewChunk.model_validate(chunk_view(c, size)) for c in chunks]
    return [ReviewChunk.model_validate(c.model_dump()) for c in chunks]


@router.get("/unlabeled", response_model=WhiteboardListResponse)
async def list_unlabeled(
    request: Request,
    limit: Optional[int] = Query(None, ge=1),
    store: LabelStore = Depends(get_store),
):
    """Whiteboards the current user has not labeled yet."""
    user = request.state.user
    boards = await store.list_unlabeled_whiteboards(str(user.id), limit=limit)
    return WhiteboardListResponse(whiteboards=boards)


@router.get("/labeled", response_model=WhiteboardListResponse)
async def list_labeled(request: Request, store: LabelStore = Depends(get_store)):
    """Whiteboards the current user has at least one chunk on."""
    user = request.state.user
    boards = await store.list_labeled_whiteboards(str(user.id))
    return WhiteboardListResponse(whiteboards=boards)


@router.get("/{whiteboard_id}", response_model=Whiteboard)
async def get_whiteboard(whiteboard_id: str, store: LabelStore = Depends(get_store)):
    return await store.get_whiteboard(whiteboard_id)


@router.get("/{whiteboard_id}/review", response_model=ReviewResponse)
async def review_whiteboard(
    request: Request,
    whiteboard_id: str,
    width: Optional[float] = Query(None, ge=0),
    height: Optional[float] = Query(None, ge=0),
    store: LabelStore = Depends(get_store),
):
    """A completed whiteboard with the current user's chunks.

    When the client passes its container ``width``/``height`` each chunk also
    carries its on-screen rectangle.
    """
    user = request.state.user
    async with ViewScope(f"review:{whiteboard_id}") as scope:
        whiteboard, chunks = await load_review(scope, store, whiteboard_id, str(user.id))
    return ReviewResponse(whiteboard=whiteboard, chunks=_review_chunks(chunks, width, height))


@router.get("/{whiteboard_id}/review/select", response_model=ChunkSelectResponse)
async def select_chunk(
    request: Request,
    whiteboard_id: str,
    x: float,
    y: float,
    width: float = Query(..., ge=0),
    height: float = Query(..., ge=0),
    store: LabelStore = Depends(get_store),
):
    """The chunk under a click on the review screen, or ``null``."""
    user = request.state.user
    chunks = await store.list_chunks(whiteboard_id, str(user.id))
    size = ContainerSize(width, height)
    hit = select_chunk_at(chunks, x, y, size)
    if hit is None:
        return ChunkSelectResponse(chunk=None)
    return ChunkSelectResponse(chunk=ReviewChunk.model_validate(chunk_view(hit, size)))


@router.post("/{whiteboard_id}/chunks", response_model=SaveResponse, status_code=201)
async def save_chunks(
    request: Request,
    whiteboard_id: str,
    body: ChunkBatchRequest,
    store: LabelStore = Depends(get_store),
):
    """Persist chunks a client committed on its own, then suggest the next whiteboard."""
    user = request.state.user
    session = LabelingSession(user_id=str(user.id), whiteboard_id=whiteboard_id)
    for item in body.chunks:
        x_min, y_min, x_max, y_max = geometry.box((item.x_min, item.y_min), (item.x_max, item.y_max))
        fields = dict(
            whiteboard_id=whiteboard_id,
            user_id=str(user.id),
            x_min=x_min,
            y_min=y_min,
            x_max=x_max,
            y_max=y_max,
            transcription=item.transcription,
            confidence=item.confidence,
        )
        if item.created_at:
            fields["created_at"] = item.created_at
        session.committed.append(Chunk(**fields))
    result = await save_and_next(session, store)
    return SaveResponse(saved=result.saved, next_whiteboard_id=result.next_whiteboard_id)
