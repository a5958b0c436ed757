import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from labeler.auth import verify_token
from labeler.dependencies import get_store
from labeler.services.csv_export import EXPORT_FILENAME, chunks_to_csv
from labeler.services.store import LabelStore

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/export",
    tags=["Export"],
    dependencies=[Depends(verify_token)],
)


@router.get("/chunks.csv")
async def export_chunks_csv(request: Request, store: LabelStore = Depends(get_store)):
    """Download every chunk the current user labeled, with its whiteboard image URL."""
    user = request.state.user
    rows = await store.list_export_rows(str(user.id))
    if not rows:
        raise HTTPException(status_code=404, detail="No labeled chunks found for this user!")
    log.info("Exporting %d chunk(s) for user %s", len(rows), user.id)
    return Response(
        content=chunks_to_csv(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )
