from __future__ import annotations

# --- labeler/routers/label_ws.py ---
# WebSocket channel that drives the labeling screen. The browser forwards its
# pointer events, container measurements and form edits; the server owns the
# draft gesture and the committed-but-unsaved chunks and answers every event
# with a fresh render of the view.
#
#   Route:  /ws/label/{whiteboard_id}
#
# The client must present a valid Supabase JWT, either via the standard
# `Authorization: Bearer <token>` header or a `?token=` query parameter.
#
# Inbound frames (JSON, discriminated by "type"):
#   measure {width, height, reason}   mount / image load-complete, applied at once
#   resize  {width, height}           debounced
#   click / move {x, y}               pixel coordinates inside the container
#   update  {transcription?, confidence?}
#   save_chunk | clear_current | clear_all | save
#
# Outbound frames: whiteboard, state, saved, error.

import asyncio
import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from labeler.api_models import (
    CommandEvent,
    MeasureEvent,
    PointerEvent,
    ResizeEvent,
    UpdateEvent,
    parse_label_event,
)
from labeler.auth import authenticate_ws
from labeler.config import Settings
from labeler.core.container import ContainerSize, ContainerSizeTracker
from labeler.core.drawing import LabelingSession
from labeler.dependencies import get_identity, get_settings, get_store
from labeler.exceptions import (
    AuthenticationError,
    ChunkValidationError,
    NotFoundError,
    StoreError,
    ViewClosedError,
)
from labeler.metrics import CHUNKS_COMMITTED
from labeler.services.identity import IdentityProvider
from labeler.services.labeling import render_session, save_and_next
from labeler.services.store import LabelStore
from labeler.services.view_scope import ViewScope

log = logging.getLogger(__name__)

router = APIRouter(prefix="/ws")

CLOSE_UNAUTHORIZED = 4401
CLOSE_NOT_FOUND = 4404
CLOSE_INTERNAL = 1011


class _LabelView:
    """Everything owned by one connected labeling screen."""

    def __init__(self, ws: WebSocket, session: LabelingSession, debounce_s: float) -> None:
        self.ws = ws
        self.session = session
        self.scope = ViewScope(f"label:{session.whiteboard_id}")
        self.tracker = ContainerSizeTracker(debounce_s=debounce_s, on_change=self._on_resize)
        self._send_lock = asyncio.Lock()

    def _on_resize(self, size: ContainerSize) -> None:
        try:
            self.scope.spawn(self.send_state(), name="push-state")
        except ViewClosedError:
            pass  # view already gone

    async def send(self, data: Dict[str, Any]) -> None:
        async with self._send_lock:
            await safe_send_json(self.ws, data)

    async def send_state(self) -> None:
        await self.send({"type": "state", **render_session(self.session, self.tracker.size)})

    async def send_error(self, code: str, message: str) -> None:
        log.info("[label_ws] %s for whiteboard %s: %s", code, self.session.whiteboard_id, message)
        await self.send({"type": "error", "code": code, "message": message})

    async def close(self) -> None:
        self.tracker.close()
        await self.scope.aclose()


async def safe_send_json(ws: WebSocket, data: Any) -> None:
    """Attempts to send JSON data, skipping sockets that are already closed."""
    try:
        if ws.client_state == WebSocketState.CONNECTED:
            await ws.send_json(data)
        else:
            log.debug("[label_ws] socket not connected (state=%s); dropping frame", ws.client_state)
    except (RuntimeError, WebSocketDisconnect) as e:
        log.warning("[label_ws] failed to send frame, socket likely closed: %s", e)


async def _handle_event(view: _LabelView, event: Any, store: LabelStore) -> None:
    session = view.session
    if isinstance(event, MeasureEvent):
        # on_change pushes the new state if the size moved
        view.tracker.measure(event.width, event.height, reason=event.reason)
        return
    if isinstance(event, ResizeEvent):
        view.tracker.on_resize(event.width, event.height)
        return
    if isinstance(event, PointerEvent):
        if event.type == "click":
            session.click(event.x, event.y)
        else:
            session.move(event.x, event.y)
    elif isinstance(event, UpdateEvent):
        session.update_details(transcription=event.transcription, confidence=event.confidence)
    elif isinstance(event, CommandEvent):
        if event.type == "save_chunk":
            size = view.tracker.size
            session.save_chunk(size.width, size.height)
            CHUNKS_COMMITTED.inc()
        elif event.type == "clear_current":
            session.clear_current()
        elif event.type == "clear_all":
            session.clear_all()
        elif event.type == "save":
            result = await view.scope.spawn(save_and_next(session, store), name="save")
            await view.send({
                "type": "saved",
                "saved": result.saved,
                "next_whiteboard_id": result.next_whiteboard_id,
            })
    await view.send_state()


@router.websocket("/label/{whiteboard_id}")
async def label_stream(
    ws: WebSocket,
    whiteboard_id: str,
    identity: IdentityProvider = Depends(get_identity),
    store: LabelStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Labeling gesture channel for one whiteboard."""
    try:
        user = await authenticate_ws(ws, identity)
    except AuthenticationError as auth_err:
        log.warning("[label_ws] Auth failed: %s", auth_err.detail)
        await ws.close(code=CLOSE_UNAUTHORIZED, reason="No user session found. Please log in.")
        return

    await ws.accept()
    session = LabelingSession(user_id=str(user.id), whiteboard_id=whiteboard_id)
    view = _LabelView(ws, session, debounce_s=settings.resize_debounce_ms / 1000)
    log.info("[label_ws] user=%s opened whiteboard %s", user.id, whiteboard_id)

    try:
        try:
            whiteboard = await view.scope.spawn(store.get_whiteboard(whiteboard_id), name="fetch-whiteboard")
        except NotFoundError:
            await view.send_error("not_found", "No whiteboard found.")
            await ws.close(code=CLOSE_NOT_FOUND, reason="Whiteboard not found")
            return
        except StoreError:
            await view.send_error("store_error", "Error fetching whiteboard.")
            await ws.close(code=CLOSE_INTERNAL, reason="Internal error")
            return

        await view.send({"type": "whiteboard", "whiteboard": whiteboard.model_dump(mode="json")})
        await view.send_state()

        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None:
                await view.send_error("invalid_message", "Frames must be JSON text, not binary.")
                continue
            try:
                raw = json.loads(text)
            except ValueError:
                await view.send_error("invalid_message", "Frames must be JSON objects.")
                continue

            try:
                event = parse_label_event(raw)
            except ValidationError as exc:
                await view.send_error("invalid_message", f"Unrecognised event: {exc.errors()[0].get('msg', 'invalid')}")
                continue

            try:
                await _handle_event(view, event, store)
            except ChunkValidationError as exc:
                await view.send_error(exc.code, exc.detail)
            except StoreError as exc:
                # Committed chunks are still in the session; the user can retry
                log.error("[label_ws] store failure on whiteboard %s: %s", whiteboard_id, exc.detail)
                await view.send_error(exc.code, "Error saving chunks.")
                await view.send_state()
    finally:
        await view.close()
        log.info(
            "[label_ws] user=%s closed whiteboard %s (%d unsaved chunk(s) dropped)",
            user.id,
            whiteboard_id,
            len(session.committed),
        )
