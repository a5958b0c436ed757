import pytest

from labeler.core.container import ContainerSize
from labeler.core.drawing import LabelingSession
from labeler.core_models import Chunk
from labeler.exceptions import ChunkValidationError, NotFoundError, StoreError
from labeler.services.labeling import (
    load_review,
    render_session,
    save_and_next,
    select_chunk_at,
)
from labeler.services.store import LabelStore
from labeler.services.view_scope import ViewScope


@pytest.fixture
def store(fake_supabase):
    return LabelStore(fake_supabase)


def _session_with_chunks(n, whiteboard_id="wb-1"):
    session = LabelingSession(user_id="u1", whiteboard_id=whiteboard_id)
    for i in range(n):
        session.click(10 * i, 10)
        session.click(10 * i + 50, 60)
        session.update_details(transcription=f"line {i}", confidence="medium")
        session.save_chunk(400, 200)
    return session


def _chunk(bounds, text="x", confidence="high"):
    x_min, y_min, x_max, y_max = bounds
    return Chunk(whiteboard_id="wb-1", user_id="u1", x_min=x_min, y_min=y_min,
                 x_max=x_max, y_max=y_max, transcription=text, confidence=confidence)


@pytest.mark.asyncio
async def test_save_requires_at_least_one_chunk(store, fake_supabase):
    session = LabelingSession(user_id="u1", whiteboard_id="wb-1")
    with pytest.raises(ChunkValidationError, match="at least one chunk"):
        await save_and_next(session, store)
    assert not [c for c in fake_supabase.calls if c[0] == "insert"]


@pytest.mark.asyncio
async def test_save_persists_and_suggests_next_whiteboard(store, fake_supabase):
    session = _session_with_chunks(2)
    result = await save_and_next(session, store)

    assert result.saved == 2
    assert result.next_whiteboard_id == "wb-2"
    assert session.committed == []
    stored = fake_supabase.tables["chunks"]
    assert [r["transcription"] for r in stored] == ["line 0", "line 1"]
    assert all(r["user_id"] == "u1" and r["whiteboard_id"] == "wb-1" for r in stored)


@pytest.mark.asyncio
async def test_save_with_nothing_left_returns_no_next(store, fake_supabase, chunk_row):
    fake_supabase.tables["chunks"] += [chunk_row(whiteboard_id="wb-2", user_id="u1"),
                                       chunk_row(whiteboard_id="wb-3", user_id="u1")]
    result = await save_and_next(_session_with_chunks(1), store)
    assert result.next_whiteboard_id is None


@pytest.mark.asyncio
async def test_failed_insert_keeps_committed_chunks(store, fake_supabase):
    fake_supabase.failures[("insert", "chunks")] = RuntimeError("timeout")
    session = _session_with_chunks(2)
    with pytest.raises(StoreError):
        await save_and_next(session, store)
    assert len(session.committed) == 2

    del fake_supabase.failures[("insert", "chunks")]
    result = await save_and_next(session, store)
    assert result.saved == 2


@pytest.mark.asyncio
async def test_next_lookup_failure_is_not_fatal(store, fake_supabase):
    fake_supabase.failures[("rpc", "get_unlabeled_whiteboards")] = RuntimeError("rpc down")
    result = await save_and_next(_session_with_chunks(1), store)
    assert result.saved == 1
    assert result.next_whiteboard_id is None


def test_render_idle_session():
    session = LabelingSession(user_id="u1", whiteboard_id="wb-1")
    view = render_session(session, ContainerSize(0, 0))
    assert view == {
        "state": "idle",
        "container": {"width": 0, "height": 0},
        "preview": None,
        "draft": None,
        "committed": [],
    }


def test_render_preview_follows_hover_then_second_corner():
    session = LabelingSession(user_id="u1", whiteboard_id="wb-1")
    session.click(100, 100)
    view = render_session(session, ContainerSize(400, 200))
    assert view["state"] == "first_corner_set"
    assert view["preview"] == {"left": 100, "top": 100, "width": 0, "height": 0}

    session.move(40, 150)
    view = render_session(session, ContainerSize(400, 200))
    assert view["preview"] == {"left": 40, "top": 100, "width": 60, "height": 50}

    session.click(200, 180)
    session.update_details(transcription="abc", confidence="low")
    view = render_session(session, ContainerSize(400, 200))
    assert view["state"] == "both_corners_set"
    assert view["preview"] == {"left": 100, "top": 100, "width": 100, "height": 80}
    assert view["draft"] == {"transcription": "abc", "confidence": "low"}


def test_committed_chunks_follow_container_size():
    session = _session_with_chunks(1)
    small = render_session(session, ContainerSize(400, 200))["committed"][0]
    large = render_session(session, ContainerSize(800, 400))["committed"][0]
    assert small["rect"]["width"] == pytest.approx(50)
    assert large["rect"]["width"] == pytest.approx(100)
    assert small["color"] == "orange"


@pytest.mark.asyncio
async def test_load_review_fetches_whiteboard_and_chunks(store, fake_supabase, chunk_row):
    fake_supabase.tables["chunks"].append(chunk_row(whiteboard_id="wb-1", user_id="u1"))
    async with ViewScope("review") as scope:
        whiteboard, chunks = await load_review(scope, store, "wb-1", "u1")
    assert whiteboard.id == "wb-1"
    assert len(chunks) == 1


@pytest.mark.asyncio
async def test_load_review_missing_whiteboard(store):
    async with ViewScope("review") as scope:
        with pytest.raises(NotFoundError):
            await load_review(scope, store, "missing", "u1")


def test_select_chunk_prefers_last_drawn():
    under = _chunk((0.0, 0.0, 0.5, 0.5), text="under")
    over = _chunk((0.2, 0.2, 0.4, 0.4), text="over")
    size = ContainerSize(100, 100)
    assert select_chunk_at([under, over], 30, 30, size).transcription == "over"
    assert select_chunk_at([under, over], 10, 10, size).transcription == "under"
    assert select_chunk_at([under, over], 90, 90, size) is None


def test_select_chunk_needs_measured_container():
    assert select_chunk_at([_chunk((0, 0, 1, 1))], 0, 0, ContainerSize(0, 0)) is None
