"""labeler/services/store.py

Relational store adapter over the Supabase Postgres API.

supabase-py's query builder is blocking, so every call runs in a worker thread
(``asyncio.to_thread``). That keeps the event loop free and lets independent
reads be joined concurrently by a :class:`~labeler.services.view_scope.ViewScope`.
"""
import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from supabase import Client

from labeler.core import geometry
from labeler.core_models import Chunk, Whiteboard
from labeler.exceptions import NotFoundError, StoreError
from labeler.metrics import STORE_LATENCY

log = logging.getLogger(__name__)

WHITEBOARDS_TABLE = "whiteboards"
CHUNKS_TABLE = "chunks"
USERS_TABLE = "users"

UNLABELED_RPC = "get_unlabeled_whiteboards"
LABELED_RPC = "get_labeled_whiteboards"

# Chunk columns plus the whiteboard image URL via the whiteboard_id foreign key
EXPORT_SELECT = (
    "id, whiteboard_id, user_id, x_min, y_min, x_max, y_max, "
    "transcription, confidence, created_at, whiteboards!inner(image_url)"
)

Filters = Mapping[str, Any]


class LabelStore:
    """Awaitable wrapper around ``supabase.table(...)`` and ``supabase.rpc(...)``."""

    def __init__(self, supabase: Client) -> None:
        self.supabase = supabase

    # ------------------------------------------------------------------ #
    # Generic operations
    # ------------------------------------------------------------------ #

    async def insert(self, table: str, rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert *rows* in a single request (all-or-nothing per the store)."""
        payload = list(rows)

        def _run():
            return self.supabase.table(table).insert(payload).execute()

        response = await self._call(f"insert:{table}", _run)
        return list(response.data or [])

    async def select_one(self, table: str, filters: Filters, columns: str = "*") -> Dict[str, Any]:
        rows = await self._select(table, filters, columns, limit=1)
        if not rows:
            raise NotFoundError(f"No row in '{table}' matching {dict(filters)}")
        return rows[0]

    async def select_many(self, table: str, filters: Filters, columns: str = "*") -> List[Dict[str, Any]]:
        return await self._select(table, filters, columns)

    async def rpc(self, name: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        def _run():
            return self.supabase.rpc(name, params).execute()

        response = await self._call(f"rpc:{name}", _run)
        return list(response.data or [])

    # ------------------------------------------------------------------ #
    # Named procedures and typed helpers
    # ------------------------------------------------------------------ #

    async def list_unlabeled_whiteboards(self, user_id: str, limit: Optional[int] = None) -> List[Whiteboard]:
        """Whiteboards with no chunk rows for *user_id*."""
        params: Dict[str, Any] = {"user_id": str(user_id)}
        if limit is not None:
            params["limit_results"] = limit
        rows = await self.rpc(UNLABELED_RPC, params)
        return [Whiteboard.model_validate(r) for r in rows]

    async def list_labeled_whiteboards(self, user_id: str) -> List[Whiteboard]:
        """Whiteboards with at least one chunk row for *user_id*."""
        rows = await self.rpc(LABELED_RPC, {"user_id": str(user_id)})
        return [Whiteboard.model_validate(r) for r in rows]

    async def get_whiteboard(self, whiteboard_id: str) -> Whiteboard:
        row = await self.select_one(WHITEBOARDS_TABLE, {"id": str(whiteboard_id)})
        return Whiteboard.model_validate(row)

    async def list_chunks(self, whiteboard_id: str, user_id: str) -> List[Chunk]:
        rows = await self.select_many(
            CHUNKS_TABLE, {"whiteboard_id": str(whiteboard_id), "user_id": str(user_id)}
        )
        return [Chunk.model_validate(_repair_bounds(r)) for r in rows]

    async def insert_chunks(self, chunks: Sequence[Chunk]) -> List[Dict[str, Any]]:
        return await self.insert(CHUNKS_TABLE, [c.to_row() for c in chunks])

    async def insert_user(self, user_id: str, email: str, created_at: str) -> None:
        await self.insert(USERS_TABLE, [{"id": str(user_id), "email": email, "created_at": created_at}])

    async def list_export_rows(self, user_id: str) -> List[Dict[str, Any]]:
        """Every chunk labeled by *user_id*, each with a nested ``whiteboards.image_url``."""
        return await self._select(CHUNKS_TABLE, {"user_id": str(user_id)}, EXPORT_SELECT)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _select(self, table: str, filters: Filters, columns: str,
                      limit: Optional[int] = None) -> List[Dict[str, Any]]:
        def _run():
            query = self.supabase.table(table).select(columns)
            for column, value in filters.items():
                query = query.eq(column, value)
            if limit is not None:
                query = query.limit(limit)
            return query.execute()

        response = await self._call(f"select:{table}", _run)
        return list(response.data or [])

    async def _call(self, operation: str, fn: Callable[[], Any]) -> Any:
        started = time.perf_counter()
        try:
            return await asyncio.to_thread(fn)
        except Exception as exc:
            log.error("Store operation %s failed: %s", operation, exc, exc_info=True)
            raise StoreError(f"Store operation '{operation}' failed: {exc}") from exc
        finally:
            STORE_LATENCY.labels(operation=operation.split(":", 1)[0]).observe(time.perf_counter() - started)


_BOUND_KEYS = ("x_min", "y_min", "x_max", "y_max")


def _repair_bounds(row: Dict[str, Any]) -> Dict[str, Any]:
    """Canonicalize and clamp a stored chunk's box so it reads as a valid :class:`Chunk`.

    Older rows were written without clamping (e.g. drawn before the container
    was measured) and can hold pixel-scale or inverted coordinates.
    """
    try:
        x1, y1, x2, y2 = (float(row[k]) for k in _BOUND_KEYS)
    except (KeyError, TypeError, ValueError):
        return row  # let validation report it
    repaired = tuple(geometry.clamp_unit(v) for v in geometry.box((x1, y1), (x2, y2)))
    if repaired == (x1, y1, x2, y2):
        return row
    log.warning("Chunk %s has out-of-range bounds %s; clamped to %s", row.get("id"), (x1, y1, x2, y2), repaired)
    return {**row, **dict(zip(_BOUND_KEYS, repaired))}
