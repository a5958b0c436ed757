"""labeler/services/view_scope.py

Task group tied to the lifetime of one view (a WebSocket labeling session or
a single review request). Independent reads are spawned as tasks and joined
before anything is rendered; closing the view cancels whatever is still in
flight so stale results are never acted on.
"""
import asyncio
import logging
from typing import Any, Awaitable, Coroutine, List, Optional, Set

from labeler.exceptions import ViewClosedError

log = logging.getLogger(__name__)


class ViewScope:
    def __init__(self, name: str = "view") -> None:
        self.name = name
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    def spawn(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        """Start *coro* as a task owned by this view."""
        if self._closed:
            coro.close()
            raise ViewClosedError(f"View '{self.name}' is closed")
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def join(self, *coros: Awaitable[Any]) -> List[Any]:
        """Run *coros* concurrently; results come back in argument order.

        If any of them fails the others are cancelled and the first error is
        re-raised.
        """
        tasks = [self.spawn(c) for c in coros]  # type: ignore[arg-type]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for t in tasks:
                if not t.done():
                    t.cancel()
            raise

    async def aclose(self) -> None:
        """Close the view and cancel everything it still has in flight."""
        if self._closed:
            return
        self._closed = True
        tasks = [t for t in self._tasks if not t.done()]
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            log.debug("[view_scope] %s cancelled %d pending task(s)", self.name, len(tasks))
        self._tasks.clear()

    async def __aenter__(self) -> "ViewScope":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
