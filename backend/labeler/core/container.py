"""labeler/core/container.py

Tracks the on-screen pixel size of the image container. The size is only
known once the client has laid out the page, may change again when the image
finishes loading, and changes on every window resize. Resize reports arrive
in bursts, so they are debounced before being applied.
"""
import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional

log = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_S = 0.15


@dataclass(frozen=True)
class ContainerSize:
    width: float = 0.0
    height: float = 0.0

    @property
    def measured(self) -> bool:
        return self.width > 0 and self.height > 0


def _sanitize(value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


class ContainerSizeTracker:
    """Current container size, starting at (0, 0).

    ``measure`` applies a measurement immediately (initial mount, image
    load-complete). ``on_resize`` debounces: only the last report of a burst
    is applied, ``debounce_s`` after it arrived. ``on_change`` fires whenever
    the applied size actually changes.
    """

    def __init__(self, debounce_s: float = DEFAULT_DEBOUNCE_S,
                 on_change: Optional[Callable[[ContainerSize], None]] = None) -> None:
        self.debounce_s = debounce_s
        self.on_change = on_change
        self._size = ContainerSize()
        self._pending: Optional[asyncio.TimerHandle] = None

    @property
    def size(self) -> ContainerSize:
        return self._size

    @property
    def resize_pending(self) -> bool:
        return self._pending is not None

    def measure(self, width: float, height: float, reason: str = "mount") -> ContainerSize:
        self._cancel_pending()
        return self._apply(width, height, reason)

    def on_mount(self, width: float, height: float) -> ContainerSize:
        return self.measure(width, height, reason="mount")

    def on_image_loaded(self, width: float, height: float) -> ContainerSize:
        return self.measure(width, height, reason="image_loaded")

    def on_resize(self, width: float, height: float) -> None:
        """Schedule a re-measure; must be called from inside the event loop."""
        self._cancel_pending()
        loop = asyncio.get_running_loop()
        self._pending = loop.call_later(self.debounce_s, self._flush_resize, width, height)

    def close(self) -> None:
        self._cancel_pending()

    # ------------------------------------------------------------------ #

    def _flush_resize(self, width: float, height: float) -> None:
        self._pending = None
        self._apply(width, height, "resize")

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _apply(self, width: float, height: float, reason: str) -> ContainerSize:
        new_size = ContainerSize(_sanitize(width), _sanitize(height))
        if new_size == self._size:
            return self._size
        self._size = new_size
        log.debug("Container measured (%s): %sx%s", reason, new_size.width, new_size.height)
        if self.on_change is not None:
            try:
                self.on_change(new_size)
            except Exception as exc:  # pragma: no cover
                log.error("Container size listener failed: %s", exc, exc_info=True)
        return new_size
