"""Trailing-edge debounce for coroutine callbacks on the running event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class TrailingDebouncer:
    """Run ``callback`` once ``delay`` seconds after the most recent ``trigger()``.

    Each trigger cancels the pending timer and starts a new one. A callback that
    has already started is never cancelled by a later trigger.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Awaitable[None]],
        *,
        name: str = "debounce",
    ) -> None:
        self._delay = delay
        self._callback = callback
        self._name = name
        self._handle: Optional[asyncio.TimerHandle] = None
        self._inflight: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; call skipped", extra={"debounce": self._name})
            return
        self.cancel()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def flush(self) -> None:
        """Run a pending callback now and wait for any callback already running."""
        if self._handle is not None:
            self.cancel()
            await self._run()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._run())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run(self) -> None:
        try:
            await self._callback()
        except Exception:
            logger.exception("Debounced callback failed", extra={"debounce": self._name})


__all__ = ["TrailingDebouncer"]
