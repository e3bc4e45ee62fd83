"""Deferred single-shot callbacks for page event handlers."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    def call_later(self, delay_sec: float, callback: Callable[[], None]) -> None:
        ...


class AsyncioScheduler:
    """Run callbacks on an asyncio event loop. Scheduled callbacks are never cancelled."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay_sec: float, callback: Callable[[], None]) -> None:
        self.loop.call_later(max(delay_sec, 0.0), self._run, callback)

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:  # noqa: BLE001
            logger.exception(f"Deferred callback {getattr(callback, '__name__', callback)!r} failed")
