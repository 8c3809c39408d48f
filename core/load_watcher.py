"""Race a tab's load-complete signal against a fixed ceiling."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from core.tab_platform import STATUS_COMPLETE, TabHandle, TabPlatform, Unsubscribe
from core.types import LoadOutcome, TabID

logger = logging.getLogger(__name__)


class LoadWatcher:
    """Resolve on the first ``complete`` status for one tab, or on timeout.

    Subscribe before navigating so the signal cannot be missed::

        async with LoadWatcher(platform, tab, timeout=15) as watcher:
            await platform.navigate(tab, url)
            outcome = await watcher.wait()

    The platform subscription and the timer are released exactly once,
    whichever side wins and also when the waiter is cancelled.
    """

    def __init__(self, platform: TabPlatform, tab: TabHandle, timeout: float) -> None:
        self.platform = platform
        self.tab = tab
        self.timeout = timeout
        self.started_at: Optional[float] = None
        self.elapsed: Optional[float] = None

        self._future: Optional[asyncio.Future] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._released = False

    def start(self) -> None:
        if self._future is not None:
            return
        loop = asyncio.get_running_loop()
        self._future = loop.create_future()
        self.started_at = time.monotonic()
        self._unsubscribe = self.platform.subscribe_load(self.tab, self._on_status)
        self._timer = loop.call_later(self.timeout, self._resolve, LoadOutcome.TIMEOUT)

    async def wait(self) -> LoadOutcome:
        self.start()
        try:
            return await self._future
        finally:
            self._release()

    async def __aenter__(self) -> "LoadWatcher":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._release()

    @property
    def released(self) -> bool:
        return self._released

    def _on_status(self, tab_id: TabID, status: str) -> None:
        if tab_id == self.tab.tab_id and status == STATUS_COMPLETE:
            self._resolve(LoadOutcome.COMPLETE)

    def _resolve(self, outcome: LoadOutcome) -> None:
        if self._future is not None and not self._future.done():
            self.elapsed = time.monotonic() - (self.started_at or time.monotonic())
            self._future.set_result(outcome)
        self._release()

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._timer is not None:
            self._timer.cancel()
        if self._unsubscribe is not None:
            try:
                self._unsubscribe()
            except Exception:
                logger.debug("Load listener removal failed for %s", self.tab.tab_id, exc_info=True)
