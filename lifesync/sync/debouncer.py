"""
Debounced sync trigger.

Every optimistic local write calls ``schedule(user_id)``; a burst of edits
collapses into a single sync pass fired ``delay`` seconds after the last one.
"""

import asyncio
import logging
from typing import Optional, Set

from lifesync.core.config import settings
from lifesync.schemas.sync import SyncResult

logger = logging.getLogger(__name__)


class SyncDebouncer:
    """
    Restartable one-shot timer in front of ``SyncEngine.sync_now``.

    One instance per process, owned by the composition root. Must be used
    from within a running event loop.

    Usage:
        debouncer = SyncDebouncer(engine)
        debouncer.schedule(user_id)   # fire-and-forget
        await debouncer.drain()       # on shutdown: run what is still pending
    """

    def __init__(self, engine, delay: Optional[float] = None):
        self.engine = engine
        self.delay = settings.SYNC_DEBOUNCE_SECONDS if delay is None else delay
        self._timer: Optional[asyncio.TimerHandle] = None
        self._user_id: Optional[str] = None
        self._running: Set[asyncio.Task] = set()
        self.last_result: Optional[SyncResult] = None

    @property
    def pending(self) -> bool:
        """True while a pass is scheduled but has not fired yet."""
        return self._timer is not None

    def schedule(self, user_id: str) -> None:
        """(Re)start the timer; only the latest call within ``delay`` fires."""
        if self._timer is not None:
            self._timer.cancel()

        loop = asyncio.get_running_loop()
        self._user_id = user_id
        self._timer = loop.call_later(self.delay, self._fire)
        logger.debug(f"Sync scheduled in {self.delay}s for user {user_id}")

    def cancel_pending(self) -> bool:
        """Cancel the scheduled pass, if any. Returns whether one was cancelled."""
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        self._user_id = None
        return True

    def _fire(self) -> None:
        user_id = self._user_id
        self._timer = None
        self._user_id = None
        if user_id is None:
            return

        task = asyncio.get_running_loop().create_task(self._run(user_id))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run(self, user_id: str) -> Optional[SyncResult]:
        result = await self.engine.sync_now(user_id)
        self.last_result = result
        if result.success:
            logger.debug(f"Debounced sync for user {user_id} succeeded")
        else:
            logger.warning(f"Debounced sync for user {user_id} failed: {result.error}")
        return result

    async def drain(self) -> None:
        """Fire a scheduled pass now and wait for every running pass to finish."""
        if self._timer is not None:
            self._timer.cancel()
            self._fire()
        if self._running:
            await asyncio.gather(*self._running)
