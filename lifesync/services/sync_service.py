"""
Sync coordinator: the user-facing side of the sync engine.

Tracks a status (idle, syncing, success, error), the last sync time and the
last error, auto-syncs on start when the data is stale, and exposes the
manual and debounced triggers.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from lifesync.core.config import settings
from lifesync.schemas.sync import SyncResult, SyncStatus
from lifesync.sync.debouncer import SyncDebouncer
from lifesync.sync.engine import SyncEngine

logger = logging.getLogger(__name__)


class SyncCoordinator:
    """
    Usage:
        coordinator = SyncCoordinator(engine, debouncer, user_id)
        await coordinator.load()
        await coordinator.check_and_sync()   # on start
        result = await coordinator.sync()    # manual refresh
    """

    def __init__(
        self,
        engine: SyncEngine,
        debouncer: Optional[SyncDebouncer],
        user_id: Optional[str],
        status_reset_seconds: Optional[float] = None,
    ):
        self.engine = engine
        self.debouncer = debouncer
        self.user_id = user_id
        self.status_reset_seconds = (
            settings.SYNC_STATUS_RESET_SECONDS if status_reset_seconds is None else status_reset_seconds
        )
        self.status = SyncStatus.IDLE
        self.last_synced: Optional[datetime] = None
        self.error: Optional[str] = None
        self._reset_handle: Optional[asyncio.TimerHandle] = None

    async def load(self) -> Optional[datetime]:
        self.last_synced = await self.engine.get_last_sync_time()
        return self.last_synced

    async def sync(self) -> Optional[SyncResult]:
        """Run a sync pass now and surface its outcome. None when signed out."""
        if not self.user_id:
            return None

        self._cancel_reset()
        self.status = SyncStatus.SYNCING
        self.error = None

        result = await self.engine.sync_now(self.user_id)
        if result.success:
            self.status = SyncStatus.SUCCESS
            self.last_synced = await self.engine.get_last_sync_time()
            self._schedule_reset()
        else:
            self.status = SyncStatus.ERROR
            self.error = result.error or "Sync failed"
            logger.warning(f"Manual sync failed: {self.error}")
        return result

    async def check_and_sync(self) -> Optional[SyncResult]:
        """Sync only if no pass completed in the staleness window."""
        if not self.user_id:
            return None
        if await self.engine.is_sync_needed():
            logger.info("Local data is stale, syncing")
            return await self.sync()
        return None

    def trigger_sync(self) -> None:
        """Fire-and-forget debounced sync."""
        if self.user_id and self.debouncer is not None:
            self.debouncer.schedule(self.user_id)

    def _schedule_reset(self) -> None:
        loop = asyncio.get_running_loop()
        self._reset_handle = loop.call_later(self.status_reset_seconds, self._reset_status)

    def _cancel_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None

    def _reset_status(self) -> None:
        self._reset_handle = None
        if self.status == SyncStatus.SUCCESS:
            self.status = SyncStatus.IDLE
