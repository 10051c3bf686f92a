"""
Composition root: wires the local mirror, the remote store, the sync engine,
the debouncer and the mutation services for one signed-in user.
"""

import logging
from typing import Optional

from sqlalchemy.engine import Engine

from lifesync.core.config import settings
from lifesync.database.engine import create_local_engine
from lifesync.services import (
    BookService,
    JapaneseService,
    NutritionService,
    SportService,
    SyncCoordinator,
    WeightService,
)
from lifesync.sync.debouncer import SyncDebouncer
from lifesync.sync.engine import SyncEngine
from lifesync.sync.local_mirror import LocalMirror
from lifesync.sync.remote import RemoteStore, create_remote_store

logger = logging.getLogger(__name__)


class LifeSyncClient:
    """
    Usage:
        async with LifeSyncClient(user_id) as client:
            await client.weight.add_or_update_weight(72.5, "2024-03-01")
            result = await client.sync.sync()
    """

    def __init__(
        self,
        user_id: str,
        local_engine: Optional[Engine] = None,
        remote: Optional[RemoteStore] = None,
        debounce_seconds: Optional[float] = None,
    ):
        self.user_id = user_id
        self.mirror = LocalMirror(local_engine or create_local_engine())
        self.remote = remote or create_remote_store()
        self.engine = SyncEngine(
            self.mirror,
            self.remote,
            pass_timeout=settings.SYNC_PASS_TIMEOUT_SECONDS,
        )
        self.debouncer = SyncDebouncer(self.engine, delay=debounce_seconds)

        self.books = BookService(self.mirror, user_id, self.debouncer)
        self.japanese = JapaneseService(self.mirror, user_id, self.debouncer)
        self.nutrition = NutritionService(self.mirror, user_id, self.debouncer)
        self.sport = SportService(self.mirror, user_id, self.debouncer)
        self.weight = WeightService(self.mirror, user_id, self.debouncer)
        self.sync = SyncCoordinator(self.engine, self.debouncer, user_id)

    async def start(self, auto_sync: bool = True) -> None:
        """Create local tables, load the sync state and sync if the data is stale."""
        self.mirror.create_tables()
        await self.sync.load()
        if auto_sync:
            await self.sync.check_and_sync()

    async def close(self) -> None:
        """Run any pending debounced sync, then release the remote store."""
        await self.debouncer.drain()
        aclose = getattr(self.remote, "aclose", None)
        if aclose is not None:
            await aclose()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
