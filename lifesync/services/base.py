"""
Shared helpers for the mutation services.

Every user-initiated write lands in the local mirror first with
``pendingSync=True`` and then schedules a debounced sync.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from lifesync.sync.debouncer import SyncDebouncer
from lifesync.sync.field_mapper import utcnow
from lifesync.sync.local_mirror import LocalMirror, LocalTable

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


def create_syncable_entity() -> Record:
    """Envelope of a brand new record."""
    now = utcnow()
    return {
        "id": str(uuid.uuid4()),
        "createdAt": now,
        "updatedAt": now,
        "deletedAt": None,
        "pendingSync": True,
    }


def mark_for_sync(record: Record) -> Record:
    """Copy of ``record`` with a fresh ``updatedAt`` and the pending flag set."""
    return {**record, "updatedAt": utcnow(), "pendingSync": True}


def is_active(record: Optional[Record]) -> bool:
    return record is not None and record.get("deletedAt") is None


class SyncedService:
    """
    Base class for services writing to one user's local mirror.

    Args:
        mirror: Local mirror to write to
        user_id: Owner of the data, passed to the sync trigger
        debouncer: Debounced sync trigger; None disables syncing (e.g. offline tools)
    """

    table_name: str = ""

    def __init__(self, mirror: LocalMirror, user_id: str, debouncer: Optional[SyncDebouncer] = None):
        self.mirror = mirror
        self.user_id = user_id
        self.debouncer = debouncer

    @property
    def table(self) -> LocalTable:
        return self.mirror.table(self.table_name)

    def trigger_sync(self) -> None:
        if self.debouncer is not None:
            self.debouncer.schedule(self.user_id)

    async def _create(self, fields: Record, table: Optional[LocalTable] = None) -> Record:
        record = {**create_syncable_entity(), **fields}
        await (table or self.table).insert(record)
        return record

    async def _update(self, record_id: str, changes: Record, table: Optional[LocalTable] = None) -> Optional[Record]:
        table = table or self.table
        existing = await table.get(record_id)
        if not is_active(existing):
            logger.debug(f"Ignoring update of missing {table.name} record {record_id}")
            return None
        updated = mark_for_sync({**existing, **changes})
        await table.put(updated)
        return updated

    async def _soft_delete(self, record_id: str, table: Optional[LocalTable] = None) -> bool:
        table = table or self.table
        existing = await table.get(record_id)
        if not is_active(existing):
            return False
        await table.put(mark_for_sync({**existing, "deletedAt": utcnow()}))
        return True

    async def _active(self, table: Optional[LocalTable] = None) -> List[Record]:
        return await (table or self.table).active()
