"""
Local mirror storage models.

The on-device store keeps every synchronizable record as a JSON document,
partitioned by logical table name, with the fields the sync engine queries
on (pending flag, tombstone flag) lifted into indexed columns.
"""

from sqlmodel import SQLModel, Field, Column, JSON
from typing import Dict, Any


class LocalRecord(SQLModel, table=True):
    """
    One record of one logical local table.

    Attributes:
        table_name: Logical table (e.g. 'books', 'mealEntries')
        id: Record id, client generated, shared with the remote store
        pending_sync: True while the record has unpushed local changes
        is_deleted: True once the record is a tombstone (deletedAt set)
        data: Full record in local (camelCase) form, timestamps as ISO strings
    """
    __tablename__ = "local_records"

    table_name: str = Field(primary_key=True, max_length=64)
    id: str = Field(primary_key=True, max_length=64)

    pending_sync: bool = Field(default=False, index=True)
    is_deleted: bool = Field(default=False, index=True)

    data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))


class SyncMeta(SQLModel, table=True):
    """Key/value slots for sync bookkeeping (e.g. 'lastSyncedAt')."""
    __tablename__ = "sync_meta"

    key: str = Field(primary_key=True, max_length=100)
    value: str = Field(max_length=255)
