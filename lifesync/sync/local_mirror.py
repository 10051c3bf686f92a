"""
Local mirror: the on-device working copy of all synchronizable data.

Each logical table (``books``, ``japaneseActivities``, ...) is a ``LocalTable``
over the shared ``local_records`` table. Records go in and come out as plain
dicts in local form (camelCase keys, ``datetime`` timestamps).

Reads used by the rest of the application go through ``active()`` or filter
``deletedAt`` themselves; tombstones stay visible only to the sync engine.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, select, delete, col

from lifesync.models.local import LocalRecord, SyncMeta
from lifesync.sync.field_mapper import ENTITIES, TIMESTAMP_FIELDS, parse_timestamp, serialize_value

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


# ===========================
# Interfaces used by the sync engine
# ===========================

class PendingQueryable(Protocol):
    async def query_pending(self) -> List[Record]: ...

    async def clear_pending_flag(self, record_id: str, if_updated_at: Optional[datetime] = None) -> None: ...


class BulkUpsertable(Protocol):
    async def get(self, record_id: str) -> Optional[Record]: ...

    async def bulk_upsert(self, records: List[Record]) -> int: ...


class DeletableById(Protocol):
    async def delete_by_ids(self, ids: Iterable[str]) -> int: ...


class SyncableTable(PendingQueryable, BulkUpsertable, DeletableById, Protocol):
    name: str


# ===========================
# Encoding
# ===========================

def encode_record(record: Record) -> Record:
    """
    Make a record JSON-safe (datetimes become ISO strings).

    Timestamp fields given as strings are normalized to the same UTC form.

    Raises:
        ValueError: If a timestamp field does not parse.
    """
    encoded = {}
    for key, value in record.items():
        if key in TIMESTAMP_FIELDS and isinstance(value, str):
            value = parse_timestamp(value)
        encoded[key] = serialize_value(value)
    return encoded


def _same_instant(stored: Any, expected: Any) -> bool:
    try:
        return parse_timestamp(stored) == parse_timestamp(expected)
    except ValueError:
        return stored == expected


def decode_record(data: Record) -> Record:
    record = dict(data)
    for key in TIMESTAMP_FIELDS:
        value = record.get(key)
        if isinstance(value, str):
            record[key] = parse_timestamp(value)
    return record


def _to_row(table_name: str, record: Record) -> LocalRecord:
    if not record.get("id"):
        raise ValueError(f"Cannot store a record without an id in '{table_name}'")
    return LocalRecord(
        table_name=table_name,
        id=record["id"],
        pending_sync=bool(record.get("pendingSync", False)),
        is_deleted=record.get("deletedAt") is not None,
        data=encode_record(record),
    )


# ===========================
# Tables
# ===========================

class LocalTable:
    """One logical table of the local mirror."""

    def __init__(self, engine: Engine, name: str):
        self.engine = engine
        self.name = name

    def _select(self):
        return select(LocalRecord).where(LocalRecord.table_name == self.name).order_by(LocalRecord.id)

    def _load(self, query) -> List[Record]:
        with Session(self.engine) as session:
            return [decode_record(row.data) for row in session.exec(query).all()]

    async def get(self, record_id: str) -> Optional[Record]:
        """Get a record by id, tombstones included."""
        with Session(self.engine) as session:
            row = session.get(LocalRecord, (self.name, record_id))
            return decode_record(row.data) if row else None

    async def insert(self, record: Record) -> Record:
        """Add a new record; fails if the id is already taken."""
        row = _to_row(self.name, record)
        with Session(self.engine) as session:
            if session.get(LocalRecord, (self.name, row.id)) is not None:
                raise ValueError(f"Record '{row.id}' already exists in '{self.name}'")
            session.add(row)
            session.commit()
        return record

    async def put(self, record: Record) -> Record:
        """Insert or replace a single record by id."""
        with Session(self.engine) as session:
            session.merge(_to_row(self.name, record))
            session.commit()
        return record

    async def bulk_upsert(self, records: List[Record]) -> int:
        """
        Insert or replace records by id in one transaction.

        ``pendingSync`` is stored exactly as supplied by the caller.
        """
        if not records:
            return 0
        with Session(self.engine) as session:
            for record in records:
                session.merge(_to_row(self.name, record))
            session.commit()
        return len(records)

    async def delete_by_ids(self, ids: Iterable[str]) -> int:
        """Physically remove records. Unknown ids are ignored."""
        ids = list(ids)
        if not ids:
            return 0
        with Session(self.engine) as session:
            result = session.exec(
                delete(LocalRecord).where(
                    LocalRecord.table_name == self.name,
                    col(LocalRecord.id).in_(ids),
                )
            )
            session.commit()
            return result.rowcount or 0

    async def query_pending(self) -> List[Record]:
        """Every record with unpushed changes, tombstones included."""
        return self._load(self._select().where(LocalRecord.pending_sync == True))  # noqa: E712

    async def clear_pending_flag(self, record_id: str, if_updated_at: Optional[datetime] = None) -> None:
        """
        Mark one record as synced. No-op if it no longer exists.

        With ``if_updated_at``, the flag is only cleared if the stored record
        still carries that ``updatedAt`` (i.e. it was not edited since it was read).
        """
        with Session(self.engine) as session:
            row = session.get(LocalRecord, (self.name, record_id))
            if row is None:
                return
            if if_updated_at is not None and not _same_instant(row.data.get("updatedAt"), if_updated_at):
                logger.debug(f"{self.name} record {record_id} changed during push, keeping it pending")
                return
            row.pending_sync = False
            row.data = {**row.data, "pendingSync": False}
            session.add(row)
            session.commit()

    async def where(self, field: str, value: Any) -> List[Record]:
        """Records whose ``field`` equals ``value``, tombstones included."""
        if field == "pendingSync":
            return self._load(self._select().where(LocalRecord.pending_sync == bool(value)))
        return [record for record in await self.all() if record.get(field) == value]

    async def filter(self, predicate: Callable[[Record], bool]) -> List[Record]:
        return [record for record in await self.all() if predicate(record)]

    async def all(self) -> List[Record]:
        return self._load(self._select())

    async def active(self) -> List[Record]:
        """Every non-deleted record."""
        return self._load(self._select().where(LocalRecord.is_deleted == False))  # noqa: E712


class LocalMirror:
    """
    The on-device store: one ``LocalTable`` per entity plus sync metadata.

    Usage:
        mirror = LocalMirror(create_local_engine(settings.LOCAL_DATABASE_URL))
        mirror.create_tables()
        pending = await mirror.books.query_pending()
    """

    def __init__(self, engine: Engine, table_names: Optional[Iterable[str]] = None):
        self.engine = engine
        names = list(table_names) if table_names is not None else list(ENTITIES)
        self._tables: Dict[str, LocalTable] = {name: LocalTable(engine, name) for name in names}

    def create_tables(self) -> None:
        SQLModel.metadata.create_all(
            self.engine,
            tables=[LocalRecord.__table__, SyncMeta.__table__],
        )

    def table(self, name: str) -> LocalTable:
        try:
            return self._tables[name]
        except KeyError:
            raise KeyError(f"Unknown local table '{name}'") from None

    @property
    def table_names(self) -> List[str]:
        return list(self._tables)

    @property
    def books(self) -> LocalTable:
        return self.table("books")

    @property
    def japanese_activities(self) -> LocalTable:
        return self.table("japaneseActivities")

    @property
    def foods(self) -> LocalTable:
        return self.table("foods")

    @property
    def meal_entries(self) -> LocalTable:
        return self.table("mealEntries")

    @property
    def sport_activities(self) -> LocalTable:
        return self.table("sportActivities")

    @property
    def weight_entries(self) -> LocalTable:
        return self.table("weightEntries")

    async def get_meta(self, key: str) -> Optional[str]:
        with Session(self.engine) as session:
            meta = session.get(SyncMeta, key)
            return meta.value if meta else None

    async def set_meta(self, key: str, value: str) -> None:
        with Session(self.engine) as session:
            session.merge(SyncMeta(key=key, value=value))
            session.commit()
