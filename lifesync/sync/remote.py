"""
Remote store adapters.

The remote store is the authoritative, multi-tenant copy of the data: one
table per entity, every row owned by a user, keyed by the client generated id.
Rows cross this boundary as plain dicts in remote form (snake_case columns,
ISO-8601 timestamps).

Two implementations are provided:
- ``SQLRemoteStore``: direct access through SQLModel (server side, tests)
- ``RestRemoteStore``: PostgREST-style HTTP API through httpx

Remote deletes are written as tombstones (the row keeps its id and gets a
``deleted_at``) so that other devices learn about them on their next pull.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Type

import httpx
from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, InterfaceError, SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from lifesync.core.config import settings
from lifesync.models import REMOTE_MODELS
from lifesync.sync.exceptions import RemoteRecordError, TransportError
from lifesync.sync.field_mapper import ensure_utc, serialize_timestamp

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class RemoteStore(Protocol):
    """Operations the sync engine needs from the remote store."""

    async def select_changed(self, table: str, user_id: str, since: Optional[datetime] = None) -> List[Row]:
        """``select * where user_id = ? [and updated_at > ?]``"""
        ...

    async def upsert(self, table: str, row: Row) -> None:
        """Insert or replace a row by id."""
        ...

    async def delete(self, table: str, row: Row) -> None:
        """Delete a row by id, leaving a tombstone other devices can pull."""
        ...


def _require_tombstone(table: str, row: Row) -> None:
    if not row.get("deleted_at"):
        raise RemoteRecordError("Delete requires deleted_at", table=table, record_id=row.get("id"))


# ===========================
# SQL implementation
# ===========================


class SQLRemoteStore:
    """
    Remote store backed by a SQL database through SQLModel.

    Timestamps are stored timezone-aware in UTC and returned as ISO strings.
    """

    def __init__(self, engine: Engine, models: Optional[Dict[str, Type[SQLModel]]] = None):
        self.engine = engine
        self.models = models or REMOTE_MODELS

    def _model(self, table: str) -> Type[SQLModel]:
        try:
            return self.models[table]
        except KeyError:
            raise ValueError(f"Unknown remote table '{table}'") from None

    @staticmethod
    def _to_row(entity: SQLModel) -> Row:
        row = entity.model_dump()
        for key, value in row.items():
            if isinstance(value, datetime):
                row[key] = serialize_timestamp(value)
            elif hasattr(value, "value"):
                row[key] = value.value
        return row

    async def select_changed(self, table: str, user_id: str, since: Optional[datetime] = None) -> List[Row]:
        model = self._model(table)
        query = select(model).where(model.user_id == user_id)
        if since:
            query = query.where(model.updated_at > ensure_utc(since))
        query = query.order_by(model.updated_at)

        try:
            with Session(self.engine) as session:
                return [self._to_row(entity) for entity in session.exec(query).all()]
        except (OperationalError, InterfaceError) as e:
            raise TransportError(f"Could not query {table}: {e}") from e

    async def upsert(self, table: str, row: Row) -> None:
        model = self._model(table)
        record_id = row.get("id")

        try:
            entity = model.model_validate(row)
        except ValidationError as e:
            raise RemoteRecordError(f"Invalid row: {e}", table=table, record_id=record_id) from e

        for key, value in entity.model_dump().items():
            if isinstance(value, datetime):
                setattr(entity, key, ensure_utc(value))

        try:
            with Session(self.engine) as session:
                existing = session.get(model, entity.id)
                if existing is not None and existing.user_id != entity.user_id:
                    raise RemoteRecordError("Row belongs to another user", table=table, record_id=record_id)
                session.merge(entity)
                session.commit()
        except (OperationalError, InterfaceError) as e:
            raise TransportError(f"Could not write to {table}: {e}") from e
        except SQLAlchemyError as e:
            raise RemoteRecordError(f"Write rejected: {e}", table=table, record_id=record_id) from e

    async def delete(self, table: str, row: Row) -> None:
        _require_tombstone(table, row)
        await self.upsert(table, row)


# ===========================
# HTTP implementation
# ===========================

class RestRemoteStore:
    """
    Remote store reached over a PostgREST-compatible API (e.g. Supabase).

    Usage:
        async with RestRemoteStore(settings.REMOTE_API_URL, settings.REMOTE_API_KEY) as remote:
            rows = await remote.select_changed("books", user_id)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
        }
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout or settings.REMOTE_TIMEOUT_SECONDS)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    async def _request(self, method: str, table: str, **kwargs) -> httpx.Response:
        headers = {**self.headers, **kwargs.pop("headers", {})}
        try:
            response = await self.client.request(method, self._url(table), headers=headers, **kwargs)
        except httpx.TransportError as e:
            raise TransportError(f"{method} {table} failed: {e}") from e

        if response.status_code >= 500:
            raise TransportError(f"{method} {table} failed with HTTP {response.status_code}")
        return response

    async def select_changed(self, table: str, user_id: str, since: Optional[datetime] = None) -> List[Row]:
        params = {"select": "*", "user_id": f"eq.{user_id}"}
        if since:
            params["updated_at"] = f"gt.{serialize_timestamp(since)}"

        response = await self._request("GET", table, params=params)
        if response.is_error:
            raise TransportError(f"Could not query {table}: HTTP {response.status_code} {response.text}")
        return response.json()

    async def upsert(self, table: str, row: Row) -> None:
        response = await self._request(
            "POST",
            table,
            params={"on_conflict": "id"},
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            json=row,
        )
        if response.is_error:
            raise RemoteRecordError(
                f"Upsert rejected: HTTP {response.status_code} {response.text}",
                table=table,
                record_id=row.get("id"),
            )

    async def delete(self, table: str, row: Row) -> None:
        _require_tombstone(table, row)
        await self.upsert(table, row)


def create_remote_store(engine: Optional[Engine] = None):
    """Build the remote store configured in settings."""
    if settings.use_rest_remote:
        logger.info(f"Using REST remote store at {settings.REMOTE_API_URL}")
        return RestRemoteStore(
            settings.REMOTE_API_URL,
            settings.REMOTE_API_KEY,
            access_token=settings.REMOTE_ACCESS_TOKEN,
        )

    from lifesync.database.engine import create_remote_engine, create_remote_tables

    engine = engine or create_remote_engine()
    create_remote_tables(engine)
    logger.info("Using SQL remote store")
    return SQLRemoteStore(engine)
