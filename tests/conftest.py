import asyncio
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, create_engine
from sqlmodel.pool import StaticPool

from lifesync.api.main import app
from lifesync.database.engine import create_remote_tables, get_db
from lifesync.sync.engine import SyncEngine
from lifesync.sync.exceptions import RemoteRecordError, TransportError
from lifesync.sync.local_mirror import LocalMirror
from lifesync.sync.remote import SQLRemoteStore

USER_ID = "user-1"


def make_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )


class FlakyRemote:
    """Wraps a remote store and fails on demand."""

    def __init__(self, inner):
        self.inner = inner
        self.down_tables = set()
        self.rejected_ids = set()
        self.broken = False
        self.delay = 0.0
        self.upserted = []
        self.extra_rows = {}

    def _check(self, table):
        if self.broken:
            raise RuntimeError("remote adapter bug")
        if table in self.down_tables:
            raise TransportError(f"{table} unreachable")

    async def select_changed(self, table, user_id, since=None):
        self._check(table)
        if self.delay:
            await asyncio.sleep(self.delay)
        rows = await self.inner.select_changed(table, user_id, since)
        return rows + self.extra_rows.get(table, [])

    async def upsert(self, table, row):
        self._check(table)
        if row["id"] in self.rejected_ids:
            raise RemoteRecordError("rejected by remote", table=table, record_id=row["id"])
        self.upserted.append((table, row["id"]))
        await self.inner.upsert(table, row)

    async def delete(self, table, row):
        self._check(table)
        if row["id"] in self.rejected_ids:
            raise RemoteRecordError("rejected by remote", table=table, record_id=row["id"])
        await self.inner.delete(table, row)


class RecordingDebouncer:
    """Stands in for SyncDebouncer in service tests."""

    def __init__(self):
        self.scheduled = []

    def schedule(self, user_id):
        self.scheduled.append(user_id)


# Remote store
@pytest.fixture(name="remote_engine")
def remote_engine_fixture():
    engine = make_engine()
    create_remote_tables(engine)
    return engine


@pytest.fixture(name="remote")
def remote_fixture(remote_engine):
    return SQLRemoteStore(remote_engine)


@pytest.fixture(name="flaky_remote")
def flaky_remote_fixture(remote):
    return FlakyRemote(remote)


# Two devices sharing the remote store
@pytest.fixture(name="mirror")
def mirror_fixture():
    mirror = LocalMirror(make_engine())
    mirror.create_tables()
    return mirror


@pytest.fixture(name="other_mirror")
def other_mirror_fixture():
    mirror = LocalMirror(make_engine())
    mirror.create_tables()
    return mirror


@pytest.fixture(name="sync_engine")
def sync_engine_fixture(mirror, remote):
    return SyncEngine(mirror, remote)


@pytest.fixture(name="other_sync_engine")
def other_sync_engine_fixture(other_mirror, remote):
    return SyncEngine(other_mirror, remote)


@pytest.fixture(name="debouncer")
def debouncer_fixture():
    return RecordingDebouncer()


# Ingestion API
@pytest.fixture(name="session")
def session_fixture(remote_engine):
    with Session(remote_engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session, monkeypatch):
    from lifesync.core import rate_limiter

    def get_session_override():
        return session

    monkeypatch.setattr(rate_limiter, "_rate_limiter", rate_limiter.InMemoryRateLimiter())
    app.dependency_overrides[get_db] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
