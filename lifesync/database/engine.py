from sqlmodel import create_engine, SQLModel, Session
from sqlalchemy.engine import Engine
from typing import Generator, Optional

from lifesync.core.config import settings


def _connect_args(url: str) -> dict:
    # SQLite connections are shared between the event loop and TestClient threads
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def create_local_engine(url: Optional[str] = None) -> Engine:
    url = url or settings.LOCAL_DATABASE_URL
    return create_engine(url, echo=settings.DEBUG, connect_args=_connect_args(url))


def create_remote_engine(url: Optional[str] = None) -> Engine:
    url = url or settings.REMOTE_DATABASE_URL
    if url.startswith("sqlite"):
        return create_engine(url, echo=settings.DEBUG, connect_args=_connect_args(url))
    return create_engine(
        url,
        echo=settings.DEBUG,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600
    )


def create_remote_tables(engine: Engine) -> None:
    """Create the remote entity tables and the api_keys table."""
    # Importing registers the table models with SQLModel.metadata
    from lifesync.models import remote_tables

    SQLModel.metadata.create_all(engine, tables=[model.__table__ for model in remote_tables()])


remote_engine: Optional[Engine] = None


def get_remote_engine() -> Engine:
    """Get or create the remote engine used by the ingestion API."""
    global remote_engine
    if remote_engine is None:
        remote_engine = create_remote_engine()
    return remote_engine


def get_db() -> Generator[Session, None, None]:
    with Session(get_remote_engine()) as session:
        yield session
