"""
Base model for remote entity tables.

Every remote row carries the sync envelope plus the owning user. The id is
generated by the client at creation time, never by the server. Timestamp
columns are timezone-aware and hold UTC.
"""

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class RemoteSyncBase(SQLModel):
    """
    Sync envelope shared by all remote entity tables.

    Fields:
        id: Client generated UUID, the only correlation key with the local mirror
        user_id: Owner of the row (the local mirror never stores it)
        created_at: Creation timestamp set by the client
        updated_at: Last modification timestamp, basis for incremental pull
        deleted_at: Set when the row is a tombstone

    Usage:
        class MyEntity(RemoteSyncBase, table=True):
            __tablename__ = "my_entities"
            name: str
    """

    id: str = Field(primary_key=True, max_length=64)
    user_id: str = Field(index=True, max_length=64, description="User who owns this row")

    created_at: datetime = Field(sa_type=DateTime(timezone=True), description="Creation timestamp")
    updated_at: datetime = Field(
        sa_type=DateTime(timezone=True),
        index=True,  # Indexed for incremental pull queries
        description="Last modification timestamp"
    )
    deleted_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True), description="Soft delete timestamp"
    )
