from sqlalchemy import DateTime
from sqlmodel import Field
from typing import Optional
from datetime import datetime

from lifesync.models.mixins import RemoteSyncBase


class Book(RemoteSyncBase, table=True):
    __tablename__ = "books"

    title: str = Field(max_length=255)
    completed: bool = Field(default=False, index=True)
    started_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    completed_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    total_reading_time_minutes: int = Field(default=0, ge=0)
