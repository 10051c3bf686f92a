from sqlmodel import Field
from typing import Optional
from enum import Enum

from lifesync.models.mixins import RemoteSyncBase


class JapaneseActivityType(str, Enum):
    flashcards = "flashcards"
    reading = "reading"
    watching = "watching"
    listening = "listening"


class JapaneseActivity(RemoteSyncBase, table=True):
    __tablename__ = "japanese_activities"

    type: JapaneseActivityType = Field(index=True)
    duration_minutes: int = Field(ge=0)
    new_cards: Optional[int] = Field(default=None)  # Only for flashcards
    book_id: Optional[str] = Field(default=None, max_length=64, index=True)  # Only for reading
    date: str = Field(max_length=10, index=True)  # YYYY-MM-DD
