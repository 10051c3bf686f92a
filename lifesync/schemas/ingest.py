"""
Schemas for the ingestion endpoint (``POST /api/v1/japanese``).
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional

from lifesync.models.japanese import JapaneseActivityType
from lifesync.schemas.entities import DATE_PATTERN


class JapaneseActivityRequest(BaseModel):
    """Study session reported by an external tool (e.g. a flashcard app)."""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {"type": "flashcards", "durationMinutes": 20, "newCards": 15, "date": "2024-03-01"}
        },
    )

    type: JapaneseActivityType
    duration_minutes: int = Field(..., alias="durationMinutes", ge=1, le=480, strict=True)
    new_cards: Optional[int] = Field(None, alias="newCards", ge=0, strict=True)
    date: Optional[str] = Field(None, pattern=DATE_PATTERN, description="YYYY-MM-DD, defaults to today")

    @model_validator(mode="after")
    def validate_new_cards(self):
        if self.new_cards is not None and self.type != JapaneseActivityType.flashcards:
            raise ValueError("newCards is only valid for flashcards type")
        return self


class JapaneseActivityIngested(BaseModel):
    success: bool = True
    id: str
    book_id: Optional[str] = Field(None, serialization_alias="bookId")


class IngestErrorResponse(BaseModel):
    error: str
    code: str
