"""
Input schemas for the mutation services.

Fields are declared in snake_case and dumped with camelCase aliases, which is
the shape records take in the local mirror.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Optional

from lifesync.models.japanese import JapaneseActivityType
from lifesync.models.nutrition import MealType
from lifesync.models.sport import SportType, TrainingType

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class EntityInput(BaseModel):
    """Base class: camelCase aliases, snake_case accepted too."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        """Every field, camelCase keys, enums as plain strings."""
        return self.model_dump(by_alias=True, mode="json")

    def to_changes(self) -> Dict[str, Any]:
        """Only the fields that were explicitly set (for partial updates)."""
        return self.model_dump(by_alias=True, mode="json", exclude_unset=True)


# Books
class BookCreate(EntityInput):
    title: str = Field(..., min_length=1, max_length=255)


# Japanese
class JapaneseActivityCreate(EntityInput):
    type: JapaneseActivityType
    duration_minutes: int = Field(..., ge=1)
    new_cards: Optional[int] = Field(None, ge=0)  # Only for flashcards
    book_id: Optional[str] = None  # Only for reading
    date: str = Field(..., pattern=DATE_PATTERN)


class JapaneseActivityUpdate(EntityInput):
    type: Optional[JapaneseActivityType] = None
    duration_minutes: Optional[int] = Field(None, ge=1)
    new_cards: Optional[int] = Field(None, ge=0)
    book_id: Optional[str] = None
    date: Optional[str] = Field(None, pattern=DATE_PATTERN)


# Nutrition
class FoodCreate(EntityInput):
    name: str = Field(..., min_length=1, max_length=255)
    calories_per_100g: float = Field(..., ge=0)
    protein_per_100g: float = Field(..., ge=0)
    carbs_per_100g: float = Field(..., ge=0)
    fat_per_100g: float = Field(..., ge=0)


class FoodUpdate(EntityInput):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    calories_per_100g: Optional[float] = Field(None, ge=0)
    protein_per_100g: Optional[float] = Field(None, ge=0)
    carbs_per_100g: Optional[float] = Field(None, ge=0)
    fat_per_100g: Optional[float] = Field(None, ge=0)


class MealEntryCreate(EntityInput):
    food_id: str
    meal_type: MealType
    quantity_grams: float = Field(..., gt=0)
    date: str = Field(..., pattern=DATE_PATTERN)


class MealEntryUpdate(EntityInput):
    food_id: Optional[str] = None
    meal_type: Optional[MealType] = None
    quantity_grams: Optional[float] = Field(None, gt=0)
    date: Optional[str] = Field(None, pattern=DATE_PATTERN)


# Sport
class SportActivityCreate(EntityInput):
    sport_type: SportType
    duration_minutes: int = Field(..., ge=1)
    distance_km: Optional[float] = Field(None, ge=0)  # Only for running and bike
    training_type: Optional[TrainingType] = None  # Only for running
    date: str = Field(..., pattern=DATE_PATTERN)


class SportActivityUpdate(EntityInput):
    sport_type: Optional[SportType] = None
    duration_minutes: Optional[int] = Field(None, ge=1)
    distance_km: Optional[float] = Field(None, ge=0)
    training_type: Optional[TrainingType] = None
    date: Optional[str] = Field(None, pattern=DATE_PATTERN)


# Weight
class WeightEntryCreate(EntityInput):
    weight_kg: float = Field(..., gt=0)
    date: str = Field(..., pattern=DATE_PATTERN)
