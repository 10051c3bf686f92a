from sqlmodel import Field
from enum import Enum

from lifesync.models.mixins import RemoteSyncBase


class MealType(str, Enum):
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    snack = "snack"


class Food(RemoteSyncBase, table=True):
    __tablename__ = "foods"

    name: str = Field(max_length=255, index=True)
    calories_per_100g: float = Field(ge=0)
    protein_per_100g: float = Field(ge=0)
    carbs_per_100g: float = Field(ge=0)
    fat_per_100g: float = Field(ge=0)


class MealEntry(RemoteSyncBase, table=True):
    __tablename__ = "meal_entries"

    # No foreign key: tables are pushed independently of each other
    food_id: str = Field(max_length=64, index=True)
    meal_type: MealType
    quantity_grams: float = Field(ge=0)
    date: str = Field(max_length=10, index=True)  # YYYY-MM-DD
