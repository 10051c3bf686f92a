# Import all models to ensure they are registered with SQLModel
from lifesync.models.local import LocalRecord, SyncMeta
from lifesync.models.book import Book
from lifesync.models.japanese import JapaneseActivity, JapaneseActivityType
from lifesync.models.nutrition import Food, MealEntry, MealType
from lifesync.models.sport import SportActivity, SportType, TrainingType
from lifesync.models.weight import WeightEntry
from lifesync.models.api_key import ApiKey

# Remote table name -> SQLModel class
REMOTE_MODELS = {
    "books": Book,
    "japanese_activities": JapaneseActivity,
    "foods": Food,
    "meal_entries": MealEntry,
    "sport_activities": SportActivity,
    "weight_entries": WeightEntry,
}


def remote_tables():
    """Every table that lives in the remote store."""
    return list(REMOTE_MODELS.values()) + [ApiKey]


__all__ = [
    "LocalRecord",
    "SyncMeta",
    "Book",
    "JapaneseActivity",
    "JapaneseActivityType",
    "Food",
    "MealEntry",
    "MealType",
    "SportActivity",
    "SportType",
    "TrainingType",
    "WeightEntry",
    "ApiKey",
    "REMOTE_MODELS",
    "remote_tables",
]
