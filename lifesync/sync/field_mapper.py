"""
Field mapping between the local mirror and the remote store.

Local records use lower camel case keys (``caloriesPer100g``) and hold
timestamps as ``datetime`` objects. Remote rows use lower snake case columns
(``calories_per_100g``) and carry timestamps as ISO-8601 strings.

Each synchronizable entity declares an explicit field table so that names
with unusual digit/case boundaries are never guessed. Keys missing from the
table fall back to the naming convention and pass through untyped.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import TypeAdapter

from lifesync.sync.exceptions import MalformedRecordError

logger = logging.getLogger(__name__)

# Fields parsed back into datetimes on the way in, whatever the entity
TIMESTAMP_FIELDS = frozenset({"createdAt", "updatedAt", "deletedAt", "startedAt", "completedAt"})

# Local-only bookkeeping, never sent to the remote store
LOCAL_ONLY_FIELDS = frozenset({"pendingSync"})

# Remote-only ownership column, attached on push and dropped on pull
REMOTE_ONLY_FIELDS = frozenset({"user_id"})

_DATETIME = TypeAdapter(datetime)


# ===========================
# Naming convention fallback
# ===========================

_UPPER = re.compile(r"[A-Z]")
_LOWER_DIGIT = re.compile(r"([a-z])(\d)")
_UNDERSCORE_LOWER = re.compile(r"_([a-z])")
_UNDERSCORE_DIGIT = re.compile(r"_(\d)")


def camel_to_snake(key: str) -> str:
    """``caloriesPer100g`` -> ``calories_per_100g``."""
    key = _UPPER.sub(lambda m: f"_{m.group(0).lower()}", key)
    return _LOWER_DIGIT.sub(r"\1_\2", key)


def snake_to_camel(key: str) -> str:
    """``calories_per_100g`` -> ``caloriesPer100g``."""
    key = _UNDERSCORE_LOWER.sub(lambda m: m.group(1).upper(), key)
    return _UNDERSCORE_DIGIT.sub(r"\1", key)


# ===========================
# Timestamp helpers
# ===========================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are assumed to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def serialize_timestamp(value: datetime) -> str:
    return ensure_utc(value).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an RFC 3339 / ISO-8601 string into an aware UTC datetime.

    Any number of fractional digits and a ``Z`` suffix are accepted; naive
    values are taken as UTC.

    Raises:
        ValueError: If the value is not a timestamp.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        return ensure_utc(_DATETIME.validate_python(value))
    raise ValueError(f"Not a timestamp: {value!r}")


def serialize_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return serialize_timestamp(value)
    return value


# ===========================
# Entity field tables
# ===========================

@dataclass(frozen=True)
class FieldSpec:
    """One local-name/remote-name pair."""
    local: str
    remote: str
    required: bool = False


@dataclass(frozen=True)
class EntitySpec:
    """Field table for one synchronizable entity type."""
    local_table: str
    remote_table: str
    fields: Tuple[FieldSpec, ...]
    _to_remote: Dict[str, str] = field(init=False, repr=False, compare=False)
    _to_local: Dict[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_to_remote", {f.local: f.remote for f in self.fields})
        object.__setattr__(self, "_to_local", {f.remote: f.local for f in self.fields})

    def remote_name(self, local: str) -> str:
        return self._to_remote.get(local) or camel_to_snake(local)

    def local_name(self, remote: str) -> str:
        return self._to_local.get(remote) or snake_to_camel(remote)

    @property
    def required_fields(self) -> Tuple[str, ...]:
        return tuple(f.local for f in self.fields if f.required)


ENVELOPE_FIELDS = (
    FieldSpec("id", "id", required=True),
    FieldSpec("userId", "user_id"),
    FieldSpec("createdAt", "created_at", required=True),
    FieldSpec("updatedAt", "updated_at", required=True),
    FieldSpec("deletedAt", "deleted_at"),
    FieldSpec("pendingSync", "pending_sync"),
)


def _entity(local_table: str, remote_table: str, *fields: FieldSpec) -> EntitySpec:
    return EntitySpec(local_table, remote_table, ENVELOPE_FIELDS + fields)


BOOKS = _entity(
    "books", "books",
    FieldSpec("title", "title", required=True),
    FieldSpec("completed", "completed", required=True),
    FieldSpec("startedAt", "started_at"),
    FieldSpec("completedAt", "completed_at"),
    FieldSpec("totalReadingTimeMinutes", "total_reading_time_minutes", required=True),
)

JAPANESE_ACTIVITIES = _entity(
    "japaneseActivities", "japanese_activities",
    FieldSpec("type", "type", required=True),
    FieldSpec("durationMinutes", "duration_minutes", required=True),
    FieldSpec("newCards", "new_cards"),
    FieldSpec("bookId", "book_id"),
    FieldSpec("date", "date", required=True),
)

FOODS = _entity(
    "foods", "foods",
    FieldSpec("name", "name", required=True),
    FieldSpec("caloriesPer100g", "calories_per_100g", required=True),
    FieldSpec("proteinPer100g", "protein_per_100g", required=True),
    FieldSpec("carbsPer100g", "carbs_per_100g", required=True),
    FieldSpec("fatPer100g", "fat_per_100g", required=True),
)

MEAL_ENTRIES = _entity(
    "mealEntries", "meal_entries",
    FieldSpec("foodId", "food_id", required=True),
    FieldSpec("mealType", "meal_type", required=True),
    FieldSpec("quantityGrams", "quantity_grams", required=True),
    FieldSpec("date", "date", required=True),
)

SPORT_ACTIVITIES = _entity(
    "sportActivities", "sport_activities",
    FieldSpec("sportType", "sport_type", required=True),
    FieldSpec("durationMinutes", "duration_minutes", required=True),
    FieldSpec("distanceKm", "distance_km"),
    FieldSpec("trainingType", "training_type"),
    FieldSpec("date", "date", required=True),
)

WEIGHT_ENTRIES = _entity(
    "weightEntries", "weight_entries",
    FieldSpec("weightKg", "weight_kg", required=True),
    FieldSpec("date", "date", required=True),
)

# Keyed by local table name; books first so reading activities find their book
ENTITIES: Dict[str, EntitySpec] = {
    spec.local_table: spec
    for spec in (BOOKS, JAPANESE_ACTIVITIES, FOODS, MEAL_ENTRIES, SPORT_ACTIVITIES, WEIGHT_ENTRIES)
}


# ===========================
# Mapping
# ===========================

def to_remote(record: Dict[str, Any], entity: Optional[EntitySpec] = None) -> Dict[str, Any]:
    """Rename local keys to remote columns and serialize datetimes."""
    rename = entity.remote_name if entity else camel_to_snake
    return {rename(key): serialize_value(value) for key, value in record.items()}


def to_local(row: Dict[str, Any], entity: Optional[EntitySpec] = None) -> Dict[str, Any]:
    """Rename remote columns to local keys and parse known timestamp fields."""
    rename = entity.local_name if entity else snake_to_camel
    local: Dict[str, Any] = {}
    for key, value in row.items():
        local_key = rename(key)
        if local_key in TIMESTAMP_FIELDS and isinstance(value, (str, datetime)):
            try:
                value = parse_timestamp(value)
            except ValueError:
                logger.warning(f"Could not parse timestamp {local_key}={value!r}, keeping raw value")
        local[local_key] = value
    return local


def unparsed_timestamps(record: Dict[str, Any]) -> List[str]:
    """Timestamp fields of a mapped record still holding something other than a datetime."""
    return sorted(
        key for key in TIMESTAMP_FIELDS
        if record.get(key) is not None and not isinstance(record[key], datetime)
    )


def validate_required(record: Dict[str, Any], entity: EntitySpec) -> None:
    """
    Check that a local record can be turned into a remote row.

    Raises:
        MalformedRecordError: If any required field is missing or None
    """
    missing = [name for name in entity.required_fields if record.get(name) is None]
    if missing:
        raise MalformedRecordError(
            f"Missing required fields: {', '.join(missing)}",
            table=entity.local_table,
            record_id=record.get("id"),
        )


def strip_local_only(row: Dict[str, Any], entity: Optional[EntitySpec] = None) -> Dict[str, Any]:
    """Drop remote-side keys that only make sense locally (``pending_sync``)."""
    rename = entity.remote_name if entity else camel_to_snake
    local_only = {rename(name) for name in LOCAL_ONLY_FIELDS}
    return {key: value for key, value in row.items() if key not in local_only}


def strip_remote_only(row: Dict[str, Any]) -> Dict[str, Any]:
    """Drop the ownership column, which the local mirror never stores."""
    return {key: value for key, value in row.items() if key not in REMOTE_ONLY_FIELDS}


def iter_entities(names: Optional[Iterable[str]] = None) -> Iterable[EntitySpec]:
    if names is None:
        return ENTITIES.values()
    return [ENTITIES[name] for name in names]
