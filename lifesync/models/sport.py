from sqlmodel import Field
from typing import Optional
from enum import Enum

from lifesync.models.mixins import RemoteSyncBase


class SportType(str, Enum):
    running = "running"
    street_workout = "street_workout"
    bike = "bike"


class TrainingType(str, Enum):
    base = "base"
    intervals = "intervals"
    long_run = "long_run"


class SportActivity(RemoteSyncBase, table=True):
    __tablename__ = "sport_activities"

    sport_type: SportType = Field(index=True)
    duration_minutes: int = Field(ge=0)
    distance_km: Optional[float] = Field(default=None)  # Only for running and bike
    training_type: Optional[TrainingType] = Field(default=None)  # Only for running
    date: str = Field(max_length=10, index=True)  # YYYY-MM-DD
