from sqlmodel import Field

from lifesync.models.mixins import RemoteSyncBase


class WeightEntry(RemoteSyncBase, table=True):
    __tablename__ = "weight_entries"

    weight_kg: float = Field(gt=0)
    # One live entry per date is enforced by the client (upsert by date),
    # not by a unique constraint: tombstones for the same date may coexist.
    date: str = Field(max_length=10, index=True)  # YYYY-MM-DD
