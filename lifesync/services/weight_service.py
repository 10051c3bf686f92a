import logging
from datetime import date as date_type
from typing import Dict, List, Optional, Union

from lifesync.schemas.entities import WeightEntryCreate
from lifesync.services.base import Record, SyncedService, is_active

logger = logging.getLogger(__name__)


def _months_before(day: date_type, months: int) -> date_type:
    month_index = day.year * 12 + day.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    # Clamp to the last day of the target month
    for candidate in (day.day, 30, 29, 28):
        try:
            return day.replace(year=year, month=month, day=min(day.day, candidate))
        except ValueError:
            continue
    raise ValueError(f"Cannot go back {months} months from {day}")


class WeightService(SyncedService):
    """Daily body weight, at most one live entry per date."""

    table_name = "weightEntries"

    async def add_or_update_weight(self, weight_kg: float, date: str) -> Record:
        """
        Record the weight for ``date``.

        Updates the existing entry for that date if there is one, otherwise
        creates a new entry.
        """
        data = WeightEntryCreate(weight_kg=weight_kg, date=date)
        existing = await self.get_weight_for_date(data.date)
        if existing:
            entry = await self._update(existing["id"], {"weightKg": data.weight_kg})
        else:
            entry = await self._create(data.to_record())
        self.trigger_sync()
        return entry

    async def delete_entry(self, entry_id: str) -> bool:
        deleted = await self._soft_delete(entry_id)
        if deleted:
            self.trigger_sync()
        return deleted

    async def get_weight_for_date(self, date: str) -> Optional[Record]:
        entries = [entry for entry in await self.table.where("date", date) if is_active(entry)]
        return entries[0] if entries else None

    async def list_entries(self) -> List[Record]:
        """Every entry, newest date first."""
        return sorted(await self._active(), key=lambda entry: entry["date"], reverse=True)

    async def get_latest_weight(self) -> Optional[Record]:
        entries = await self.list_entries()
        return entries[0] if entries else None

    async def get_weight_history(
        self,
        months_back: int = 3,
        today: Optional[Union[date_type, str]] = None,
    ) -> List[Dict[str, Union[str, float]]]:
        """``{"date", "weight"}`` points after the cutoff date, oldest first."""
        if today is None:
            today = date_type.today()
        elif isinstance(today, str):
            today = date_type.fromisoformat(today)
        cutoff = _months_before(today, months_back).isoformat()

        entries = sorted(
            (entry for entry in await self._active() if entry["date"] > cutoff),
            key=lambda entry: entry["date"],
        )
        return [{"date": entry["date"], "weight": entry["weightKg"]} for entry in entries]
