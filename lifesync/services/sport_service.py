from typing import List, Optional

from lifesync.schemas.entities import SportActivityCreate, SportActivityUpdate
from lifesync.services.base import Record, SyncedService, is_active


class SportService(SyncedService):
    """Running, street workout and bike sessions."""

    table_name = "sportActivities"

    async def add_activity(self, data: SportActivityCreate) -> Record:
        activity = await self._create(data.to_record())
        self.trigger_sync()
        return activity

    async def update_activity(self, activity_id: str, data: SportActivityUpdate) -> Optional[Record]:
        updated = await self._update(activity_id, data.to_changes())
        if updated:
            self.trigger_sync()
        return updated

    async def delete_activity(self, activity_id: str) -> bool:
        deleted = await self._soft_delete(activity_id)
        if deleted:
            self.trigger_sync()
        return deleted

    async def list_activities(self) -> List[Record]:
        return sorted(await self._active(), key=lambda activity: activity["date"], reverse=True)

    async def get_activities_for_date(self, date: str) -> List[Record]:
        return [activity for activity in await self.table.where("date", date) if is_active(activity)]
