import logging
from typing import List, Optional

from lifesync.models.japanese import JapaneseActivityType
from lifesync.schemas.entities import JapaneseActivityCreate, JapaneseActivityUpdate
from lifesync.services.base import Record, SyncedService, is_active, mark_for_sync
from lifesync.sync.field_mapper import utcnow

logger = logging.getLogger(__name__)


class JapaneseService(SyncedService):
    """Japanese study sessions (flashcards, reading, watching, listening)."""

    table_name = "japaneseActivities"

    async def add_activity(self, data: JapaneseActivityCreate) -> Record:
        """
        Log a study session.

        A reading session attached to a book also adds its duration to the
        book's total reading time and marks the book as started.
        """
        activity = await self._create(data.to_record())

        if data.type == JapaneseActivityType.reading and data.book_id:
            books = self.mirror.books
            book = await books.get(data.book_id)
            if is_active(book):
                await books.put(mark_for_sync({
                    **book,
                    "totalReadingTimeMinutes": book["totalReadingTimeMinutes"] + data.duration_minutes,
                    "startedAt": book.get("startedAt") or utcnow(),
                }))
            else:
                logger.warning(f"Reading session {activity['id']} refers to unknown book {data.book_id}")

        self.trigger_sync()
        return activity

    async def update_activity(self, activity_id: str, data: JapaneseActivityUpdate) -> Optional[Record]:
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
        """Every session, newest date first."""
        return sorted(await self._active(), key=lambda activity: activity["date"], reverse=True)

    async def get_activities_for_date(self, date: str) -> List[Record]:
        return [activity for activity in await self.table.where("date", date) if is_active(activity)]

    async def get_activities_by_type(self, activity_type: JapaneseActivityType) -> List[Record]:
        value = JapaneseActivityType(activity_type).value
        return [activity for activity in await self.table.where("type", value) if is_active(activity)]
