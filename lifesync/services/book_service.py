import logging
from typing import List, Optional

from lifesync.models.japanese import JapaneseActivityType
from lifesync.schemas.entities import BookCreate
from lifesync.services.base import Record, SyncedService, is_active
from lifesync.sync.field_mapper import utcnow

logger = logging.getLogger(__name__)


class BookService(SyncedService):
    """Books read in Japanese, with their accumulated reading time."""

    table_name = "books"

    async def add_book(self, data: BookCreate) -> Record:
        book = await self._create({
            "title": data.title,
            "completed": False,
            "startedAt": None,
            "completedAt": None,
            "totalReadingTimeMinutes": 0,
        })
        logger.info(f"Added book {book['id']}: {data.title}")
        self.trigger_sync()
        return book

    async def add_reading_time(self, book_id: str, minutes: int) -> Optional[Record]:
        book = await self.get_book(book_id)
        if not is_active(book):
            return None
        updated = await self._update(book_id, {
            "totalReadingTimeMinutes": book["totalReadingTimeMinutes"] + minutes,
        })
        self.trigger_sync()
        return updated

    async def mark_complete(self, book_id: str) -> Optional[Record]:
        updated = await self._update(book_id, {"completed": True, "completedAt": utcnow()})
        if updated:
            self.trigger_sync()
        return updated

    async def mark_incomplete(self, book_id: str) -> Optional[Record]:
        updated = await self._update(book_id, {"completed": False, "completedAt": None})
        if updated:
            self.trigger_sync()
        return updated

    async def delete_book(self, book_id: str) -> bool:
        deleted = await self._soft_delete(book_id)
        if deleted:
            self.trigger_sync()
        return deleted

    async def get_book(self, book_id: str) -> Optional[Record]:
        return await self.table.get(book_id)

    async def list_books(self) -> List[Record]:
        return sorted(await self._active(), key=lambda book: book["title"])

    async def in_progress_books(self) -> List[Record]:
        return [book for book in await self.list_books() if not book["completed"]]

    async def completed_books(self) -> List[Record]:
        """Completed books, most recently completed first."""
        books = [book for book in await self._active() if book["completed"]]
        return sorted(
            books,
            key=lambda book: book.get("completedAt") or book["updatedAt"],
            reverse=True,
        )

    async def search_books(self, query: str) -> List[Record]:
        """In-progress books whose title contains ``query`` (case-insensitive)."""
        books = await self.in_progress_books()
        query = query.strip().lower()
        if not query:
            return books
        return [book for book in books if query in book["title"].lower()]

    async def get_last_read_book(self) -> Optional[Record]:
        """Book of the most recent reading session, unless completed or deleted."""
        sessions = await self.mirror.japanese_activities.filter(
            lambda activity: is_active(activity)
            and activity.get("type") == JapaneseActivityType.reading.value
            and activity.get("bookId") is not None
        )
        if not sessions:
            return None

        latest = max(sessions, key=lambda activity: (activity["date"], activity["createdAt"]))
        book = await self.get_book(latest["bookId"])
        if is_active(book) and not book["completed"]:
            return book
        return None
