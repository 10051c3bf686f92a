"""Remote-side Japanese activity operations used by the ingestion endpoint."""
from sqlmodel import Session, select, col
from typing import Optional
from datetime import datetime, timezone
import uuid

from lifesync.models.book import Book
from lifesync.models.japanese import JapaneseActivity, JapaneseActivityType


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JapaneseActivityCRUD:
    """Writes straight to the remote store; devices pick the rows up on their next pull."""

    def get_last_read_book_id(self, db: Session, user_id: str) -> Optional[str]:
        """Book of the user's most recent live reading session, if any."""
        query = (
            select(JapaneseActivity.book_id)
            .where(
                JapaneseActivity.user_id == user_id,
                JapaneseActivity.type == JapaneseActivityType.reading,
                col(JapaneseActivity.book_id).is_not(None),
                col(JapaneseActivity.deleted_at).is_(None),
            )
            .order_by(col(JapaneseActivity.date).desc(), col(JapaneseActivity.created_at).desc())
            .limit(1)
        )
        return db.exec(query).first()

    def add_reading_time(self, db: Session, book_id: str, minutes: int) -> Optional[Book]:
        """Add minutes to a book's total and bump its updated_at so devices pull it."""
        book = db.get(Book, book_id)
        if not book:
            return None
        now = _now()
        book.total_reading_time_minutes = (book.total_reading_time_minutes or 0) + minutes
        book.started_at = book.started_at or now
        book.updated_at = now
        db.add(book)
        return book

    def create_activity(
        self,
        db: Session,
        user_id: str,
        activity_type: JapaneseActivityType,
        duration_minutes: int,
        date: str,
        new_cards: Optional[int] = None,
        book_id: Optional[str] = None,
    ) -> JapaneseActivity:
        now = _now()
        activity = JapaneseActivity(
            id=str(uuid.uuid4()),
            user_id=user_id,
            type=activity_type,
            duration_minutes=duration_minutes,
            new_cards=new_cards,
            book_id=book_id,
            date=date,
            created_at=now,
            updated_at=now,
        )
        db.add(activity)
        return activity


japanese_activity_crud = JapaneseActivityCRUD()
