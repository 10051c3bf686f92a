"""API key CRUD operations."""
from sqlmodel import Session, select
from typing import List, Optional, Tuple
from datetime import datetime, timezone

from lifesync.core.api_keys import generate_api_key, get_key_prefix, hash_api_key
from lifesync.models.api_key import ApiKey


class ApiKeyCRUD:
    """CRUD operations for ApiKey model."""

    def create_key(self, db: Session, user_id: str, name: str) -> Tuple[ApiKey, str]:
        """
        Create a key for a user.

        Returns:
            Tuple of (stored key, raw key). The raw key cannot be recovered later.
        """
        raw_key = generate_api_key()
        api_key = ApiKey(
            user_id=user_id,
            name=name,
            key_hash=hash_api_key(raw_key),
            key_prefix=get_key_prefix(raw_key),
        )
        db.add(api_key)
        db.commit()
        db.refresh(api_key)
        return api_key, raw_key

    def get_by_raw_key(self, db: Session, raw_key: str) -> Optional[ApiKey]:
        """Look a key up by its hash."""
        return db.exec(select(ApiKey).where(ApiKey.key_hash == hash_api_key(raw_key))).first()

    def get_keys(self, db: Session, user_id: str) -> List[ApiKey]:
        """Get a user's keys, newest first."""
        query = select(ApiKey).where(ApiKey.user_id == user_id).order_by(ApiKey.created_at.desc())
        return list(db.exec(query).all())

    def revoke_key(self, db: Session, user_id: str, key_id: str) -> bool:
        """Delete one of the user's keys."""
        api_key = db.get(ApiKey, key_id)
        if not api_key or api_key.user_id != user_id:
            return False
        db.delete(api_key)
        db.commit()
        return True

    def update_last_used(self, db: Session, key_id: str) -> None:
        api_key = db.get(ApiKey, key_id)
        if not api_key:
            return
        api_key.last_used_at = datetime.now(timezone.utc)
        db.add(api_key)
        db.commit()


# Create a singleton instance
api_key_crud = ApiKeyCRUD()
