from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Local mirror (on-device store)
    LOCAL_DATABASE_URL: str = "sqlite:///./lifesync_local.db"

    # Remote store: either a SQL database or a PostgREST-style HTTP API
    REMOTE_DATABASE_URL: str = "sqlite:///./lifesync_remote.db"
    REMOTE_API_URL: Optional[str] = None  # e.g., "https://xyz.supabase.co"
    REMOTE_API_KEY: Optional[str] = None
    REMOTE_ACCESS_TOKEN: Optional[str] = None
    REMOTE_TIMEOUT_SECONDS: float = 30.0

    # Sync behaviour
    SYNC_DEBOUNCE_SECONDS: float = 2.0
    SYNC_STALE_AFTER_HOURS: int = 24
    SYNC_PASS_TIMEOUT_SECONDS: Optional[float] = 120.0
    SYNC_STATUS_RESET_SECONDS: float = 2.0

    # Ingestion endpoint
    API_KEY_PREFIX: str = "sk_"
    INGEST_RATE_LIMIT_REQUESTS: int = 60
    INGEST_RATE_LIMIT_WINDOW_SECONDS: int = 60
    DISABLE_RATE_LIMITING: bool = False  # Set to True for development/testing

    # Redis (optional - for multi-instance rate limiting)
    REDIS_URL: Optional[str] = None  # e.g., "redis://localhost:6379/0"

    # Logging
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    @property
    def use_rest_remote(self) -> bool:
        return bool(self.REMOTE_API_URL and self.REMOTE_API_KEY)

    class Config:
        env_file = ".env"
        extra = "ignore"  # Allow extra fields in .env file

settings = Settings()
