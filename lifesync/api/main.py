from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from sqlmodel import Session
from contextlib import asynccontextmanager
import logging

from lifesync import __version__
from lifesync.api.deps import IngestError, ingest_error_handler
from lifesync.api.routers import ingest
from lifesync.core.config import settings
from lifesync.core.rate_limiter import RedisRateLimiter, get_rate_limiter
from lifesync.database.engine import create_remote_tables, get_db, get_remote_engine

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting ingestion API...")
    create_remote_tables(get_remote_engine())

    try:
        if settings.REDIS_URL:
            logger.info(f"Initializing Redis connection: {settings.REDIS_URL}")
            from redis import Redis
            from lifesync.core.rate_limiter import initialize_redis_rate_limiter

            redis_client = Redis.from_url(
                settings.REDIS_URL,
                decode_responses=False,
                socket_connect_timeout=5
            )

            # Test connection
            redis_client.ping()
            initialize_redis_rate_limiter(redis_client)
            logger.info("✓ Redis rate limiter initialized")
        else:
            logger.info("Redis not configured, using in-memory rate limiting")
    except Exception as e:
        logger.warning(f"Failed to initialize Redis: {e}")
        logger.warning("Falling back to in-memory rate limiting")

    logger.info("Application startup complete")

    yield

    logger.info("Application shutdown complete")


app = FastAPI(
    title="LifeSync Ingestion API",
    description="Lets external tools log activities straight into the LifeSync remote store",
    version="1.0.0",
    lifespan=lifespan
)

app.add_exception_handler(IngestError, ingest_error_handler)

app.include_router(ingest.router)  # Ingestion: /api/v1/*


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Liveness plus a round trip to the remote store database."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Remote store unreachable: {e}")
        return JSONResponse(status_code=503, content={"status": "unhealthy", "remote_store": "unreachable"})

    limiter = "redis" if isinstance(get_rate_limiter(), RedisRateLimiter) else "memory"
    return {"status": "healthy", "remote_store": "ok", "rate_limiter": limiter, "version": __version__}
