"""
Ingestion router: lets external tools log Japanese study sessions.

Rows are written straight to the remote store; the user's devices receive
them on their next pull.
"""

import logging
from datetime import date
from json import JSONDecodeError

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from lifesync.api.deps import IngestError, check_ingest_rate_limit, get_api_key
from lifesync.core.rate_limiter import RateLimitResult
from lifesync.crud.api_key import api_key_crud
from lifesync.crud.japanese import japanese_activity_crud
from lifesync.database.engine import get_db
from lifesync.models.api_key import ApiKey
from lifesync.models.japanese import JapaneseActivityType
from lifesync.schemas.ingest import IngestErrorResponse, JapaneseActivityIngested, JapaneseActivityRequest

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1",
    tags=["Ingestion"],
    responses={
        400: {"model": IngestErrorResponse, "description": "Invalid body"},
        401: {"model": IngestErrorResponse, "description": "Missing or unknown API key"},
        429: {"model": IngestErrorResponse, "description": "Rate limited"},
    },
)


def _validation_message(error: ValidationError) -> str:
    issues = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue["loc"])
        message = issue["msg"].removeprefix("Value error, ")
        issues.append(f"{location}: {message}" if location else message)
    return f"Validation error: {', '.join(issues)}"


@router.post("/japanese", status_code=status.HTTP_201_CREATED, response_model=JapaneseActivityIngested)
async def ingest_japanese_activity(
    request: Request,
    api_key: ApiKey = Depends(get_api_key),
    rate_limit: RateLimitResult = Depends(check_ingest_rate_limit),
    db: Session = Depends(get_db),
):
    """
    Log a Japanese study session.

    A ``reading`` session is attributed to the book of the user's most recent
    reading session, whose total reading time grows accordingly.
    """
    try:
        body = await request.json()
    except (JSONDecodeError, UnicodeDecodeError):
        raise IngestError("Invalid JSON body", "VALIDATION_ERROR", 400)

    try:
        data = JapaneseActivityRequest.model_validate(body)
    except ValidationError as e:
        raise IngestError(_validation_message(e), "VALIDATION_ERROR", 400)

    try:
        book_id = None
        if data.type == JapaneseActivityType.reading:
            book_id = japanese_activity_crud.get_last_read_book_id(db, api_key.user_id)
            if book_id:
                japanese_activity_crud.add_reading_time(db, book_id, data.duration_minutes)

        activity = japanese_activity_crud.create_activity(
            db,
            user_id=api_key.user_id,
            activity_type=data.type,
            duration_minutes=data.duration_minutes,
            date=data.date or date.today().isoformat(),
            new_cards=data.new_cards if data.type == JapaneseActivityType.flashcards else None,
            book_id=book_id,
        )
        activity_id = activity.id
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to insert activity for user {api_key.user_id}: {e}")
        raise IngestError("Failed to create activity", "SERVER_ERROR", 500)

    try:
        api_key_crud.update_last_used(db, api_key.id)
    except SQLAlchemyError as e:
        logger.warning(f"Could not update last_used_at for key {api_key.id}: {e}")

    logger.info(f"Ingested {data.type.value} activity {activity_id} for user {api_key.user_id}")
    payload = JapaneseActivityIngested(id=activity_id, book_id=book_id)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=payload.model_dump(by_alias=True),
        headers={"X-RateLimit-Remaining": str(rate_limit.remaining)},
    )
