"""
Dependencies and error type shared by the ingestion routes.
"""

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session
from typing import Dict, Optional

from lifesync.core.api_keys import extract_bearer_key
from lifesync.core.config import settings
from lifesync.core.rate_limiter import RateLimitResult, get_rate_limiter, ingest_rule
from lifesync.crud.api_key import api_key_crud
from lifesync.database.engine import get_db
from lifesync.models.api_key import ApiKey


class IngestError(Exception):
    """Error returned to API clients as ``{"error": message, "code": code}``."""

    def __init__(self, message: str, code: str, status_code: int, headers: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.headers = headers


async def ingest_error_handler(request: Request, exc: IngestError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code},
        headers=exc.headers,
    )


def get_api_key(request: Request, db: Session = Depends(get_db)) -> ApiKey:
    """Authenticate the request by its ``Authorization: Bearer sk_...`` header."""
    authorization = request.headers.get("Authorization")
    if not authorization or not authorization.startswith("Bearer "):
        raise IngestError("Missing or invalid Authorization header", "UNAUTHORIZED", 401)

    raw_key = extract_bearer_key(authorization)
    api_key = api_key_crud.get_by_raw_key(db, raw_key) if raw_key else None
    if not api_key:
        raise IngestError("Invalid API key", "UNAUTHORIZED", 401)
    return api_key


def check_ingest_rate_limit(api_key: ApiKey = Depends(get_api_key)) -> RateLimitResult:
    """Count the request against the key's fixed window."""
    rule = ingest_rule()
    if settings.DISABLE_RATE_LIMITING:
        return RateLimitResult(allowed=True, remaining=rule.max_requests)

    result = get_rate_limiter().check(api_key.id, rule)
    if not result.allowed:
        raise IngestError(
            f"Rate limit exceeded. Try again in {result.retry_after} seconds",
            "RATE_LIMITED",
            429,
            headers={"Retry-After": str(result.retry_after), "X-RateLimit-Remaining": "0"},
        )
    return result
