"""
API key helpers for the ingestion endpoint.

Keys look like ``sk_`` followed by 32 letters and digits. Only their
SHA-256 hex digest is stored.
"""

import hashlib
import secrets
import string
from typing import Optional

from lifesync.core.config import settings

KEY_ALPHABET = string.ascii_letters + string.digits
KEY_RANDOM_LENGTH = 32
PREFIX_DISPLAY_LENGTH = 8


def generate_api_key() -> str:
    return settings.API_KEY_PREFIX + "".join(secrets.choice(KEY_ALPHABET) for _ in range(KEY_RANDOM_LENGTH))


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def get_key_prefix(key: str) -> str:
    """Non-secret part of a key, for display (``sk_AbCdE...``)."""
    return key[:PREFIX_DISPLAY_LENGTH] + "..."


def extract_bearer_key(authorization: Optional[str]) -> Optional[str]:
    """Return the API key from an ``Authorization: Bearer`` header, or None."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    key = authorization[len("Bearer "):].strip()
    if not key.startswith(settings.API_KEY_PREFIX):
        return None
    return key
