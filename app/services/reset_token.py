"""Password reset tokens.

The raw token goes to the user; only its SHA-256 digest is stored.
"""

import hashlib
import secrets
from datetime import datetime, timedelta

from app.config import get_settings

TOKEN_BYTES = 20


def hash_reset_token(token: str) -> str:
    """One-way digest of a raw reset token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_reset_token() -> tuple[str, str, datetime]:
    """Create a reset token. Returns (raw_token, digest, expires_at)."""
    token = secrets.token_hex(TOKEN_BYTES)
    expires_at = datetime.utcnow() + timedelta(minutes=get_settings().PASSWORD_RESET_EXPIRE_MINUTES)
    return token, hash_reset_token(token), expires_at
