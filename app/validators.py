"""Field rules for user records.

Each validator returns an error message, or None if the value is valid.
"""

import re

from app.models.user import Role

NAME_MAX_LENGTH = 50
EMAIL_MAX_LENGTH = 256
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_BYTES = 72  # bcrypt input limit
BIO_MAX_LENGTH = 200

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_name(name: str | None) -> str | None:
    if name is None or not name.strip():
        return "Name is required"
    if len(name.strip()) > NAME_MAX_LENGTH:
        return f"Name cannot exceed {NAME_MAX_LENGTH} characters"
    return None


def validate_email(email: str | None) -> str | None:
    if email is None or not email.strip():
        return "Email is required"
    if len(email) > EMAIL_MAX_LENGTH or not _EMAIL_RE.match(email.strip()):
        return "Please provide a valid email"
    return None


def validate_password(password: str | None) -> str | None:
    """Check a raw secret before it is hashed."""
    if not password:
        return "Password is required"
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        return f"Password cannot exceed {PASSWORD_MAX_BYTES} bytes"
    return None


def validate_bio(bio: str | None) -> str | None:
    if bio is not None and len(bio) > BIO_MAX_LENGTH:
        return f"Bio cannot exceed {BIO_MAX_LENGTH} characters"
    return None


def validate_role(role: str | None) -> str | None:
    if role is None:
        return None
    try:
        Role(role)
    except ValueError:
        allowed = ", ".join(r.value for r in Role)
        return f"Invalid role '{role}'. Allowed: {allowed}"
    return None


def normalize_email(email: str) -> str:
    """Normalize emails (strip + lowercase)."""
    return email.strip().lower()
