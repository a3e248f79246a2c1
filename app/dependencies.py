"""Session dependencies and cookie helpers for FastAPI routes."""

from dataclasses import dataclass

from fastapi import HTTPException, Request, Response

from app.config import get_settings
from app.models.user import User
from app.services.jwt import get_jwt_service

AUTH_COOKIE_NAME = "token"


@dataclass
class CurrentUser:
    """Authenticated user context, taken from the session token."""

    user_id: int
    email: str
    name: str
    role: str


def get_current_user(request: Request) -> CurrentUser:
    """Extract and validate user from Bearer token or cookie. Raises 401 if invalid."""
    token: str | None = None

    # Check Authorization header first
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header[7:]

    # Fall back to cookie
    if not token:
        token = request.cookies.get(AUTH_COOKIE_NAME)

    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = get_jwt_service().decode_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return CurrentUser(
        user_id=int(payload["sub"]),
        email=payload.get("email", ""),
        name=payload.get("name", ""),
        role=payload.get("role", ""),
    )


def issue_session(response: Response, user: User) -> str:
    """Create a session token for the user and attach it as the auth cookie."""
    settings = get_settings()
    token = get_jwt_service().create_user_token(user)
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
        max_age=settings.JWT_EXPIRE_MINUTES * 60,
    )
    return token


def clear_auth_cookie(response: Response) -> None:
    """Clear the auth cookie: empty value, already expired."""
    settings = get_settings()
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value="",
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
        max_age=0,
        expires=0,
    )
