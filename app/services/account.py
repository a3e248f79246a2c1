"""Account service: signup, signin, profile, password and reset flows."""

import enum
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any

from sqlalchemy.orm import Session

from app.models.user import DEFAULT_AVATAR, Role, User
from app.repositories.user import DuplicateEmailError, RecordValidationError, UserRepository, get_user_repository
from app.services.media import MediaService, get_media_service
from app.services.password import hash_password, verify_password
from app.services.reset_token import generate_reset_token, hash_reset_token
from app.validators import normalize_email, validate_bio, validate_email, validate_name

logger = logging.getLogger("learnhub")

AVATAR_FOLDER = "avatars"
PROFILE_FIELDS = ("name", "email", "bio", "avatar")

INVALID_CREDENTIALS = "Invalid email or password"
EMAIL_TAKEN = "User with this email already exists"
USER_NOT_FOUND = "User not found"


class ErrorKind(str, enum.Enum):
    """Failure categories, mapped to HTTP statuses by the router."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    AUTH = "auth"
    NOT_FOUND = "not_found"


@dataclass
class AccountResult:
    """Result of an account operation."""

    success: bool
    error: str | None = None
    error_kind: ErrorKind | None = None
    user: User | None = None
    reset_token: str | None = None


def _fail(kind: ErrorKind, error: str) -> AccountResult:
    return AccountResult(success=False, error=error, error_kind=kind)


@lru_cache
def _dummy_hash() -> str:
    # Compared against when the email is unknown, so both signin failures cost one bcrypt check
    return hash_password("not-a-real-password")


class AccountService:
    """Handles the user account lifecycle."""

    def __init__(self, repository: UserRepository | None = None, media: MediaService | None = None) -> None:
        self.repository = repository or get_user_repository()
        self._media = media

    @property
    def media(self) -> MediaService:
        return self._media or get_media_service()

    def create_account(
        self,
        db: Session,
        name: str | None,
        email: str | None,
        password: str | None,
        role: str | None = None,
    ) -> AccountResult:
        """Create a user account and mark it active."""
        if not name or not email or not password:
            return _fail(ErrorKind.VALIDATION, "Name, email and password are required")

        error = validate_name(name) or validate_email(email)
        if error:
            return _fail(ErrorKind.VALIDATION, error)

        if self.repository.email_taken(db, email):
            return _fail(ErrorKind.CONFLICT, EMAIL_TAKEN)

        try:
            user = self.repository.create(db, name=name, email=email, password=password, role=role or Role.STUDENT)
        except DuplicateEmailError:
            return _fail(ErrorKind.CONFLICT, EMAIL_TAKEN)
        except RecordValidationError as e:
            return _fail(ErrorKind.VALIDATION, str(e))

        user.touch_last_active()
        self.repository.save(db, user, validate=False)
        logger.info("Created account %s (role=%s)", user.id, user.role.value)
        return AccountResult(success=True, user=user)

    def authenticate(self, db: Session, email: str | None, password: str | None) -> AccountResult:
        """Verify credentials. Unknown email and wrong password fail identically."""
        if not email or not password:
            return _fail(ErrorKind.VALIDATION, "Email and password are required")

        user = self.repository.find_with_secret(db, email=email)
        if not user:
            verify_password(password, _dummy_hash())
            logger.info("Failed signin attempt")
            return _fail(ErrorKind.AUTH, INVALID_CREDENTIALS)
        if not verify_password(password, user.password_hash):
            logger.info("Failed signin attempt for user %s", user.id)
            return _fail(ErrorKind.AUTH, INVALID_CREDENTIALS)

        user.touch_last_active()
        self.repository.save(db, user, validate=False)
        return AccountResult(success=True, user=user)

    def get_profile(self, db: Session, user_id: int) -> AccountResult:
        """Get the current user's profile."""
        user = self.repository.find_by_id(db, user_id)
        if not user:
            return _fail(ErrorKind.NOT_FOUND, USER_NOT_FOUND)
        return AccountResult(success=True, user=user)

    def update_profile(self, db: Session, user_id: int, changes: Mapping[str, Any]) -> AccountResult:
        """Apply a partial profile update.

        `changes` holds only the fields the client sent. A present key is
        applied even when its value is an empty string; an absent key leaves
        the field untouched. `avatar` is a base64 image payload, or None to
        reset to the default avatar.
        """
        user = self.repository.find_by_id(db, user_id)
        if not user:
            return _fail(ErrorKind.NOT_FOUND, USER_NOT_FOUND)

        changes = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}

        if "name" in changes:
            error = validate_name(changes["name"])
            if error:
                return _fail(ErrorKind.VALIDATION, error)
        if "email" in changes:
            error = validate_email(changes["email"])
            if error:
                return _fail(ErrorKind.VALIDATION, error)
            if self.repository.email_taken(db, changes["email"], exclude_id=user.id):
                return _fail(ErrorKind.CONFLICT, EMAIL_TAKEN)
        if "bio" in changes:
            error = validate_bio(changes["bio"])
            if error:
                return _fail(ErrorKind.VALIDATION, error)

        previous_avatar = user.avatar
        new_avatar = None
        if "avatar" in changes and changes["avatar"] is not None:
            # Uploaded before any old file is removed, so a bad payload leaves the profile intact
            try:
                new_avatar = self.media.upload(changes["avatar"], AVATAR_FOLDER)
            except ValueError as e:
                return _fail(ErrorKind.VALIDATION, str(e))

        if "name" in changes:
            user.name = changes["name"].strip()
        if "email" in changes:
            user.email = normalize_email(changes["email"])
        if "bio" in changes:
            user.bio = changes["bio"]
        if "avatar" in changes:
            user.avatar = new_avatar or DEFAULT_AVATAR

        try:
            self.repository.save(db, user)
        except (DuplicateEmailError, RecordValidationError) as e:
            db.rollback()
            if new_avatar:
                self.media.delete(new_avatar)
            kind = ErrorKind.CONFLICT if isinstance(e, DuplicateEmailError) else ErrorKind.VALIDATION
            return _fail(kind, str(e))

        if "avatar" in changes and previous_avatar and previous_avatar not in (DEFAULT_AVATAR, user.avatar):
            self.media.delete(previous_avatar)

        return AccountResult(success=True, user=user)

    def change_password(
        self,
        db: Session,
        user_id: int,
        current_password: str | None,
        new_password: str | None,
    ) -> AccountResult:
        """Change password after verifying the current one."""
        if not current_password or not new_password:
            return _fail(ErrorKind.VALIDATION, "Current password and new password are required")

        user = self.repository.find_with_secret(db, user_id=user_id)
        if not user or not verify_password(current_password, user.password_hash):
            return _fail(ErrorKind.AUTH, "Current password is incorrect")

        try:
            self.repository.set_password(user, new_password)
        except RecordValidationError as e:
            return _fail(ErrorKind.VALIDATION, str(e))

        self.repository.save(db, user, validate=False)
        logger.info("Password changed for user %s", user.id)
        return AccountResult(success=True, user=user)

    def request_password_reset(self, db: Session, email: str | None) -> AccountResult:
        """Issue a reset token for the given email.

        Only the token digest and expiry are stored. The raw token is returned
        on the result for out-of-band delivery and must not reach the HTTP body.
        """
        if not email:
            return _fail(ErrorKind.VALIDATION, "Email is required")

        user = self.repository.find_by_email(db, email)
        if not user:
            return _fail(ErrorKind.NOT_FOUND, "There is no user with that email address")

        token, digest, expires_at = generate_reset_token()
        user.reset_password_token = digest
        user.reset_password_expire = expires_at
        self.repository.save(db, user, validate=False)

        logger.info("Password reset requested for user %s", user.id)
        return AccountResult(success=True, user=user, reset_token=token)

    def reset_password(self, db: Session, token: str, new_password: str | None) -> AccountResult:
        """Set a new password using an unexpired reset token."""
        if not new_password:
            return _fail(ErrorKind.VALIDATION, "Please provide a new password")

        try:
            consumed = self.repository.consume_reset_token(
                db, hash_reset_token(token), new_password, now=datetime.utcnow()
            )
        except RecordValidationError as e:
            return _fail(ErrorKind.VALIDATION, str(e))

        if not consumed:
            return _fail(ErrorKind.AUTH, "Token is invalid or has expired")

        logger.info("Password reset completed")
        return AccountResult(success=True)

    def delete_account(self, db: Session, user_id: int) -> AccountResult:
        """Delete the user and their uploaded avatar."""
        user = self.repository.find_by_id(db, user_id)
        avatar = user.avatar if user else None

        self.repository.delete_by_id(db, user_id)

        if avatar and avatar != DEFAULT_AVATAR:
            self.media.delete(avatar)
        logger.info("Deleted account %s", user_id)
        return AccountResult(success=True)


_account_service: AccountService | None = None


def get_account_service() -> AccountService:
    """Get singleton account service instance."""
    global _account_service
    if _account_service is None:
        _account_service = AccountService()
    return _account_service
