"""User repository.

Owns persistence of user records: lookups, writes, field validation on save
and hashing of raw passwords. The password hash is deferred on the model, so
only `find_with_secret` returns users that carry it.
"""

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, undefer

from app.models.user import DEFAULT_AVATAR, Role, User
from app.services.password import hash_password
from app.validators import (
    normalize_email,
    validate_bio,
    validate_email,
    validate_name,
    validate_password,
    validate_role,
)

logger = logging.getLogger("learnhub.repository")


class RecordValidationError(ValueError):
    """A user record failed field validation."""


class DuplicateEmailError(ValueError):
    """The unique email index rejected a write."""


class UserRepository:
    """Repository for user data access."""

    def find_by_id(self, db: Session, user_id: int) -> User | None:
        """Get user by ID."""
        return db.get(User, user_id)

    def find_by_email(self, db: Session, email: str) -> User | None:
        """Get user by email (case-insensitive)."""
        return db.query(User).filter(User.email == normalize_email(email)).first()

    def find_with_secret(self, db: Session, *, user_id: int | None = None, email: str | None = None) -> User | None:
        """Get user by ID or email with the password hash loaded."""
        query = db.query(User).options(undefer(User.password_hash)).execution_options(populate_existing=True)
        if user_id is not None:
            query = query.filter(User.id == user_id)
        elif email is not None:
            query = query.filter(User.email == normalize_email(email))
        else:
            raise ValueError("find_with_secret needs user_id or email")
        return query.first()

    def email_taken(self, db: Session, email: str, exclude_id: int | None = None) -> bool:
        """Check whether another user already owns the email."""
        query = db.query(User.id).filter(User.email == normalize_email(email))
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        return query.first() is not None

    def validate(self, user: User) -> None:
        """Run field rules against a user record. Raises RecordValidationError."""
        role = user.role.value if isinstance(user.role, Role) else user.role
        for error in (
            validate_name(user.name),
            validate_email(user.email),
            validate_bio(user.bio),
            validate_role(role),
        ):
            if error:
                raise RecordValidationError(error)

    def create(self, db: Session, *, name: str, email: str, password: str, role: str | Role = Role.STUDENT) -> User:
        """Create a user, hashing the raw password."""
        error = validate_password(password) or validate_role(role.value if isinstance(role, Role) else role)
        if error:
            raise RecordValidationError(error)

        user = User(
            name=name.strip(),
            email=normalize_email(email),
            password_hash=hash_password(password),
            role=Role(role),
            avatar=DEFAULT_AVATAR,
        )
        self.validate(user)
        db.add(user)
        self._commit(db)
        db.refresh(user)
        return user

    def set_password(self, user: User, password: str) -> None:
        """Replace the user's password. Takes effect on the next save."""
        error = validate_password(password)
        if error:
            raise RecordValidationError(error)
        user.password_hash = hash_password(password)

    def save(self, db: Session, user: User, validate: bool = True) -> User:
        """Persist pending changes on a user.

        Pass validate=False for bookkeeping writes (reset tokens, activity
        timestamps) that must not be blocked by unrelated field rules.
        """
        if validate:
            self.validate(user)
        self._commit(db)
        db.refresh(user)
        return user

    def consume_reset_token(self, db: Session, token_digest: str, password: str, now: datetime) -> bool:
        """Set a new password for the holder of an unexpired reset token.

        Matching, password replacement and clearing of the reset fields happen
        in one conditional UPDATE, so a token can be consumed at most once.
        Returns True if a user was updated.
        """
        error = validate_password(password)
        if error:
            raise RecordValidationError(error)

        result = db.execute(
            update(User)
            .where(User.reset_password_token == token_digest, User.reset_password_expire > now)
            .values(
                password_hash=hash_password(password),
                reset_password_token=None,
                reset_password_expire=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount > 0

    def delete_by_id(self, db: Session, user_id: int) -> None:
        """Delete a user. No error if the user does not exist."""
        db.query(User).filter(User.id == user_id).delete(synchronize_session="evaluate")
        db.commit()

    def _commit(self, db: Session) -> None:
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning("Integrity error on user write: %s", e.orig)
            raise DuplicateEmailError("User with this email already exists") from e


_user_repository: UserRepository | None = None


def get_user_repository() -> UserRepository:
    """Get singleton user repository instance."""
    global _user_repository
    if _user_repository is None:
        _user_repository = UserRepository()
    return _user_repository
