"""User model."""

import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import deferred

from app.database import Base

DEFAULT_AVATAR = "default-avatar.png"


class Role(str, enum.Enum):
    """Account role. Stored only; no permissions hang off it."""

    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class User(Base):
    """Platform account."""

    __tablename__ = "user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False)
    email = Column(String(256), unique=True, nullable=False, index=True)
    # Only loaded through UserRepository.find_with_secret.
    password_hash = deferred(Column(String(256), nullable=False), raiseload=True)
    role = Column(
        Enum(Role, name="user_role", values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
        default=Role.STUDENT,
    )
    avatar = Column(String(512), nullable=False, default=DEFAULT_AVATAR)
    bio = Column(Text, nullable=True)
    last_active = Column(DateTime, nullable=False, default=datetime.utcnow)
    reset_password_token = Column(String(64), nullable=True, index=True)
    reset_password_expire = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def touch_last_active(self) -> None:
        self.last_active = datetime.utcnow()
