"""Pydantic schemas for user account endpoints.

Request fields are optional so the account service can report missing input
with its own messages. JSON keys are camelCase; snake_case is also accepted.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.models.user import Role


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignupRequest(CamelModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None
    role: str | None = None


class SigninRequest(CamelModel):
    email: str | None = None
    password: str | None = None


class ProfileUpdateRequest(CamelModel):
    """Partial update. Only keys present in the request body are applied."""

    name: str | None = None
    email: str | None = None
    bio: str | None = None
    avatar: str | None = None  # base64 image or data URI; null resets to default

    def provided_changes(self) -> dict:
        return self.model_dump(include=self.model_fields_set)


class ChangePasswordRequest(CamelModel):
    current_password: str | None = None
    new_password: str | None = None


class ForgotPasswordRequest(CamelModel):
    email: str | None = None


class ResetPasswordRequest(CamelModel):
    password: str | None = None


class UserResponse(CamelModel):
    id: int
    name: str
    email: str
    role: Role
    avatar: str
    bio: str | None
    last_active: datetime
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UserEnvelope(MessageResponse):
    data: UserResponse
