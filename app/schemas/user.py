"""
Pydantic schemas for User-related requests and responses.

These schemas control what user data is exposed through the API.
hashed_password and the cached provider tokens are NEVER included in any
response schema — this is a critical security boundary.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.user import AuthProvider, UserRole


class UserResponse(BaseModel):
    """Public representation of a User."""
    id: uuid.UUID
    username: str
    email: str
    name: str
    role: UserRole
    organization_id: uuid.UUID
    is_active: bool
    auth_provider: AuthProvider
    photo_url: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserCreateRequest(BaseModel):
    """
    Request body for POST /users.

    organization_id is optional. When given it is checked against the
    caller's organization, but the user is always created in the
    organization chosen by the scoping guard.
    """
    username: str = Field(min_length=3, max_length=255)
    email: EmailStr
    name: str = Field(min_length=1, max_length=255)
    password: str | None = Field(default=None, min_length=8)
    role: UserRole = UserRole.CLIENT
    organization_id: uuid.UUID | None = None


class UserUpdateRequest(BaseModel):
    """
    Request body for PATCH /users/{user_id} — administrative edits.

    Omitted fields are left unchanged. name, role and is_active cannot be
    cleared, so an explicit null for them is a validation error (422).
    """
    name: str | None = Field(default=None, min_length=1, max_length=255)
    role: UserRole | None = None
    is_active: bool | None = None
    organization_id: uuid.UUID | None = None

    @field_validator("name", "role", "is_active", mode="before")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class PasswordResetRequest(BaseModel):
    """Request body for POST /users/{user_id}/password."""
    password: str = Field(min_length=8)
