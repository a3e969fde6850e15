"""
Pydantic schemas for authentication endpoints.

OAuthProfile mirrors the profile payload an identity provider returns
after a code exchange ({id, emails: [{value, verified}], displayName, photos:
[{value}]}). Its fields are deliberately permissive: a profile without an id
or email is a domain error (PROFILE_INVALID, 400) reported by the
reconciler, not a validation error. Profiles are only ever built
server-side from a provider response (see app.integrations.google_oauth).
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.schemas.user import UserResponse


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""
    username: str = Field(min_length=3, max_length=255)
    email: EmailStr
    password: str = Field(min_length=8)
    name: str = Field(min_length=1, max_length=255)
    organization_name: str = Field(min_length=1, max_length=255)


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    username: str
    password: str


class OAuthEmail(BaseModel):
    value: str | None = None
    verified: bool | None = None


class OAuthPhoto(BaseModel):
    value: str | None = None


class OAuthProfile(BaseModel):
    """External provider profile, as delivered by the provider."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    emails: list[OAuthEmail] = []
    display_name: str | None = Field(default=None, alias="displayName")
    photos: list[OAuthPhoto] = []

    @property
    def primary_email(self) -> str | None:
        """First non-blank email the provider has not marked unverified, lower-cased."""
        for email in self.emails:
            if email.verified is False:
                continue
            if email.value and email.value.strip():
                return email.value.strip().lower()
        return None

    @property
    def photo_url(self) -> str | None:
        for photo in self.photos:
            if photo.value:
                return photo.value
        return None


class SessionResponse(BaseModel):
    """Response body for a successful login, registration or OAuth sign-in."""
    user: UserResponse
    session_token: str
    reactivated: bool = False
