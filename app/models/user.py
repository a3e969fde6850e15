"""
User model — the principal behind every authenticated request.

Each User belongs to exactly one Organization (tenant) and holds exactly one
role from the closed UserRole enumeration. A User can authenticate in two
ways, and may hold both at once:

  - LOCAL: username + password. The password column holds an Argon2 hash,
    or, for accounts imported from the legacy system, the plaintext value
    that is upgraded to Argon2 on the first successful login.
  - OAUTH: an external identity provider. external_id holds the provider's
    stable user id and is unique when present. OAuth-only accounts have no
    password; an administrator may set one later without unlinking the
    external identity.

Provider access/refresh tokens are cached Fernet-encrypted for integrations
(e.g. Gmail). They are never consulted for authorization.

Users are never hard-deleted by the identity core: deactivation flips
is_active, and reactivation flips it back.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, Enum, ForeignKey, LargeBinary
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class UserRole(str, enum.Enum):
    """
    Closed set of roles a user can hold.

    Inherits from str so the enum value serializes naturally to JSON.
    Adding a member here requires a matching row in
    app.permissions.CAPABILITIES, which is checked at import time.
    """
    SYSTEM_ADMIN = "system_admin"   # Every organization, every capability
    ORG_ADMIN = "org_admin"         # Everything within their organization
    ADMIN = "admin"                 # Legacy role, same grants as org_admin
    MANAGER = "manager"
    TECHNICIAN = "technician"
    OFFICE_STAFF = "office_staff"
    CLIENT = "client"               # Default for self-provisioned OAuth signups
    VENDOR = "vendor"


class AuthProvider(str, enum.Enum):
    """How the account was last linked: local password or external OAuth identity."""
    LOCAL = "local"
    OAUTH = "oauth"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    username: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    # Stored lower-cased; lookups compare case-insensitively
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )

    # Argon2 hash, legacy plaintext, or NULL for OAuth-only accounts
    hashed_password: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole),
        default=UserRole.CLIENT,
        nullable=False,
    )

    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id"),
        nullable=False,
        index=True,
    )

    # Soft-disable: deactivated users can't log in but their data is preserved
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    auth_provider: Mapped[AuthProvider] = mapped_column(
        Enum(AuthProvider),
        default=AuthProvider.LOCAL,
        nullable=False,
    )

    # Provider-assigned id (e.g. Google "sub"); at most one user per value
    external_id: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
        index=True,
    )

    photo_url: Mapped[str | None] = mapped_column(
        String(1024),
        nullable=True,
    )

    # Cached provider tokens, Fernet-encrypted
    oauth_access_token: Mapped[bytes | None] = mapped_column(
        LargeBinary,
        nullable=True,
    )
    oauth_refresh_token: Mapped[bytes | None] = mapped_column(
        LargeBinary,
        nullable=True,
    )
    oauth_token_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    organization: Mapped["Organization"] = relationship(
        back_populates="users",
    )
