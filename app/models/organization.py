"""
Organization model — the tenant and unit of data isolation.

Every User belongs to exactly one Organization. The slug is the URL-safe,
globally unique handle used in links and by OAuth provisioning, which
derives it from the new user's display name and retries with a suffix when
it is already taken.

is_system_admin marks the bootstrap/administrative tenant that hosts the
system_admin accounts.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    slug: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    is_system_admin: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    users: Mapped[list["User"]] = relationship(
        back_populates="organization",
    )
