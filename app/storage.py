"""
Storage collaborator — the persistence contract the identity core depends on.

The core never touches SQLAlchemy directly. It talks to a Storage: a small
async interface with lookups that return None when nothing matches ("no
match" is a normal outcome, not an error) and writes that raise
DuplicateRecordError when a unique constraint (username, email,
external_id, slug) is violated. Any other IntegrityError propagates
unchanged.

SqlStorage is the production implementation over an AsyncSession. On a
unique violation it rolls the session back before raising, so the caller
can re-read the winning row and carry on in the same request. Nothing else
has been written in that request at that point: the identity flows perform
their writes last.
"""

import logging
import uuid
from typing import Any, Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import DuplicateRecordError
from app.models.organization import Organization
from app.models.user import User

logger = logging.getLogger(__name__)

# SQLSTATE for unique_violation (PostgreSQL and other drivers that report it)
UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """
    True when an IntegrityError came from a unique constraint.

    NOT NULL, foreign-key and check failures are also IntegrityErrors but
    are bugs in the caller, not lost races, and must not be retried.
    """
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is not None:
        return code == UNIQUE_VIOLATION
    message = str(orig).lower()
    return "unique constraint" in message or "duplicate key" in message


class Storage(Protocol):
    """Persistence operations consumed by the identity core."""

    async def get_user(self, user_id: uuid.UUID) -> User | None: ...

    async def get_user_by_username(self, username: str) -> User | None: ...

    async def get_user_by_external_id(self, external_id: str) -> User | None: ...

    async def get_user_by_email(self, email: str) -> User | None: ...

    async def create_user(self, data: dict[str, Any]) -> User: ...

    async def update_user(self, user_id: uuid.UUID, patch: dict[str, Any]) -> User | None: ...

    async def create_organization(self, data: dict[str, Any]) -> Organization: ...

    async def get_organization_by_slug(self, slug: str) -> Organization | None: ...


class SqlStorage:
    """Storage over a request-scoped SQLAlchemy AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: uuid.UUID) -> User | None:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_username(self, username: str) -> User | None:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def get_user_by_external_id(self, external_id: str) -> User | None:
        result = await self.db.execute(select(User).where(User.external_id == external_id))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> User | None:
        result = await self.db.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def list_users(self, organization_id: uuid.UUID | None = None) -> list[User]:
        """List users, optionally restricted to one organization."""
        stmt = select(User).order_by(User.created_at)
        if organization_id is not None:
            stmt = stmt.where(User.organization_id == organization_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_user(self, data: dict[str, Any]) -> User:
        data = dict(data)
        if data.get("email"):
            data["email"] = data["email"].strip().lower()
        user = User(**data)
        self.db.add(user)
        await self._flush("user")
        return user

    async def update_user(self, user_id: uuid.UUID, patch: dict[str, Any]) -> User | None:
        user = await self.get_user(user_id)
        if user is None:
            return None
        for field, value in patch.items():
            setattr(user, field, value)
        await self._flush("user")
        return user

    async def get_organization(self, organization_id: uuid.UUID) -> Organization | None:
        result = await self.db.execute(
            select(Organization).where(Organization.id == organization_id)
        )
        return result.scalar_one_or_none()

    async def list_organizations(self) -> list[Organization]:
        result = await self.db.execute(select(Organization).order_by(Organization.created_at))
        return list(result.scalars().all())

    async def create_organization(self, data: dict[str, Any]) -> Organization:
        organization = Organization(**data)
        self.db.add(organization)
        await self._flush("organization")
        return organization

    async def get_organization_by_slug(self, slug: str) -> Organization | None:
        result = await self.db.execute(
            select(Organization).where(Organization.slug == slug)
        )
        return result.scalar_one_or_none()

    async def _flush(self, entity: str) -> None:
        try:
            await self.db.flush()
        except IntegrityError as exc:
            await self.db.rollback()
            if not is_unique_violation(exc):
                logger.error("Integrity error while writing %s: %s", entity, exc.orig)
                raise
            logger.info("Unique constraint conflict while writing %s: %s", entity, exc.orig)
            raise DuplicateRecordError(f"A {entity} with these values already exists") from exc
