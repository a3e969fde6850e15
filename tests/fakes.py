"""
In-memory Storage for service-level tests.

Behaves like SqlStorage as far as the identity core can tell: lookups
return None on no match and writes raise DuplicateRecordError on the same
unique keys (username, email, external_id, slug). Every call is recorded in
`calls`, so tests can assert exactly which reads and writes a flow made.

Races are simulated with the before_create_user / before_create_organization
hooks, which run inside the write just before the uniqueness check, as a
concurrent request committing first would.
"""

import uuid
from datetime import datetime, timezone

from app.exceptions import DuplicateRecordError
from app.models.organization import Organization
from app.models.user import AuthProvider, User, UserRole

WRITES = {"create_user", "update_user", "create_organization"}


class InMemoryStorage:
    def __init__(self):
        self.users: dict[uuid.UUID, User] = {}
        self.organizations: dict[uuid.UUID, Organization] = {}
        self.calls: list[str] = []
        self.before_create_user = None
        self.before_create_organization = None

    @property
    def writes(self) -> list[str]:
        return [call for call in self.calls if call in WRITES]

    # --- reads ---

    async def get_user(self, user_id):
        self.calls.append("get_user")
        return self.users.get(user_id)

    async def get_user_by_username(self, username):
        self.calls.append("get_user_by_username")
        return next((u for u in self.users.values() if u.username == username), None)

    async def get_user_by_external_id(self, external_id):
        self.calls.append("get_user_by_external_id")
        return next((u for u in self.users.values() if u.external_id == external_id), None)

    async def get_user_by_email(self, email):
        self.calls.append("get_user_by_email")
        email = email.strip().lower()
        return next((u for u in self.users.values() if u.email.lower() == email), None)

    async def get_organization_by_slug(self, slug):
        self.calls.append("get_organization_by_slug")
        return next((o for o in self.organizations.values() if o.slug == slug), None)

    # --- writes ---

    async def create_user(self, data):
        self.calls.append("create_user")
        if self.before_create_user is not None:
            hook, self.before_create_user = self.before_create_user, None
            await hook(self)
        user = self.insert_user(**data)
        return user

    async def update_user(self, user_id, patch):
        self.calls.append("update_user")
        user = self.users.get(user_id)
        if user is None:
            return None
        self._check_unique_user(patch, exclude=user_id)
        for field, value in patch.items():
            setattr(user, field, value)
        user.updated_at = datetime.now(timezone.utc)
        return user

    async def create_organization(self, data):
        self.calls.append("create_organization")
        if self.before_create_organization is not None:
            hook, self.before_create_organization = self.before_create_organization, None
            await hook(self)
        return self.insert_organization(**data)

    # --- seeding (not recorded) ---

    def insert_organization(self, name, slug, is_system_admin=False):
        if any(o.slug == slug for o in self.organizations.values()):
            raise DuplicateRecordError(f"Organization slug {slug} already exists")
        organization = Organization(
            id=uuid.uuid4(),
            name=name,
            slug=slug,
            is_system_admin=is_system_admin,
            created_at=datetime.now(timezone.utc),
        )
        self.organizations[organization.id] = organization
        return organization

    def insert_user(self, **data):
        data.setdefault("role", UserRole.CLIENT)
        data.setdefault("is_active", True)
        data.setdefault("auth_provider", AuthProvider.LOCAL)
        data.setdefault("name", "")
        data.setdefault("hashed_password", None)
        data.setdefault("external_id", None)
        data.setdefault("photo_url", None)
        data["email"] = data["email"].strip().lower()
        self._check_unique_user(data)

        now = datetime.now(timezone.utc)
        user = User(id=uuid.uuid4(), created_at=now, updated_at=now, **data)
        self.users[user.id] = user
        return user

    def _check_unique_user(self, data, exclude=None):
        for other in self.users.values():
            if other.id == exclude:
                continue
            if "username" in data and other.username == data["username"]:
                raise DuplicateRecordError("username already exists")
            if "email" in data and other.email == data["email"].strip().lower():
                raise DuplicateRecordError("email already exists")
            if data.get("external_id") and other.external_id == data["external_id"]:
                raise DuplicateRecordError("external_id already exists")
