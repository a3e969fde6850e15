"""
Authentication service — the single entry point the HTTP layer talks to.

AuthService is built around one Storage and composes the three identity
components:

  - CredentialVerifier  → authenticate()   (local login)
  - IdentityReconciler  → reconcile()      (OAuth callback)
  - SessionStore        → serialize() / deserialize()

plus local registration. There is no module-level registry of strategies:
whoever needs authentication builds an AuthService with the storage of the
current unit of work (see app.dependencies.get_auth_service).

Registration flow:
  1. Reject a username or email that is already taken
  2. Create a new Organization (unique slug derived from its name)
  3. Create the user as org_admin of that organization with an Argon2 hash
"""

import logging

from app.exceptions import DuplicateRecordError, OrgCreationFailedError
from app.models.user import AuthProvider, User, UserRole
from app.schemas.auth import OAuthProfile
from app.security import hash_password
from app.services.credential_service import CredentialVerifier
from app.services.identity_service import IdentityReconciler, create_unique_organization
from app.services.results import AuthResult
from app.services.session_service import SessionStore
from app.storage import Storage

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, storage: Storage):
        self.storage = storage
        self.credentials = CredentialVerifier(storage)
        self.identities = IdentityReconciler(storage)
        self.sessions = SessionStore(storage)

    async def authenticate(
        self, username: str, password: str, *, reveal_inactive: bool = False
    ) -> AuthResult:
        return await self.credentials.authenticate(
            username, password, reveal_inactive=reveal_inactive
        )

    async def reconcile(
        self,
        profile: OAuthProfile,
        *,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ) -> AuthResult:
        return await self.identities.reconcile(
            profile, access_token=access_token, refresh_token=refresh_token
        )

    def serialize(self, principal: User) -> str:
        return self.sessions.serialize(principal)

    async def deserialize(self, session_id: str | None) -> User | None:
        return await self.sessions.deserialize(session_id)

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        name: str,
        organization_name: str,
    ) -> User:
        """
        Register a local account together with its own organization.

        Raises:
            DuplicateRecordError: If the username or email is already in use.
            OrgCreationFailedError: If no unique organization slug was found.
        """
        if await self.storage.get_user_by_username(username) is not None:
            raise DuplicateRecordError(f"Username {username} is already registered")
        if await self.storage.get_user_by_email(email) is not None:
            raise DuplicateRecordError(f"Email {email} is already registered")

        organization = await create_unique_organization(self.storage, organization_name)
        if organization is None:
            raise OrgCreationFailedError()

        user = await self.storage.create_user({
            "username": username,
            "email": email,
            "name": name,
            "hashed_password": hash_password(password),
            "role": UserRole.ORG_ADMIN,
            "organization_id": organization.id,
            "auth_provider": AuthProvider.LOCAL,
        })
        logger.info("Registered user %s with organization %s", user.id, organization.slug)
        return user
