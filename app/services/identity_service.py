"""
OAuth identity reconciliation — map an external provider profile to exactly
one local user.

Reconcile flow:
  1. Validate: the profile needs a provider id and at least one email.
     Nothing is read or written otherwise.
  2. Look up by external_id.
       - inactive → ACCOUNT_DEACTIVATED
       - active   → refresh photo / cached provider tokens, return
  3. Look up by email (case-insensitive).
       - inactive → reactivate, link external_id, return reactivated=True
                    (or ACCOUNT_DEACTIVATED when reactivation is disabled)
       - active   → link external_id, return
  4. No match → create an Organization named after the user, then the user
     as a client of that organization.

Only step 4 creates rows, and only step 2 is reached again once a profile
has been linked, so repeated sign-ins never duplicate a user or tenant.

Concurrency:
  Two sign-ins for the same brand-new identity can both reach step 4. The
  loser's insert hits a unique constraint (external_id, email or
  username); storage rolls back and raises DuplicateRecordError, and the
  whole algorithm restarts from step 2, where it now finds the winner's
  row. Organization slugs collide the same way and are retried with a
  timestamp-and-random suffix. Both loops are bounded.
"""

import logging
import re
import secrets
import time
import unicodedata
from datetime import datetime, timedelta, timezone

from app.config import settings
from app.exceptions import DuplicateRecordError, ErrorKind
from app.models.organization import Organization
from app.models.user import AuthProvider, User, UserRole
from app.schemas.auth import OAuthProfile
from app.security import encrypt_value
from app.services.results import AuthResult
from app.storage import Storage

logger = logging.getLogger(__name__)


def organization_name_for(profile: OAuthProfile, email: str) -> str:
    """Human-readable tenant name: "<display name>'s Organization"."""
    display_name = (profile.display_name or "").strip() or email.split("@")[0]
    return f"{display_name}'s Organization"


def slugify(value: str) -> str:
    """
    URL-safe slug: ASCII, lower-case, hyphen-separated.

    "Bob Smith's Organization" -> "bob-smiths-organization"
    """
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"['’]", "", value.lower())
    value = re.sub(r"[^a-z0-9]+", "-", value)
    return value.strip("-") or "organization"


async def create_unique_organization(storage: Storage, name: str) -> Organization | None:
    """
    Create an Organization, moving to a suffixed slug while the derived one
    is taken. The suffix is "<epoch ms>-<4 hex>", so two callers retrying
    in the same millisecond still pick different slugs.

    Returns:
        The new Organization, or None once ORG_SLUG_MAX_ATTEMPTS slugs
        have been tried.
    """
    base_slug = slugify(name)
    slug = base_slug
    for attempt in range(1, settings.ORG_SLUG_MAX_ATTEMPTS + 1):
        if await storage.get_organization_by_slug(slug) is None:
            try:
                return await storage.create_organization({"name": name, "slug": slug})
            except DuplicateRecordError:
                logger.info("Organization slug %r taken concurrently", slug)
        logger.debug("Slug %r unavailable (attempt %d)", slug, attempt)
        slug = f"{base_slug}-{int(time.time() * 1000)}-{secrets.token_hex(2)}"

    logger.error(
        "Gave up creating an organization for %r after %d attempts",
        name, settings.ORG_SLUG_MAX_ATTEMPTS,
    )
    return None


class IdentityReconciler:
    def __init__(self, storage: Storage):
        self.storage = storage

    async def reconcile(
        self,
        profile: OAuthProfile,
        *,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ) -> AuthResult:
        """
        Resolve a provider profile to a local user, creating or linking as needed.

        Args:
            profile: The provider's profile payload.
            access_token: Optional provider access token to cache on the user.
            refresh_token: Optional provider refresh token to cache on the user.

        Returns:
            AuthResult with the user on success; reactivated=True when an
            inactive account was brought back.

        Raises:
            DuplicateRecordError: If concurrent writers kept winning the race
                for RECONCILE_MAX_ATTEMPTS rounds.
        """
        external_id = (profile.id or "").strip()
        email = profile.primary_email
        if not external_id or not email:
            logger.warning("Rejected OAuth profile without %s", "id" if not external_id else "email")
            return AuthResult.failure(ErrorKind.PROFILE_INVALID)

        token_fields = self._token_fields(access_token, refresh_token)

        attempt = 1
        while True:
            try:
                return await self._resolve(profile, external_id, email, token_fields)
            except DuplicateRecordError:
                if attempt >= settings.RECONCILE_MAX_ATTEMPTS:
                    raise
                logger.warning(
                    "Concurrent sign-in for external id %s, retrying lookup (attempt %d)",
                    external_id, attempt,
                )
                attempt += 1

    async def _resolve(
        self,
        profile: OAuthProfile,
        external_id: str,
        email: str,
        token_fields: dict,
    ) -> AuthResult:
        photo_url = profile.photo_url

        user = await self.storage.get_user_by_external_id(external_id)
        if user is not None:
            if not user.is_active:
                logger.info("OAuth sign-in refused for deactivated user %s", user.id)
                return AuthResult.failure(ErrorKind.ACCOUNT_DEACTIVATED)
            return AuthResult.success(await self._refresh(user, photo_url, token_fields))

        user = await self.storage.get_user_by_email(email)
        if user is not None:
            patch = {
                "external_id": external_id,
                "auth_provider": AuthProvider.OAUTH,
                **token_fields,
            }
            if photo_url:
                patch["photo_url"] = photo_url

            if not user.is_active:
                if not settings.OAUTH_REACTIVATE_ON_EMAIL_MATCH:
                    logger.info("OAuth sign-in refused for inactive user %s", user.id)
                    return AuthResult.failure(ErrorKind.ACCOUNT_DEACTIVATED)
                patch["is_active"] = True
                user = await self.storage.update_user(user.id, patch) or user
                logger.info("Reactivated user %s and linked external id %s", user.id, external_id)
                return AuthResult.success(user, reactivated=True)

            user = await self.storage.update_user(user.id, patch) or user
            logger.info("Linked external id %s to existing user %s", external_id, user.id)
            return AuthResult.success(user)

        return await self._provision(profile, external_id, email, photo_url, token_fields)

    async def _refresh(self, user: User, photo_url: str | None, token_fields: dict) -> User:
        patch = dict(token_fields)
        if photo_url and photo_url != user.photo_url:
            patch["photo_url"] = photo_url
        if not patch:
            return user
        return await self.storage.update_user(user.id, patch) or user

    async def _provision(
        self,
        profile: OAuthProfile,
        external_id: str,
        email: str,
        photo_url: str | None,
        token_fields: dict,
    ) -> AuthResult:
        organization_name = organization_name_for(profile, email)
        organization = await create_unique_organization(self.storage, organization_name)
        if organization is None:
            return AuthResult.failure(ErrorKind.ORG_CREATION_FAILED)

        user = await self.storage.create_user({
            "username": await self._available_username(email),
            "email": email,
            "name": (profile.display_name or "").strip() or email.split("@")[0],
            "hashed_password": None,
            "role": UserRole(settings.OAUTH_DEFAULT_ROLE),
            "organization_id": organization.id,
            "is_active": True,
            "auth_provider": AuthProvider.OAUTH,
            "external_id": external_id,
            "photo_url": photo_url,
            **token_fields,
        })
        logger.info(
            "Provisioned user %s in new organization %s (%s)",
            user.id, organization.id, organization.slug,
        )
        return AuthResult.success(user)

    async def _available_username(self, email: str) -> str:
        if await self.storage.get_user_by_username(email) is None:
            return email
        return f"{email.split('@')[0]}-{secrets.token_hex(4)}"

    @staticmethod
    def _token_fields(access_token: str | None, refresh_token: str | None) -> dict:
        fields = {}
        if access_token:
            fields["oauth_access_token"] = encrypt_value(access_token)
            fields["oauth_token_expires_at"] = datetime.now(timezone.utc) + timedelta(
                seconds=settings.OAUTH_TOKEN_TTL_SECONDS
            )
        if refresh_token:
            fields["oauth_refresh_token"] = encrypt_value(refresh_token)
        return fields
