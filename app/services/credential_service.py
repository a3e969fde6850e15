"""
Credential verifier — local username/password login.

Login flow:
  1. Look up the user by username
  2. Reject unknown, inactive, and password-less (OAuth-only) accounts
  3. Verify the password:
       - Argon2 hash    → verify, no write
       - legacy value   → constant-time compare; on success replace it with
                          an Argon2 hash before returning (one write)
  4. Return the user

Security notes:
  - Unknown username, wrong password and inactive account all produce
    INVALID_CREDENTIALS to prevent user enumeration. Callers that are
    allowed to tell the user their account is disabled pass
    reveal_inactive=True and get ACCOUNT_INACTIVE instead.
  - The upgrade is one-way: once an Argon2 hash is stored the value is
    never compared as plaintext again.
"""

import logging

from app.exceptions import ErrorKind
from app.security import verify_password
from app.services.results import AuthResult
from app.storage import Storage

logger = logging.getLogger(__name__)


class CredentialVerifier:
    def __init__(self, storage: Storage):
        self.storage = storage

    async def authenticate(
        self,
        username: str,
        password: str,
        *,
        reveal_inactive: bool = False,
    ) -> AuthResult:
        """
        Authenticate a local user.

        Args:
            username: The login name.
            password: Plaintext password to verify.
            reveal_inactive: Report ACCOUNT_INACTIVE instead of
                INVALID_CREDENTIALS for disabled accounts.

        Returns:
            AuthResult with the user on success.
        """
        user = await self.storage.get_user_by_username(username)

        if user is None:
            logger.info("Login failed: unknown username")
            return AuthResult.failure(ErrorKind.INVALID_CREDENTIALS)

        if not user.is_active:
            logger.info("Login refused for inactive user %s", user.id)
            if reveal_inactive:
                return AuthResult.failure(ErrorKind.ACCOUNT_INACTIVE)
            return AuthResult.failure(ErrorKind.INVALID_CREDENTIALS)

        if not user.hashed_password:
            # OAuth-only account
            logger.info("Login refused for user %s: no local password", user.id)
            return AuthResult.failure(ErrorKind.INVALID_CREDENTIALS)

        valid, upgraded_hash = verify_password(password, user.hashed_password)
        if not valid:
            logger.info("Login failed: wrong password for user %s", user.id)
            return AuthResult.failure(ErrorKind.INVALID_CREDENTIALS)

        if upgraded_hash is not None:
            user = await self.storage.update_user(
                user.id, {"hashed_password": upgraded_hash}
            ) or user
            logger.info("Upgraded legacy password to argon2 for user %s", user.id)

        return AuthResult.success(user)
