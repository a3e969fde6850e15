"""
Security utilities: password hashing, signed session tokens, and Fernet encryption.

This module centralizes all cryptographic operations so they're easy to
audit and update. Three concerns are handled here:

1. PASSWORD HASHING (Argon2, with legacy plaintext migration)
   - New passwords are always hashed with Argon2id.
   - bcrypt hashes carried over from the legacy system are strong hashes
     too: they verify against bcrypt and are left as they are.
   - Accounts imported from the legacy system may still hold a plaintext
     password. passlib's CryptContext recognizes a strong hash by its
     "$argon2" or "$2b$" marker; anything else falls through to the
     deprecated "plaintext" scheme, which compares in constant time. The caller
     (CredentialVerifier) then stores a fresh Argon2 hash, so a value is
     upgraded once and never read as plaintext again.

2. SIGNED TOKENS (JWT via python-jose)
   - The session cookie carries only the user id, signed with SECRET_KEY
     ("sub" claim) and an expiry. No credentials or provider tokens.
   - The OAuth "state" parameter is a short-lived signed token too, so the
     callback can verify it without server-side storage.

3. FERNET ENCRYPTION (AES-128-CBC + HMAC-SHA256)
   - Provider access/refresh tokens cached on users are encrypted at rest.
"""

import secrets
from datetime import datetime, timedelta, timezone

from cryptography.fernet import Fernet
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import settings


# ---------------------------------------------------------------------------
# 1. Password Hashing
# ---------------------------------------------------------------------------

# "plaintext" must stay last: its identify() accepts any string.
# bcrypt ("$2a$", "$2b$", "$2y$") is what the legacy system hashed with.
pwd_context = CryptContext(
    schemes=["argon2", "bcrypt", "plaintext"],
    default="argon2",
    deprecated=["plaintext"],
)

STRONG_SCHEMES = frozenset({"argon2", "bcrypt"})


def hash_password(plain_password: str) -> str:
    """
    Hash a plaintext password using Argon2id.

    Returns:
        An Argon2 hash string (e.g., "$argon2id$v=19$m=65536,t=3,p=4$...").
    """
    return pwd_context.hash(plain_password)


def is_strong_hash(stored_password: str | None) -> bool:
    """Return True if the stored value carries a recognized strong-hash marker."""
    if not stored_password:
        return False
    return pwd_context.identify(stored_password) in STRONG_SCHEMES


def verify_password(plain_password: str, stored_password: str) -> tuple[bool, str | None]:
    """
    Verify a password against a stored value and report whether it needs upgrading.

    Args:
        plain_password: The password the user just typed.
        stored_password: Argon2 or bcrypt hash, or legacy plaintext value, from
            the database.

    Returns:
        (valid, new_hash). new_hash is a fresh Argon2 hash when the stored
        value was a legacy plaintext password that matched, otherwise None.
    """
    strong = is_strong_hash(stored_password)
    valid, new_hash = pwd_context.verify_and_update(plain_password, stored_password)
    if not valid or strong:
        return valid, None
    return True, new_hash or hash_password(plain_password)


# ---------------------------------------------------------------------------
# 2. Signed tokens
# ---------------------------------------------------------------------------


def create_session_token(session_id: str, expires_delta: timedelta | None = None) -> str:
    """
    Sign an opaque session id into a cookie-safe token.

    Args:
        session_id: The value produced by SessionStore.serialize().
        expires_delta: Optional custom lifetime. Defaults to
                       SESSION_MAX_AGE_MINUTES from settings.
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.SESSION_MAX_AGE_MINUTES)
    )
    payload = {"sub": session_id, "exp": expire, "type": "session"}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def read_session_token(token: str) -> str | None:
    """Return the session id inside a token, or None if it is forged, expired or malformed."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != "session":
        return None
    return payload.get("sub")


def create_oauth_state() -> tuple[str, str]:
    """
    Create an OAuth CSRF state.

    Returns:
        (nonce, signed_state). The nonce goes to the provider as ?state=,
        the signed state is kept in a cookie and checked on callback.
    """
    nonce = secrets.token_urlsafe(32)
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.OAUTH_STATE_TTL_MINUTES)
    signed = jwt.encode(
        {"nonce": nonce, "exp": expire, "type": "oauth_state"},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    return nonce, signed


def verify_oauth_state(nonce: str | None, signed_state: str | None) -> bool:
    """Check the ?state= value returned by the provider against the signed cookie."""
    if not nonce or not signed_state:
        return False
    try:
        payload = jwt.decode(signed_state, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return False
    if payload.get("type") != "oauth_state":
        return False
    return secrets.compare_digest(str(payload.get("nonce", "")), nonce)


# ---------------------------------------------------------------------------
# 3. Fernet Encryption (for cached provider tokens)
# ---------------------------------------------------------------------------

_fernet = Fernet(settings.TOKEN_ENCRYPTION_KEY.encode())


def encrypt_value(plaintext: str) -> bytes:
    """Encrypt a string value for storage in a LargeBinary column."""
    return _fernet.encrypt(plaintext.encode())


def decrypt_value(ciphertext: bytes) -> str:
    """
    Decrypt a Fernet-encrypted value back to plaintext.

    Raises:
        cryptography.fernet.InvalidToken: If the data is corrupted or
            the encryption key doesn't match.
    """
    return _fernet.decrypt(ciphertext).decode()
