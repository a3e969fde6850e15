"""
Custom exception classes and FastAPI exception handlers.

The identity core reports failures as discriminated error kinds (ErrorKind).
Services return them inside an AuthResult; the HTTP layer unwraps the result,
which raises the matching exception class below, and the handlers registered
here translate it into a JSON response:

    {"detail": "human readable message", "error_type": "<ErrorKind value>"}

Exception hierarchy:
    PoolOpsError (base)
    ├── InvalidCredentialsError    — 401, bad username/password (or inactive)
    ├── AccountInactiveError       — 401, inactive, for callers allowed to know
    ├── SessionInvalidError        — 401, no live principal behind the session
    ├── ProfileInvalidError        — 400, OAuth profile missing id or email
    ├── AccountDeactivatedError    — 403, OAuth identity linked to a disabled user
    ├── PermissionDeniedError      — 403, role lacks the capability
    ├── OrganizationMismatchError  — 403, request targets another tenant
    ├── OrgCreationFailedError     — 503, slug retries exhausted
    └── DuplicateRecordError       — 409, unique constraint violated in storage
"""

import enum

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class ErrorKind(str, enum.Enum):
    """Discriminated error kinds produced by the identity core."""
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_INACTIVE = "account_inactive"
    PROFILE_INVALID = "profile_invalid"
    ACCOUNT_DEACTIVATED = "account_deactivated"
    ORG_CREATION_FAILED = "org_creation_failed"
    PERMISSION_DENIED = "permission_denied"
    ORGANIZATION_MISMATCH = "organization_mismatch"
    SESSION_INVALID = "session_invalid"


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class PoolOpsError(Exception):
    """Base exception for all PoolOps domain errors."""

    status_code: int = 400
    error_type: str = "error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class InvalidCredentialsError(PoolOpsError):
    """Raised when login credentials are incorrect."""

    status_code = 401
    error_type = ErrorKind.INVALID_CREDENTIALS.value

    def __init__(self):
        super().__init__("Invalid username or password")


class AccountInactiveError(PoolOpsError):
    """Raised instead of InvalidCredentialsError when the caller may learn the account is disabled."""

    status_code = 401
    error_type = ErrorKind.ACCOUNT_INACTIVE.value

    def __init__(self):
        super().__init__("Account is inactive")


class SessionInvalidError(PoolOpsError):
    """Raised when a request carries no session that resolves to an active user."""

    status_code = 401
    error_type = ErrorKind.SESSION_INVALID.value

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(detail)


class ProfileInvalidError(PoolOpsError):
    """Raised when an OAuth provider profile lacks an id or an email address."""

    status_code = 400
    error_type = ErrorKind.PROFILE_INVALID.value

    def __init__(self, detail: str = "OAuth profile is missing an id or email"):
        super().__init__(detail)


class AccountDeactivatedError(PoolOpsError):
    """Raised when an OAuth identity resolves to a deactivated user."""

    status_code = 403
    error_type = ErrorKind.ACCOUNT_DEACTIVATED.value

    def __init__(self):
        super().__init__("This account has been deactivated")


class PermissionDeniedError(PoolOpsError):
    """
    Raised when the principal's role does not grant an action on a resource.

    Attributes:
        resource: The resource that was requested (e.g. "users").
        action: The action that was attempted (e.g. "delete").
    """

    status_code = 403
    error_type = ErrorKind.PERMISSION_DENIED.value

    def __init__(self, resource: str | None = None, action: str | None = None):
        self.resource = resource
        self.action = action
        if resource and action:
            super().__init__(f"You don't have permission to {action} {resource}")
        else:
            super().__init__("Insufficient permissions")


class OrganizationMismatchError(PoolOpsError):
    """Raised when a principal targets an organization other than its own."""

    status_code = 403
    error_type = ErrorKind.ORGANIZATION_MISMATCH.value

    def __init__(self, detail: str = "You do not have access to this organization"):
        super().__init__(detail)


class OrgCreationFailedError(PoolOpsError):
    """Raised when no unique organization slug could be found within the retry budget."""

    status_code = 503
    error_type = ErrorKind.ORG_CREATION_FAILED.value

    def __init__(self, slug: str | None = None):
        self.slug = slug
        super().__init__("Unable to create a unique organization identifier")


class DuplicateRecordError(PoolOpsError):
    """Raised by storage when a write violates a unique constraint."""

    status_code = 409
    error_type = "duplicate_record"

    def __init__(self, detail: str = "A record with these values already exists"):
        super().__init__(detail)


ERRORS_BY_KIND: dict[ErrorKind, type[PoolOpsError]] = {
    ErrorKind.INVALID_CREDENTIALS: InvalidCredentialsError,
    ErrorKind.ACCOUNT_INACTIVE: AccountInactiveError,
    ErrorKind.PROFILE_INVALID: ProfileInvalidError,
    ErrorKind.ACCOUNT_DEACTIVATED: AccountDeactivatedError,
    ErrorKind.ORG_CREATION_FAILED: OrgCreationFailedError,
    ErrorKind.PERMISSION_DENIED: PermissionDeniedError,
    ErrorKind.ORGANIZATION_MISMATCH: OrganizationMismatchError,
    ErrorKind.SESSION_INVALID: SessionInvalidError,
}


def error_for(kind: ErrorKind) -> PoolOpsError:
    """Build the exception instance that represents an error kind."""
    return ERRORS_BY_KIND[kind]()


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Every PoolOpsError subclass carries its own status code and error_type,
    so a single handler keeps the response format consistent.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(PoolOpsError)
    async def poolops_error_handler(
        request: Request, exc: PoolOpsError
    ) -> JSONResponse:
        content = {"detail": exc.detail, "error_type": exc.error_type}
        if isinstance(exc, PermissionDeniedError) and exc.resource:
            content["required"] = {"resource": exc.resource, "action": exc.action}
        return JSONResponse(status_code=exc.status_code, content=content)
