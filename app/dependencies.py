"""
FastAPI dependencies for authentication and authorization.

Dependencies are reusable functions that FastAPI injects into route handlers.
They form the access-control chain every protected request goes through:

  get_auth_service (db -> AuthService)
      └── get_request_context (session token -> RequestContext)
              ├── require_permission(resource, action)   [capability table]
              ├── require_organization_access            [tenant of {organization_id}]
              └── require_system_admin

The session token is read from an "Authorization: Bearer <token>" header
(API clients), falling back to the session cookie. A missing, forged
or expired token, or one whose user is gone or deactivated, all end in
SESSION_INVALID (401) before the route handler runs.
"""

import uuid

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.context import RequestContext
from app.database import get_db
from app.exceptions import (
    OrganizationMismatchError,
    PermissionDeniedError,
    SessionInvalidError,
)
from app.logging_config import tenant_id_var, user_id_var
from app.permissions import Action, Resource
from app.security import read_session_token
from app.services.auth_service import AuthService
from app.storage import SqlStorage


# auto_error=False: a missing header falls back to the cookie
optional_bearer = HTTPBearer(auto_error=False)


async def get_storage(db: AsyncSession = Depends(get_db)) -> SqlStorage:
    return SqlStorage(db)


async def get_auth_service(storage: SqlStorage = Depends(get_storage)) -> AuthService:
    """AuthService bound to this request's unit of work."""
    return AuthService(storage)


def get_session_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
) -> str | None:
    if credentials is not None:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_request_context(
    token: str | None = Depends(get_session_token),
    auth: AuthService = Depends(get_auth_service),
) -> RequestContext:
    """
    Resolve the session into a live principal.

    Raises:
        SessionInvalidError: If there is no session or it no longer
            resolves to an active user.
    """
    session_id = read_session_token(token) if token else None
    principal = await auth.deserialize(session_id)
    if principal is None:
        raise SessionInvalidError()

    user_id_var.set(str(principal.id))
    tenant_id_var.set(str(principal.organization_id))
    return RequestContext(principal=principal)


def require_permission(resource: Resource, action: Action):
    """
    Create a dependency that requires the principal's role to grant
    `action` on `resource`.

    Usage:
        @router.get("/users")
        async def list_users(ctx = Depends(require_permission(Resource.USERS, Action.VIEW))):
            ...
    """

    async def _dep(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
        if not ctx.can(resource, action):
            raise PermissionDeniedError(resource.value, action.value)
        return ctx

    return _dep


async def require_organization_access(
    organization_id: uuid.UUID,
    ctx: RequestContext = Depends(get_request_context),
) -> RequestContext:
    """Require the {organization_id} path parameter to be the principal's tenant."""
    if not ctx.can_access(organization_id):
        raise OrganizationMismatchError()
    return ctx


async def require_system_admin(
    ctx: RequestContext = Depends(get_request_context),
) -> RequestContext:
    if not ctx.is_system_admin:
        raise PermissionDeniedError()
    return ctx
