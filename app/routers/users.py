"""
Users router — tenant-scoped user administration.

Every endpoint runs behind the access-control chain: a live session,
a capability check on the "users" resource, and organization scoping.

Endpoints:
  GET   /users                                  — Users of the caller's organization
  GET   /organizations/{organization_id}/users  — Users of a specific organization
  POST  /users                                  — Create a user
  PATCH /users/{user_id}                        — Administrative edits (role, name, active)
  POST  /users/{user_id}/password               — Set a new local password

Organization scoping:
  An organization_id in a request body is only used to authorize the
  request. The organization a user is created in or moved to is decided by
  RequestContext.write_organization_id(): the caller's own organization,
  unless the caller is a system_admin.

Role assignment:
  A caller can only create users with, promote users to, or edit users
  holding a role whose capabilities it also holds (can_assign_role).
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status

from app.context import RequestContext
from app.dependencies import get_storage, require_organization_access, require_permission
from app.exceptions import DuplicateRecordError, PermissionDeniedError
from app.models.user import AuthProvider, User, UserRole
from app.permissions import Action, Resource
from app.schemas.user import (
    PasswordResetRequest,
    UserCreateRequest,
    UserResponse,
    UserUpdateRequest,
)
from app.security import hash_password
from app.storage import SqlStorage

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_scoped_user(
    storage: SqlStorage, ctx: RequestContext, user_id: uuid.UUID
) -> User:
    """
    Load a user the caller is allowed to manage.

    Users of other organizations are reported as missing, not forbidden,
    so tenants cannot probe each other's user ids.
    """
    user = await storage.get_user(user_id)
    if user is None or not ctx.can_access(user.organization_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _check_role_assignment(ctx: RequestContext, role: UserRole) -> None:
    """
    Refuse to hand out, or act on holders of, a role with capabilities the
    caller does not have. A manager cannot create an org_admin, promote
    anyone to org_admin, or edit an existing org_admin.
    """
    if not ctx.can_assign(role):
        logger.info(
            "User %s (%s) may not assign role %s",
            ctx.user_id, ctx.role.value, UserRole(role).value,
        )
        raise PermissionDeniedError()


@router.get(
    "/users",
    response_model=list[UserResponse],
    summary="List users in your organization",
)
async def list_users(
    ctx: RequestContext = Depends(require_permission(Resource.USERS, Action.VIEW)),
    storage: SqlStorage = Depends(get_storage),
):
    return await storage.list_users(ctx.organization_id)


@router.get(
    "/organizations/{organization_id}/users",
    response_model=list[UserResponse],
    summary="List users of an organization",
)
async def list_organization_users(
    organization_id: uuid.UUID,
    ctx: RequestContext = Depends(require_organization_access),
    _: RequestContext = Depends(require_permission(Resource.USERS, Action.VIEW)),
    storage: SqlStorage = Depends(get_storage),
):
    return await storage.list_users(organization_id)


@router.post(
    "/users",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
)
async def create_user(
    request: UserCreateRequest,
    ctx: RequestContext = Depends(require_permission(Resource.USERS, Action.CREATE)),
    storage: SqlStorage = Depends(get_storage),
):
    """
    Create a user in the caller's organization.

    A password is optional; users without one can only sign in through an
    external provider whose email matches.
    """
    _check_role_assignment(ctx, request.role)
    organization_id = ctx.write_organization_id(request.organization_id)

    if await storage.get_user_by_username(request.username) is not None:
        raise DuplicateRecordError(f"Username {request.username} is already registered")
    if await storage.get_user_by_email(request.email) is not None:
        raise DuplicateRecordError(f"Email {request.email} is already registered")

    return await storage.create_user({
        "username": request.username,
        "email": request.email,
        "name": request.name,
        "hashed_password": hash_password(request.password) if request.password else None,
        "role": request.role,
        "organization_id": organization_id,
        "auth_provider": AuthProvider.LOCAL if request.password else AuthProvider.OAUTH,
    })


@router.patch(
    "/users/{user_id}",
    response_model=UserResponse,
    summary="Update a user's role, name or status",
)
async def update_user(
    user_id: uuid.UUID,
    updates: UserUpdateRequest,
    ctx: RequestContext = Depends(require_permission(Resource.USERS, Action.EDIT)),
    storage: SqlStorage = Depends(get_storage),
):
    """
    Administrative edit. Only provided fields are changed.

    Deactivating a user ends their sessions on their next request.
    """
    user = await _get_scoped_user(storage, ctx, user_id)
    patch = updates.model_dump(exclude_unset=True, exclude={"organization_id"})

    _check_role_assignment(ctx, user.role)
    if "role" in patch:
        _check_role_assignment(ctx, patch["role"])
    if updates.organization_id is not None:
        patch["organization_id"] = ctx.write_organization_id(updates.organization_id)

    return await storage.update_user(user.id, patch)


@router.post(
    "/users/{user_id}/password",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Set a user's local password",
)
async def reset_password(
    user_id: uuid.UUID,
    request: PasswordResetRequest,
    ctx: RequestContext = Depends(require_permission(Resource.USERS, Action.EDIT)),
    storage: SqlStorage = Depends(get_storage),
):
    """
    Set a new local password.

    An OAuth-linked account keeps its external identity and can then sign
    in either way.
    """
    user = await _get_scoped_user(storage, ctx, user_id)
    _check_role_assignment(ctx, user.role)
    await storage.update_user(user.id, {"hashed_password": hash_password(request.password)})
