"""
Organizations router — tenant lookup and system-level tenant management.

Endpoints:
  GET  /organizations                    — All organizations (system_admin only)
  POST /organizations                    — Create an organization (system_admin only)
  GET  /organizations/{organization_id}  — One organization, scoped to the caller

Tenants are otherwise created implicitly: by local registration and by the
first OAuth sign-in of a new identity.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status

from app.context import RequestContext
from app.dependencies import (
    get_storage,
    require_organization_access,
    require_permission,
    require_system_admin,
)
from app.exceptions import OrgCreationFailedError
from app.permissions import Action, Resource
from app.schemas.organization import OrganizationCreateRequest, OrganizationResponse
from app.services.identity_service import create_unique_organization
from app.storage import SqlStorage

router = APIRouter(prefix="/organizations")


@router.get(
    "",
    response_model=list[OrganizationResponse],
    summary="List all organizations",
)
async def list_organizations(
    _: RequestContext = Depends(require_system_admin),
    storage: SqlStorage = Depends(get_storage),
):
    return await storage.list_organizations()


@router.post(
    "",
    response_model=OrganizationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an organization",
)
async def create_organization(
    request: OrganizationCreateRequest,
    _: RequestContext = Depends(require_system_admin),
    storage: SqlStorage = Depends(get_storage),
):
    organization = await create_unique_organization(storage, request.name)
    if organization is None:
        raise OrgCreationFailedError()
    return organization


@router.get(
    "/{organization_id}",
    response_model=OrganizationResponse,
    summary="Get an organization",
)
async def get_organization(
    organization_id: uuid.UUID,
    ctx: RequestContext = Depends(require_organization_access),
    _: RequestContext = Depends(require_permission(Resource.ORGANIZATION, Action.VIEW)),
    storage: SqlStorage = Depends(get_storage),
):
    organization = await storage.get_organization(organization_id)
    if organization is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
    return organization
