"""
Organization scoping guard — keeps every principal inside its own tenant.

A system_admin may act on any organization. Every other role is bound to
its organization_id, whether the target organization arrives as a path
parameter or in a request body.

A client-supplied organization_id is only ever used to accept or reject a
request. The organization a create/update is persisted under comes from
scoped_organization_id(), which returns the principal's own organization
for everyone except system_admin.
"""

import uuid

from app.exceptions import OrganizationMismatchError
from app.models.user import User, UserRole


def is_system_admin(principal: User) -> bool:
    return principal.role == UserRole.SYSTEM_ADMIN


def check_access(principal: User, target_organization_id: uuid.UUID | str | None) -> bool:
    """True iff the principal is a system_admin or belongs to the target organization."""
    if is_system_admin(principal):
        return True
    if target_organization_id is None:
        return False
    if not isinstance(target_organization_id, uuid.UUID):
        try:
            target_organization_id = uuid.UUID(str(target_organization_id))
        except ValueError:
            return False
    return principal.organization_id == target_organization_id


def scoped_organization_id(
    principal: User,
    requested_organization_id: uuid.UUID | None = None,
) -> uuid.UUID:
    """
    Resolve the organization a write must be persisted under.

    Raises:
        OrganizationMismatchError: If the principal asked for an organization
            it cannot access.
    """
    if requested_organization_id is not None and not check_access(
        principal, requested_organization_id
    ):
        raise OrganizationMismatchError(
            "You do not have access to the specified organization"
        )
    if is_system_admin(principal) and requested_organization_id is not None:
        return requested_organization_id
    return principal.organization_id
