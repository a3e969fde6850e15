"""
Request context — who is making this request and what they may do.

This is the one strongly-typed value the authentication dependency hands
to route handlers. Handlers receive it explicitly as a parameter; nothing
is attached to the request object.

Usage in routes:
    async def my_route(ctx: RequestContext = Depends(get_request_context)):
        if ctx.can(Resource.USERS, Action.EDIT):
            ...
"""

import uuid
from dataclasses import dataclass

from app.models.user import User, UserRole
from app.permissions import Action, Resource, can_assign_role, evaluate
from app.scoping import check_access, scoped_organization_id


@dataclass(frozen=True)
class RequestContext:
    principal: User

    @property
    def user_id(self) -> uuid.UUID:
        return self.principal.id

    @property
    def organization_id(self) -> uuid.UUID:
        return self.principal.organization_id

    @property
    def role(self) -> UserRole:
        return self.principal.role

    @property
    def is_system_admin(self) -> bool:
        return self.principal.role == UserRole.SYSTEM_ADMIN

    def can(self, resource: Resource | str, action: Action | str) -> bool:
        return evaluate(self.principal, resource, action)

    def can_access(self, organization_id: uuid.UUID | str | None) -> bool:
        return check_access(self.principal, organization_id)

    def can_assign(self, role: UserRole | str) -> bool:
        """Whether this principal may give `role` to a user, or manage a user holding it."""
        return can_assign_role(self.principal.role, role)

    def write_organization_id(self, requested: uuid.UUID | None = None) -> uuid.UUID:
        """Organization a create/update must be persisted under."""
        return scoped_organization_id(self.principal, requested)
